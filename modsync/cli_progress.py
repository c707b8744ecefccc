"""CLI progress display for batch operations.

This module provides Rich-based progress displays that receive events
from the BatchExecutor and the reconciliation engine.
"""

from typing import Optional

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.status import Status

from .models import BatchResult


class BatchProgressDisplay:
    """Rich-based progress display for batch operations.

    Shows one overall bar counting finished items, plus a bar for the
    item currently being processed. Finished item bars stay on screen,
    green for success and red for failure.
    """

    def __init__(self, console: Optional[Console] = None) -> None:
        """Initialize the progress display."""
        self._console = console
        self._progress: Optional[Progress] = None
        self._overall_task: Optional[TaskID] = None
        self._item_tasks: dict[str, TaskID] = {}

    def batch_started(self, description: str, total: int) -> None:
        """Create the overall task for a new batch."""
        if self._progress is None:
            return
        self._overall_task = self._progress.add_task(
            f"[bold]{description}", total=total
        )

    def item_started(self, name: str) -> None:
        """Add a bar for the item about to run."""
        if self._progress is None:
            return
        self._item_tasks[name] = self._progress.add_task(f"  {name}", total=100)

    def item_progress(self, name: str, percent: float) -> None:
        """Move an item's bar to percent."""
        if self._progress is None or name not in self._item_tasks:
            return
        self._progress.update(self._item_tasks[name], completed=percent)

    def item_finished(self, result: BatchResult) -> None:
        """Color the item's bar and advance the overall count."""
        if self._progress is None:
            return
        task = self._item_tasks.get(result.name)
        if task is not None:
            color = "green" if result.success else "red"
            self._progress.update(
                task,
                completed=100,
                description=f"  [{color}]{result.name}[/{color}]",
            )
        if self._overall_task is not None:
            self._progress.advance(self._overall_task)

    def __enter__(self) -> "BatchProgressDisplay":
        """Enter context manager - start progress display."""
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TimeElapsedColumn(),
            console=self._console,
            refresh_per_second=4,
        )
        self._progress.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager - stop progress display."""
        if self._progress is not None:
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._overall_task = None
            self._item_tasks = {}


class DiscoveryStatus:
    """Spinner showing which folder discovery is looking at."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self._status = Status("Scanning mods...", console=console)

    def update(self, message: str) -> None:
        """Progress callback for ReconciliationEngine.discover."""
        self._status.update(message)

    def __enter__(self) -> "DiscoveryStatus":
        self._status.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self._status.stop()
