"""Tests for the rich batch progress display."""

import io

import pytest
from rich.console import Console

from modsync.cli_progress import BatchProgressDisplay, DiscoveryStatus
from modsync.models import BatchResult
from modsync.sync import BatchExecutor


def quiet_console() -> Console:
    return Console(file=io.StringIO(), force_terminal=False, width=100)


class TestBatchProgressDisplay:
    """Tests for BatchProgressDisplay as a batch observer."""

    def test_tasks_track_items(self):
        with BatchProgressDisplay(console=quiet_console()) as display:
            display.batch_started("Updating", 2)
            display.item_started("CoreMod")
            display.item_progress("CoreMod", 50)
            display.item_finished(BatchResult("CoreMod", True))
            display.item_started("Textures")
            display.item_finished(BatchResult("Textures", False, "boom"))

            progress = display._progress
            overall = progress.tasks[0]
            assert overall.completed == 2
            assert overall.total == 2
            assert "green" in progress.tasks[1].description
            assert "red" in progress.tasks[2].description
            assert progress.tasks[2].completed == 100

    def test_events_outside_context_are_ignored(self):
        display = BatchProgressDisplay(console=quiet_console())
        display.batch_started("Updating", 1)
        display.item_started("CoreMod")
        display.item_progress("CoreMod", 10)
        display.item_finished(BatchResult("CoreMod", True))

    @pytest.mark.asyncio
    async def test_as_executor_observer(self):
        async def operation(item, progress):
            progress(40)
            return (True, None)

        with BatchProgressDisplay(console=quiet_console()) as display:
            executor = BatchExecutor(observer=display, description="Installing")
            results = await executor.run_batch(["A", "B"], str, operation)
            assert display._progress.tasks[0].completed == 2

        assert len(results) == 2


class TestDiscoveryStatus:
    def test_update(self):
        with DiscoveryStatus(console=quiet_console()) as status:
            status.update("Scanning: CoreMod")
