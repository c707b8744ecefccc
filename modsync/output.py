"""Console output for the CLI, built on rich."""

import json
import sys
from collections.abc import Sequence
from datetime import datetime
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from .models import BatchResult, CommitInfo, InstalledMod, InventorySummary, ModStatus
from .utils import format_local_time, truncate

STATUS_STYLES = {
    ModStatus.UP_TO_DATE: ("green", "Up to date"),
    ModStatus.BEHIND: ("yellow", "Behind"),
    ModStatus.AHEAD: ("cyan", "Ahead"),
    ModStatus.DIVERGED: ("magenta", "Diverged"),
    ModStatus.LOCAL_CHANGES: ("blue", "Local changes"),
    ModStatus.NON_GIT: ("dim", "Not git"),
    ModStatus.ERROR: ("red", "Error"),
    ModStatus.UNKNOWN: ("dim", "Unknown"),
}

LOW_RATE_LIMIT = 10


def format_status(mod: InstalledMod) -> str:
    """Render a mod's status as rich markup."""
    style, label = STATUS_STYLES.get(mod.status, ("white", mod.status.value))
    if mod.status == ModStatus.BEHIND:
        label = f"Behind ({mod.commits_behind})"
    elif mod.status == ModStatus.AHEAD:
        label = f"Ahead ({mod.commits_ahead})"
    elif mod.status == ModStatus.DIVERGED:
        label = f"Diverged (+{mod.commits_ahead}/-{mod.commits_behind})"
    return f"[{style}]{label}[/{style}]"


def format_source(mod: InstalledMod) -> str:
    """Render where a mod came from as rich markup."""
    if mod.is_git:
        return "[green]Git[/green]"
    if mod.is_workshop:
        return "[blue]Workshop[/blue]"
    return "[dim]Local[/dim]"


class OutputFormatter:
    """Writes messages, tables and JSON to the terminal.

    Informational output is suppressed in quiet mode. Errors and warnings
    go to stderr so that ``--json`` output stays parseable.
    """

    def __init__(self, json_output: bool = False, quiet: bool = False):
        """Initialize output formatter.

        Args:
            json_output: Emit machine-readable JSON instead of tables
            quiet: Suppress non-essential output
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = Console()
        self.err_console = Console(stderr=True)

    # =========================
    # Messages
    # =========================

    def info(self, message: str) -> None:
        """Print an informational message."""
        if self.quiet or self.json_output:
            return
        self.console.print(escape(message))

    def progress_message(self, message: str) -> None:
        """Print a dimmed progress line."""
        if self.quiet or self.json_output:
            return
        self.console.print(f"[dim]{escape(message)}[/dim]")

    def success(self, message: str) -> None:
        """Print a success message."""
        if self.quiet or self.json_output:
            return
        self.console.print(f"[green]{escape(message)}[/green]")

    def warning(self, message: str) -> None:
        """Print a warning to stderr."""
        if self.quiet:
            return
        self.err_console.print(f"[yellow]Warning:[/yellow] {escape(message)}")

    def error(self, message: str) -> None:
        """Print an error to stderr; never suppressed."""
        self.err_console.print(f"[red]Error:[/red] {escape(message)}")

    def print(self, message: str) -> None:
        """Print plain text, even in quiet mode."""
        if self.json_output:
            return
        self.console.print(escape(message))

    def print_summary(self, title: str, items: Sequence[tuple[str, str]]) -> None:
        """Print a titled key/value summary."""
        if self.json_output:
            return
        table = Table(title=title, show_header=False, box=None)
        table.add_column("Field", style="bold")
        table.add_column("Value")
        for key, value in items:
            table.add_row(escape(key), escape(value))
        self.console.print(table)

    def output_json(self, data: Any) -> None:
        """Write data as indented JSON to stdout."""
        sys.stdout.write(json.dumps(data, indent=2, default=str))
        sys.stdout.write("\n")
        sys.stdout.flush()

    def output_table(
        self,
        data: Sequence[dict[str, Any]],
        columns: Sequence[str],
        headers: Optional[dict[str, str]] = None,
        title: Optional[str] = None,
    ) -> None:
        """Print rows as a table, or as JSON in JSON mode.

        Args:
            data: Rows keyed by column name
            columns: Column keys in display order
            headers: Optional display names per column key
            title: Optional table title
        """
        if self.json_output:
            self.output_json([{c: row.get(c) for c in columns} for row in data])
            return

        headers = headers or {}
        table = Table(title=title)
        for column in columns:
            table.add_column(headers.get(column, column))
        for row in data:
            table.add_row(*(escape(str(row.get(c, ""))) for c in columns))
        self.console.print(table)

    # =========================
    # Domain views
    # =========================

    def mod_table(
        self,
        mods: Sequence[InstalledMod],
        rate_limit_remaining: Optional[int] = None,
        rate_limit_reset: Optional[datetime] = None,
    ) -> None:
        """Print the inventory table with a status summary line."""
        if self.json_output:
            self.output_json(
                {
                    "mods": [mod.to_dict() for mod in mods],
                    "rate_limit_remaining": rate_limit_remaining,
                }
            )
            return

        if not mods:
            self.print("No organization mods found.")
        else:
            table = Table(title="Installed Mods")
            table.add_column("Name", style="bold")
            table.add_column("Source")
            table.add_column("Status")
            table.add_column("Branch")
            table.add_column("Commit")
            table.add_column("Last Updated")
            for mod in mods:
                commit = mod.current_commit
                table.add_row(
                    escape(mod.name),
                    format_source(mod),
                    format_status(mod),
                    escape(mod.branch or "-"),
                    commit.short_hash if commit else "-",
                    format_local_time(commit.date if commit else None),
                )
            self.console.print(table)
            self._summary_line(InventorySummary.from_mods(mods))

        self._rate_limit_line(rate_limit_remaining, rate_limit_reset)

    def _summary_line(self, summary: InventorySummary) -> None:
        parts = [f"[green]{summary.up_to_date} up to date[/green]"]
        if summary.behind:
            parts.append(f"[yellow]{summary.behind} behind[/yellow]")
        if summary.local_changes:
            parts.append(f"[blue]{summary.local_changes} with local changes[/blue]")
        if summary.non_git:
            parts.append(f"[dim]{summary.non_git} not git[/dim]")
        if summary.errors:
            parts.append(f"[red]{summary.errors} errors[/red]")
        self.console.print(", ".join(parts))

    def _rate_limit_line(
        self, remaining: Optional[int], reset: Optional[datetime]
    ) -> None:
        if remaining is None or self.quiet:
            return
        style = "yellow" if remaining < LOW_RATE_LIMIT else "dim"
        line = f"API requests remaining: {remaining}"
        if reset is not None:
            line += f" (resets at {format_local_time(reset, '%H:%M')})"
        self.console.print(f"[{style}]{line}[/{style}]")

    def batch_results(
        self,
        title: str,
        results: Sequence[BatchResult],
        incoming: Optional[dict[str, list[CommitInfo]]] = None,
    ) -> None:
        """Print per-item batch outcomes and a success/failure line.

        In JSON mode the incoming commits shown before the batch, if any, are
        written together with the results as a single object.
        """
        if self.json_output:
            data = [result.to_dict() for result in results]
            if incoming is None:
                self.output_json(data)
            else:
                self.output_json(
                    {"incoming_commits": _commits_by_mod(incoming), "results": data}
                )
            return

        table = Table(title=title)
        table.add_column("Mod", style="bold")
        table.add_column("Result")
        table.add_column("Details")
        for result in results:
            outcome = "[green]OK[/green]" if result.success else "[red]Failed[/red]"
            table.add_row(escape(result.name), outcome, escape(result.error or ""))
        self.console.print(table)

        succeeded = sum(1 for r in results if r.success)
        failed = len(results) - succeeded
        line = f"[green]Successfully processed {succeeded} mod(s).[/green]"
        if failed:
            line += f" [red]{failed} failed.[/red]"
        self.console.print(line)

    def incoming_commits(self, commits_by_mod: dict[str, list[CommitInfo]]) -> None:
        """Print pending upstream commits grouped per mod."""
        if self.json_output:
            self.output_json(_commits_by_mod(commits_by_mod))
            return

        tree = Tree("[bold]Incoming commits[/bold]")
        for name, commits in commits_by_mod.items():
            branch = tree.add(f"[bold]{escape(name)}[/bold] ({len(commits)})")
            for commit in commits:
                branch.add(
                    f"[yellow]{commit.short_hash}[/yellow] "
                    f"{escape(truncate(commit.subject, 60))} "
                    f"[dim]{escape(commit.author)}, "
                    f"{format_local_time(commit.date)}[/dim]"
                )
        self.console.print(tree)

    def commit_table(self, title: str, commits: Sequence[CommitInfo]) -> None:
        """Print a commit list, newest first."""
        if self.json_output:
            self.output_json([commit.to_dict() for commit in commits])
            return

        table = Table(title=title)
        table.add_column("Commit", style="yellow")
        table.add_column("Date")
        table.add_column("Author")
        table.add_column("Subject")
        for commit in commits:
            table.add_row(
                commit.short_hash,
                format_local_time(commit.date),
                escape(commit.author),
                escape(truncate(commit.subject, 72)),
            )
        self.console.print(table)


def _commits_by_mod(commits_by_mod: dict[str, list[CommitInfo]]) -> dict[str, Any]:
    return {
        name: [commit.to_dict() for commit in commits]
        for name, commits in commits_by_mod.items()
    }
