"""Tests for the console output formatter."""

import json
from datetime import datetime, timezone

from modsync.models import BatchResult, CommitInfo, InstalledMod, ModSource, ModStatus
from modsync.output import OutputFormatter, format_source, format_status


def mod(name: str, status: ModStatus, **kwargs) -> InstalledMod:
    source = ModSource.LOCAL if status == ModStatus.NON_GIT else ModSource.GIT
    return InstalledMod(
        name=name, path=f"/mods/{name}", source=source, status=status, **kwargs
    )


class TestFormatStatus:
    """Tests for format_status."""

    def test_counts_in_label(self):
        behind = mod("A", ModStatus.BEHIND, commits_behind=3)
        ahead = mod("A", ModStatus.AHEAD, commits_ahead=2)
        assert "Behind (3)" in format_status(behind)
        assert "Ahead (2)" in format_status(ahead)
        assert "+1/-4" in format_status(
            mod("A", ModStatus.DIVERGED, commits_ahead=1, commits_behind=4)
        )

    def test_plain_labels(self):
        assert "Up to date" in format_status(mod("A", ModStatus.UP_TO_DATE))
        assert "Not git" in format_status(mod("A", ModStatus.NON_GIT))

    def test_source_labels(self):
        assert "Git" in format_source(mod("A", ModStatus.UP_TO_DATE))
        assert "Local" in format_source(mod("A", ModStatus.NON_GIT))
        workshop = mod("A", ModStatus.NON_GIT, is_workshop=True)
        assert "Workshop" in format_source(workshop)


class TestMessages:
    """Tests for quiet and JSON modes."""

    def test_info_and_success(self, capsys):
        out = OutputFormatter()
        out.info("Scanning")
        out.success("Done")
        captured = capsys.readouterr()
        assert "Scanning" in captured.out
        assert "Done" in captured.out

    def test_quiet_suppresses_info(self, capsys):
        out = OutputFormatter(quiet=True)
        out.info("Scanning")
        out.warning("Careful")
        out.error("Broken")
        captured = capsys.readouterr()
        assert "Scanning" not in captured.out
        assert "Careful" not in captured.err
        assert "Broken" in captured.err

    def test_markup_in_messages_is_escaped(self, capsys):
        out = OutputFormatter()
        out.info("[bold]CoreMod[/bold]")
        assert "[bold]CoreMod[/bold]" in capsys.readouterr().out


class TestModTable:
    """Tests for OutputFormatter.mod_table."""

    def test_table_and_summary(self, capsys):
        out = OutputFormatter()
        out.mod_table(
            [
                mod("CoreMod", ModStatus.BEHIND, commits_behind=2, branch="main"),
                mod("Textures", ModStatus.NON_GIT),
            ],
            rate_limit_remaining=5,
        )
        captured = capsys.readouterr().out
        assert "CoreMod" in captured
        assert "1 behind" in captured
        assert "1 not git" in captured
        assert "API requests remaining: 5" in captured

    def test_empty(self, capsys):
        OutputFormatter().mod_table([])
        assert "No organization mods found." in capsys.readouterr().out

    def test_json(self, capsys):
        out = OutputFormatter(json_output=True)
        out.mod_table([mod("CoreMod", ModStatus.UP_TO_DATE)], rate_limit_remaining=50)
        data = json.loads(capsys.readouterr().out)
        assert data["mods"][0]["name"] == "CoreMod"
        assert data["mods"][0]["status"] == "up_to_date"
        assert data["rate_limit_remaining"] == 50


class TestBatchResults:
    """Tests for OutputFormatter.batch_results."""

    def test_counts(self, capsys):
        out = OutputFormatter()
        out.batch_results(
            "Update Results",
            [BatchResult("A", True), BatchResult("B", False, "Pull failed: x")],
        )
        captured = capsys.readouterr().out
        assert "Update Results" in captured
        assert "Successfully processed 1 mod(s)." in captured
        assert "1 failed." in captured

    def test_json(self, capsys):
        out = OutputFormatter(json_output=True)
        out.batch_results("Update Results", [BatchResult("A", False, "boom")])
        assert json.loads(capsys.readouterr().out) == [
            {"name": "A", "success": False, "error": "boom"}
        ]

    def test_json_with_incoming_commits(self, capsys):
        out = OutputFormatter(json_output=True)
        commit = CommitInfo(
            hash="b" * 40, short_hash="bbbbbbb", subject="Fix", author="Dev"
        )
        out.batch_results(
            "Update Results", [BatchResult("A", True)], incoming={"A": [commit]}
        )
        data = json.loads(capsys.readouterr().out)
        assert data["incoming_commits"]["A"][0]["short_hash"] == "bbbbbbb"
        assert data["results"] == [{"name": "A", "success": True, "error": None}]


class TestCommits:
    """Tests for commit views."""

    def _commit(self) -> CommitInfo:
        return CommitInfo(
            hash="a" * 40,
            short_hash="aaaaaaa",
            subject="Add new weapons",
            author="Dev",
            date=datetime(2025, 1, 1, tzinfo=timezone.utc),
        )

    def test_incoming_tree(self, capsys):
        OutputFormatter().incoming_commits({"CoreMod": [self._commit()]})
        captured = capsys.readouterr().out
        assert "CoreMod (1)" in captured
        assert "aaaaaaa" in captured
        assert "Add new weapons" in captured

    def test_commit_table_json(self, capsys):
        OutputFormatter(json_output=True).commit_table("History", [self._commit()])
        data = json.loads(capsys.readouterr().out)
        assert data[0]["subject"] == "Add new weapons"
