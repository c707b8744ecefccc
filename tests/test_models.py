"""Tests for data models."""

from datetime import datetime, timezone

from modsync.models import (
    BatchResult,
    CommitInfo,
    InstalledMod,
    InventorySummary,
    ModSource,
    ModStatus,
    ReleaseInfo,
    RemoteRepository,
)


class TestRemoteRepository:
    """Tests for RemoteRepository.from_api."""

    def test_from_api_full(self):
        """Test parsing a complete repository object."""
        repo = RemoteRepository.from_api(
            {
                "name": "CoreMod",
                "clone_url": "https://github.com/Org/CoreMod.git",
                "default_branch": "develop",
                "html_url": "https://github.com/Org/CoreMod",
                "description": "Core content",
                "topics": ["rimworld", "core"],
            }
        )
        assert repo.name == "CoreMod"
        assert repo.clone_url == "https://github.com/Org/CoreMod.git"
        assert repo.default_branch == "develop"
        assert repo.topics == ("rimworld", "core")

    def test_from_api_defaults(self):
        """Test that missing optional fields fall back to defaults."""
        repo = RemoteRepository.from_api({"name": "Minimal"})
        assert repo.default_branch == "main"
        assert repo.description is None
        assert repo.topics == ()


class TestInstalledMod:
    """Tests for InstalledMod."""

    def test_is_git(self):
        git_mod = InstalledMod(name="A", path="/mods/A", source=ModSource.GIT)
        local_mod = InstalledMod(name="B", path="/mods/B", source=ModSource.LOCAL)
        assert git_mod.is_git
        assert not local_mod.is_git

    def test_to_dict(self):
        """Test JSON serialization including the nested commit."""
        commit = CommitInfo(
            hash="a" * 40,
            short_hash="aaaaaaa",
            subject="Fix",
            author="Dev",
            date=datetime(2025, 1, 1, tzinfo=timezone.utc),
        )
        mod = InstalledMod(
            name="CoreMod",
            path="/mods/CoreMod",
            source=ModSource.GIT,
            status=ModStatus.BEHIND,
            branch="main",
            current_commit=commit,
            commits_behind=3,
        )
        data = mod.to_dict()
        assert data["status"] == "behind"
        assert data["source"] == "git"
        assert data["commits_behind"] == 3
        assert data["commit"]["short_hash"] == "aaaaaaa"
        assert data["commit"]["date"] == "2025-01-01T00:00:00+00:00"
        assert data["workshop"] is False


class TestReleaseInfo:
    """Tests for ReleaseInfo.from_api."""

    def test_from_api(self):
        release = ReleaseInfo.from_api(
            {
                "tag_name": "v1.2.0",
                "html_url": "https://example.com/r",
                "published_at": "2025-02-01T00:00:00Z",
                "prerelease": True,
            }
        )
        assert release.name == "v1.2.0"
        assert release.prerelease
        assert not release.draft
        assert release.published_at is not None


class TestInventorySummary:
    """Tests for InventorySummary.from_mods."""

    def test_counts(self):
        mods = [
            InstalledMod("A", "/A", ModSource.GIT, status=ModStatus.UP_TO_DATE),
            InstalledMod("B", "/B", ModSource.GIT, status=ModStatus.BEHIND),
            InstalledMod("C", "/C", ModSource.GIT, status=ModStatus.LOCAL_CHANGES),
            InstalledMod("D", "/D", ModSource.LOCAL, status=ModStatus.NON_GIT),
            InstalledMod("E", "/E", ModSource.GIT, status=ModStatus.ERROR),
        ]
        summary = InventorySummary.from_mods(mods)
        assert summary.up_to_date == 1
        assert summary.behind == 1
        assert summary.names_behind == ["B"]
        assert summary.local_changes == 1
        assert summary.non_git == 1
        assert summary.errors == 1


class TestBatchResult:
    def test_to_dict(self):
        assert BatchResult("A", False, "boom").to_dict() == {
            "name": "A",
            "success": False,
            "error": "boom",
        }
