"""Tests for the reconciliation engine."""

from pathlib import Path
from typing import Optional
from unittest.mock import Mock

import pytest

from modsync.api import CatalogClient
from modsync.git import GitClient, GitResult
from modsync.models import CommitInfo, ModSource, ModStatus, RemoteRepository
from modsync.sync import ReconciliationEngine

ORG_URL = "https://github.com/Org/{}.git"


def repo(name: str) -> RemoteRepository:
    return RemoteRepository(
        name=name,
        clone_url=ORG_URL.format(name),
        default_branch="main",
        html_url=f"https://github.com/Org/{name}",
    )


def make_git(
    remotes: dict[str, Optional[str]],
    counts: Optional[dict[str, tuple[int, int]]] = None,
    branches: Optional[dict[str, Optional[str]]] = None,
    dirty: Optional[set[str]] = None,
) -> Mock:
    """Create a git double keyed by folder name.

    Args:
        remotes: Git folders and their remote URL (None for no remote);
            folders not listed are plain folders
        counts: (behind, ahead) per folder, default (0, 0)
        branches: Current branch per folder, default "main"
        dirty: Folders with local modifications
    """
    counts = counts or {}
    branches = branches or {}
    dirty = dirty or set()

    def name(path) -> str:
        return Path(path).name

    git = Mock(spec=GitClient)
    git.is_installed.return_value = True
    git.is_repository.side_effect = lambda path: name(path) in remotes
    git.remote_url.side_effect = lambda path: remotes[name(path)]
    git.current_branch.side_effect = lambda path: branches.get(name(path), "main")
    git.current_commit.side_effect = lambda path: CommitInfo(
        hash="f" * 40, short_hash="fffffff", subject="Commit", author="Dev"
    )
    git.has_local_modifications.side_effect = lambda path: name(path) in dirty
    git.fetch.return_value = GitResult(returncode=0)
    git.ahead_behind.side_effect = lambda path: counts.get(name(path), (0, 0))
    return git


class TestReconciliationEngine:
    """Test ReconciliationEngine discovery and classification."""

    @pytest.fixture
    def mods_dir(self, tmp_path):
        """Create a mods directory with a set of folders."""
        for folder in [
            "CoreMod",
            "Textures-main",
            "RandomFolder",
            "NoRemote",
            "ForkOfWeapons",
            "Weapons",
            "Renamed",
            "PersonalTool",
        ]:
            (tmp_path / folder).mkdir()
        return tmp_path

    @pytest.fixture
    def catalog(self):
        """Create a mock catalog client."""
        catalog = Mock(spec=CatalogClient)
        catalog.organization = "Org"
        catalog.organization_repositories.return_value = [
            repo("CoreMod"),
            repo("Textures"),
            repo("NoRemote"),
            repo("Weapons"),
        ]
        return catalog

    @pytest.fixture
    def git(self):
        return make_git(
            {
                "CoreMod": ORG_URL.format("CoreMod"),
                "NoRemote": None,
                "ForkOfWeapons": "https://github.com/someone/Weapons.git",
                "Weapons": "https://github.com/someone/Weapons.git",
                "Renamed": ORG_URL.format("OldName"),
                "PersonalTool": "https://github.com/someone/PersonalTool.git",
            },
            counts={"CoreMod": (3, 0)},
        )

    def by_name(self, mods):
        return {mod.name: mod for mod in mods}

    @pytest.mark.asyncio
    async def test_inventory_membership(self, git, catalog, mods_dir):
        """Only organization remotes and catalog name matches are included."""
        engine = ReconciliationEngine(git, catalog)

        mods = self.by_name(await engine.discover(mods_dir))

        assert set(mods) == {
            "CoreMod",
            "Textures-main",
            "NoRemote",
            "Weapons",
            "Renamed",
        }

    @pytest.mark.asyncio
    async def test_sorted_by_name(self, git, catalog, mods_dir):
        engine = ReconciliationEngine(git, catalog)
        mods = await engine.discover(mods_dir)
        names = [mod.name for mod in mods]
        assert names == sorted(names)

    @pytest.mark.asyncio
    async def test_behind_git_mod(self, git, catalog, mods_dir):
        engine = ReconciliationEngine(git, catalog)

        mod = self.by_name(await engine.discover(mods_dir))["CoreMod"]

        assert mod.source == ModSource.GIT
        assert mod.status == ModStatus.BEHIND
        assert mod.commits_behind == 3
        assert mod.branch == "main"
        assert mod.matched_repo_name == "CoreMod"
        assert mod.current_commit.short_hash == "fffffff"
        git.fetch.assert_any_call(mods_dir / "CoreMod")

    @pytest.mark.asyncio
    async def test_non_git_matched_folder(self, git, catalog, mods_dir):
        """A plain folder named like a repository is a NON_GIT mod."""
        engine = ReconciliationEngine(git, catalog)

        mod = self.by_name(await engine.discover(mods_dir))["Textures-main"]

        assert mod.source == ModSource.LOCAL
        assert mod.status == ModStatus.NON_GIT
        assert mod.matched_repo_name == "Textures"
        assert mod.path == str((mods_dir / "Textures-main").resolve())

    @pytest.mark.asyncio
    async def test_git_without_remote(self, git, catalog, mods_dir):
        engine = ReconciliationEngine(git, catalog)

        mod = self.by_name(await engine.discover(mods_dir))["NoRemote"]

        assert mod.source == ModSource.GIT
        assert mod.status == ModStatus.ERROR
        assert mod.error_message == "Git repository has no remote configured"

    @pytest.mark.asyncio
    async def test_fork_needs_name_match(self, git, catalog, mods_dir):
        """A clone of a fork is kept only when its folder name matches."""
        engine = ReconciliationEngine(git, catalog)

        mods = self.by_name(await engine.discover(mods_dir))

        assert "Weapons" in mods
        assert mods["Weapons"].status == ModStatus.UP_TO_DATE
        assert "ForkOfWeapons" not in mods
        assert "PersonalTool" not in mods

    @pytest.mark.asyncio
    async def test_org_remote_without_name_match(self, git, catalog, mods_dir):
        engine = ReconciliationEngine(git, catalog)

        mod = self.by_name(await engine.discover(mods_dir))["Renamed"]

        assert mod.status == ModStatus.UP_TO_DATE
        assert mod.matched_repo_name is None

    @pytest.mark.asyncio
    async def test_git_failure_degrades_to_error(self, git, catalog, mods_dir):
        """An exception while reading status yields an ERROR mod."""
        git.ahead_behind.side_effect = RuntimeError("index.lock exists")
        engine = ReconciliationEngine(git, catalog)

        mod = self.by_name(await engine.discover(mods_dir))["CoreMod"]

        assert mod.status == ModStatus.ERROR
        assert mod.error_message == "index.lock exists"
        assert mod.remote_url == ORG_URL.format("CoreMod")

    @pytest.mark.asyncio
    async def test_folder_exception_is_confined(self, catalog, tmp_path):
        """A folder that raises while examined is an ERROR mod; the scan goes on."""
        for folder in ["CoreMod", "Weapons"]:
            (tmp_path / folder).mkdir()
        git = make_git(
            {name: ORG_URL.format(name) for name in ["CoreMod", "Weapons"]}
        )

        def remote_url(path):
            if Path(path).name == "CoreMod":
                raise RuntimeError("config is locked")
            return ORG_URL.format(Path(path).name)

        git.remote_url.side_effect = remote_url
        engine = ReconciliationEngine(git, catalog)

        mods = self.by_name(await engine.discover(tmp_path))

        assert set(mods) == {"CoreMod", "Weapons"}
        assert mods["CoreMod"].status == ModStatus.ERROR
        assert mods["CoreMod"].error_message == "config is locked"
        assert mods["CoreMod"].matched_repo_name == "CoreMod"
        assert mods["Weapons"].status == ModStatus.UP_TO_DATE

    @pytest.mark.asyncio
    async def test_workshop_folder_is_flagged(self, git, catalog, mods_dir):
        about = mods_dir / "Textures-main" / "About"
        about.mkdir()
        (about / "PublishedFileId.txt").write_text("2009463077")
        engine = ReconciliationEngine(git, catalog)

        mods = self.by_name(await engine.discover(mods_dir))

        assert mods["Textures-main"].is_workshop
        assert mods["Textures-main"].source == ModSource.LOCAL
        assert not mods["CoreMod"].is_workshop

    @pytest.mark.asyncio
    async def test_fetch_failure_still_classifies(self, git, catalog, mods_dir):
        git.fetch.return_value = GitResult(returncode=1, stderr="offline")
        engine = ReconciliationEngine(git, catalog)

        mod = self.by_name(await engine.discover(mods_dir))["CoreMod"]

        assert mod.status == ModStatus.BEHIND

    @pytest.mark.asyncio
    async def test_statuses(self, catalog, tmp_path):
        for folder in ["CoreMod", "Textures", "Weapons", "NoRemote"]:
            (tmp_path / folder).mkdir()
        git = make_git(
            {name: ORG_URL.format(name) for name in ["CoreMod", "Textures", "Weapons"]},
            counts={"CoreMod": (2, 1), "Textures": (0, 4)},
            branches={"Weapons": None},
            dirty={"Textures"},
        )
        engine = ReconciliationEngine(git, catalog)

        mods = self.by_name(await engine.discover(tmp_path))

        assert mods["CoreMod"].status == ModStatus.DIVERGED
        assert mods["Textures"].status == ModStatus.LOCAL_CHANGES
        assert mods["Textures"].has_local_changes
        assert mods["Weapons"].status == ModStatus.UNKNOWN
        assert mods["NoRemote"].status == ModStatus.NON_GIT

    @pytest.mark.asyncio
    async def test_without_git_matches_by_name(self, git, catalog, mods_dir):
        """Without git every matched folder is reported as NON_GIT."""
        git.is_installed.return_value = False
        engine = ReconciliationEngine(git, catalog)

        mods = self.by_name(await engine.discover(mods_dir))

        assert set(mods) == {"CoreMod", "Textures-main", "NoRemote", "Weapons"}
        assert all(mod.status == ModStatus.NON_GIT for mod in mods.values())
        git.is_repository.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_directory(self, git, catalog, tmp_path):
        engine = ReconciliationEngine(git, catalog)
        assert await engine.discover(tmp_path / "missing") == []
        catalog.organization_repositories.assert_not_called()

    @pytest.mark.asyncio
    async def test_progress_messages(self, git, catalog, mods_dir):
        messages = []
        engine = ReconciliationEngine(git, catalog)

        await engine.discover(mods_dir, progress_callback=messages.append)

        assert "Scanning: CoreMod" in messages
        assert len(messages) == 8

    @pytest.mark.asyncio
    async def test_discover_is_repeatable(self, git, catalog, mods_dir):
        """Two scans of an unchanged directory give equal inventories."""
        engine = ReconciliationEngine(git, catalog)

        first = await engine.discover(mods_dir)
        second = await engine.discover(mods_dir)

        assert first == second

    @pytest.mark.asyncio
    async def test_organization_override(self, catalog, tmp_path):
        (tmp_path / "Tool").mkdir()
        git = make_git({"Tool": "https://github.com/Other/Tool.git"})
        engine = ReconciliationEngine(git, catalog, organization="Other")

        mods = await engine.discover(tmp_path)

        assert [mod.name for mod in mods] == ["Tool"]
