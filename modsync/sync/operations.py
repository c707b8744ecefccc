"""Mod operations used as batch items: update, install, uninstall, convert."""

import asyncio
import logging
import os
import shutil
import stat
import sys
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Optional

from ..exceptions import ModSyncNotFoundError
from ..git import GitResult, VersionControl
from ..models import InstalledMod, ModStatus, RemoteRepository
from .batch import PercentCallback
from .engine import RepositoryCatalog

logger = logging.getLogger(__name__)

OperationResult = tuple[bool, Optional[str]]


def _clear_readonly(func, path, _exc) -> None:
    """rmtree error handler: git marks pack files read-only on Windows."""
    os.chmod(path, stat.S_IWRITE)
    func(path)


def remove_folder(path: Path) -> None:
    """Delete a folder and everything in it."""
    if sys.version_info >= (3, 12):
        shutil.rmtree(path, onexc=_clear_readonly)
    else:
        shutil.rmtree(path, onerror=_clear_readonly)


class ModOperations:
    """Per-item operations over installed mods and catalog repositories.

    Each batch operation takes ``(item, progress)`` and returns
    ``(success, error_message)``, the shape BatchExecutor expects.
    """

    def __init__(
        self,
        git: VersionControl,
        catalog: RepositoryCatalog,
        mods_directory: Path,
    ):
        """Initialize mod operations.

        Args:
            git: Version control client
            catalog: Organization repository catalog
            mods_directory: Directory new mods are installed into
        """
        self.git = git
        self.catalog = catalog
        self.mods_directory = Path(mods_directory)

    # =========================
    # Batch operations
    # =========================

    async def update(
        self, mod: InstalledMod, progress: PercentCallback
    ) -> OperationResult:
        """Fetch and fast-forward a git mod."""
        progress(25)
        fetched = await self.git.fetch(mod.path)
        if not fetched:
            return (False, f"Fetch failed: {fetched.error}")

        progress(50)
        pulled = await self.git.pull(mod.path)
        progress(100)
        if not pulled:
            return (False, f"Pull failed: {pulled.error}")
        return (True, None)

    async def install(
        self, repository: RemoteRepository, progress: PercentCallback
    ) -> OperationResult:
        """Clone a catalog repository into the mods directory."""
        target = self.mods_directory / repository.name
        if target.exists():
            return (False, f"Folder already exists: {target}")

        cloned = await self.git.clone(repository.clone_url, target, progress)
        if not cloned:
            return (False, f"Clone failed: {cloned.error}")
        return (True, None)

    async def uninstall(
        self, mod: InstalledMod, progress: PercentCallback
    ) -> OperationResult:
        """Delete a mod folder."""
        logger.info(f"Removing {mod.path}")
        await asyncio.to_thread(remove_folder, Path(mod.path))
        progress(100)
        return (True, None)

    async def convert(
        self, mod: InstalledMod, progress: PercentCallback
    ) -> OperationResult:
        """Replace a plain mod folder with a fresh clone of its repository."""
        if not mod.matched_repo_name:
            return (False, "Mod does not match a repository")

        repository = await self.catalog.repository_by_name(mod.matched_repo_name)
        if repository is None:
            return (False, "Repository not found")

        target = Path(mod.path)
        logger.info(f"Replacing {target} with a clone of {repository.clone_url}")
        await asyncio.to_thread(remove_folder, target)

        cloned = await self.git.clone(repository.clone_url, target, progress)
        if not cloned:
            return (False, f"Clone failed: {cloned.error}")
        return (True, None)

    # =========================
    # Single-mod operations
    # =========================

    async def switch_branch(self, mod: InstalledMod, branch: str) -> GitResult:
        """Fetch, then check out a remote branch."""
        await self.git.fetch(mod.path)
        branches = await self.git.remote_branches(mod.path)
        if branch not in branches:
            return GitResult(returncode=-1, stderr=f"No remote branch named {branch}")
        return await self.git.checkout(mod.path, branch)

    async def checkout_commit(self, mod: InstalledMod, ref: str) -> GitResult:
        """Check out a commit, leaving the mod in detached HEAD state."""
        return await self.git.checkout(mod.path, ref)

    async def reset_to_commit(self, mod: InstalledMod, commit_hash: str) -> GitResult:
        """Move the current branch to a commit, discarding later work."""
        return await self.git.reset_hard(mod.path, commit_hash)


# =========================
# Selection helpers
# =========================


def updatable_mods(mods: Iterable[InstalledMod]) -> list[InstalledMod]:
    """Git mods that are behind their upstream and can fast-forward."""
    return [mod for mod in mods if mod.is_git and mod.status == ModStatus.BEHIND]


def convertible_mods(mods: Iterable[InstalledMod]) -> list[InstalledMod]:
    """Plain folders that match a catalog repository."""
    return [mod for mod in mods if not mod.is_git and mod.matched_repo_name]


def installable_repositories(
    repositories: Iterable[RemoteRepository], mods: Iterable[InstalledMod]
) -> list[RemoteRepository]:
    """Catalog repositories with no installed folder, sorted by name."""
    installed = set()
    for mod in mods:
        installed.add(mod.name.casefold())
        if mod.matched_repo_name:
            installed.add(mod.matched_repo_name.casefold())
    available = [r for r in repositories if r.name.casefold() not in installed]
    return sorted(available, key=lambda r: r.name)


def find_mod(mods: Sequence[InstalledMod], name: str) -> InstalledMod:
    """Find an installed mod by name, ignoring case.

    Raises:
        ModSyncNotFoundError: If no mod has that name
    """
    wanted = name.casefold()
    for mod in mods:
        if mod.name.casefold() == wanted:
            return mod
    raise ModSyncNotFoundError(f"No installed mod named {name}")


def find_mods(mods: Sequence[InstalledMod], names: Iterable[str]) -> list[InstalledMod]:
    """Find several installed mods by name, preserving the requested order."""
    return [find_mod(mods, name) for name in names]
