"""Reconciliation engine mapping local mod folders to catalog repositories."""

import logging
from pathlib import Path
from typing import Callable, Optional, Protocol

from ..config import DEFAULT_HOST
from ..git import VersionControl
from ..models import InstalledMod, ModSource, ModStatus, RemoteRepository
from .comparator import classify_status
from .scanner import CatalogMatcher, is_organization_remote, list_mod_folders

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]

WORKSHOP_MARKER = Path("About") / "PublishedFileId.txt"


class RepositoryCatalog(Protocol):
    """Source of the organization's repository list."""

    organization: str

    async def organization_repositories(self) -> list[RemoteRepository]: ...

    async def repository_by_name(self, name: str) -> Optional[RemoteRepository]: ...


class ReconciliationEngine:
    """Scans a mods directory and classifies each organization mod.

    A folder is part of the inventory when it is a git checkout whose remote
    points into the organization, or when its name (optionally without a
    branch archive suffix) matches a catalog repository. Everything else is
    ignored.

    Folders are examined one at a time so that the fetch issued for each
    git mod does not hammer the network or the local git installation.
    """

    def __init__(
        self,
        git: VersionControl,
        catalog: RepositoryCatalog,
        organization: Optional[str] = None,
        host: str = DEFAULT_HOST,
    ):
        """Initialize reconciliation engine.

        Args:
            git: Version control client
            catalog: Organization repository catalog
            organization: Organization name (defaults to the catalog's)
            host: Host that organization remotes point at
        """
        self.git = git
        self.catalog = catalog
        self.organization = organization or catalog.organization
        self.host = host

    async def discover(
        self,
        directory: Path,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> list[InstalledMod]:
        """Build the mod inventory for a directory.

        Args:
            directory: Mods directory to scan
            progress_callback: Optional callback receiving status messages

        Returns:
            Installed mods sorted by name (ordinal comparison)

        Raises:
            asyncio.CancelledError: If the calling task is cancelled
        """
        directory = Path(directory)
        if not directory.is_dir():
            logger.warning(f"Mods directory does not exist: {directory}")
            return []

        git_installed = await self.git.is_installed()
        if not git_installed:
            logger.warning("git not found, matching mod folders by name only")

        repositories = await self.catalog.organization_repositories()
        matcher = CatalogMatcher(repositories)
        logger.debug(f"Catalog for {self.organization} has {len(matcher)} repositories")

        mods: list[InstalledMod] = []
        for folder in list_mod_folders(directory):
            if progress_callback:
                progress_callback(f"Scanning: {folder.name}")

            try:
                mod = await self._analyze_folder(folder, matcher, git_installed)
            except Exception as e:
                logger.warning(f"Could not examine {folder.name}: {e}")
                mod = InstalledMod(
                    name=folder.name,
                    path=str(folder.absolute()),
                    source=ModSource.LOCAL,
                    status=ModStatus.ERROR,
                    matched_repo_name=matcher.match(folder.name),
                    error_message=str(e) or type(e).__name__,
                )
            if mod is not None:
                mods.append(mod)

        mods.sort(key=lambda m: m.name)
        return mods

    async def _analyze_folder(
        self,
        folder: Path,
        matcher: CatalogMatcher,
        git_installed: bool,
    ) -> Optional[InstalledMod]:
        """Classify a single folder, None if it is not an organization mod."""
        name = folder.name
        path = str(folder.resolve())
        matched_name = matcher.match(name)

        if not git_installed or not await self.git.is_repository(folder):
            if matched_name is None:
                return None
            return InstalledMod(
                name=name,
                path=path,
                source=ModSource.LOCAL,
                status=ModStatus.NON_GIT,
                matched_repo_name=matched_name,
                is_workshop=is_workshop_folder(folder),
            )

        remote_url = await self.git.remote_url(folder)
        if not remote_url:
            if matched_name is None:
                return None
            return InstalledMod(
                name=name,
                path=path,
                source=ModSource.GIT,
                status=ModStatus.ERROR,
                error_message="Git repository has no remote configured",
                matched_repo_name=matched_name,
            )

        if not is_organization_remote(remote_url, self.organization, self.host):
            # Could be a clone of a fork; keep it only if the name matches
            if matched_name is None:
                logger.debug(f"Skipping {name}: remote {remote_url} is not ours")
                return None

        return await self._build_git_mod(folder, path, remote_url, matched_name)

    async def _build_git_mod(
        self,
        folder: Path,
        path: str,
        remote_url: str,
        matched_name: Optional[str],
    ) -> InstalledMod:
        """Collect full git status; failures degrade the mod to ERROR."""
        try:
            branch = await self.git.current_branch(folder)
            commit = await self.git.current_commit(folder)
            has_local_changes = await self.git.has_local_modifications(folder)

            # Fetch first so the ahead/behind counts reflect the remote
            fetched = await self.git.fetch(folder)
            if not fetched:
                logger.warning(f"Fetch failed for {folder.name}: {fetched.error}")

            behind, ahead = await self.git.ahead_behind(folder)
            status = classify_status(branch, behind, ahead, has_local_changes)

            return InstalledMod(
                name=folder.name,
                path=path,
                source=ModSource.GIT,
                status=status,
                remote_url=remote_url,
                branch=branch,
                current_commit=commit,
                commits_behind=behind,
                commits_ahead=ahead,
                matched_repo_name=matched_name,
                has_local_changes=has_local_changes,
            )
        except Exception as e:
            logger.warning(f"Could not determine status of {folder.name}: {e}")
            return InstalledMod(
                name=folder.name,
                path=path,
                source=ModSource.GIT,
                status=ModStatus.ERROR,
                remote_url=remote_url,
                matched_repo_name=matched_name,
                error_message=str(e) or type(e).__name__,
            )


def is_workshop_folder(folder: Path) -> bool:
    """Check whether a mod folder was installed by the Steam Workshop."""
    return (folder / WORKSHOP_MARKER).is_file()
