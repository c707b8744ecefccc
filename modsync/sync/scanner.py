"""Mod folder listing and catalog name matching."""

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Optional

from ..models import RemoteRepository

logger = logging.getLogger(__name__)

# Archive downloads name the folder "<repo>-<branch>"
BRANCH_ARCHIVE_SUFFIXES: tuple[str, ...] = ("-main", "-master", "-develop", "-dev")


class CatalogMatcher:
    """Matches folder names against catalog repository names.

    Matching ignores case. The exact folder name is tried first; if that
    fails, each branch archive suffix is stripped in turn and the remainder
    is tried.

    Examples:
        >>> matcher = CatalogMatcher([RemoteRepository("CoreMod", "", "main", "")])
        >>> matcher.match("CoreMod-main")
        'CoreMod'
        >>> matcher.match("RandomFolder") is None
        True
    """

    def __init__(
        self,
        repositories: Iterable[RemoteRepository],
        suffixes: tuple[str, ...] = BRANCH_ARCHIVE_SUFFIXES,
    ):
        """Initialize the matcher.

        Args:
            repositories: Catalog entries to match against
            suffixes: Folder name suffixes to strip when the exact name
                does not match
        """
        self.suffixes = suffixes
        self._names: dict[str, RemoteRepository] = {}
        for repository in repositories:
            self._names.setdefault(repository.name.casefold(), repository)

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.casefold() in self._names

    def lookup(self, folder_name: str) -> Optional[RemoteRepository]:
        """Find the catalog repository a folder name refers to."""
        repository = self._names.get(folder_name.casefold())
        if repository is not None:
            return repository

        lowered = folder_name.casefold()
        for suffix in self.suffixes:
            if lowered.endswith(suffix) and len(lowered) > len(suffix):
                repository = self._names.get(lowered[: -len(suffix)])
                if repository is not None:
                    logger.debug(
                        f"Matched {folder_name} to {repository.name} "
                        f"by stripping {suffix}"
                    )
                    return repository
        return None

    def match(self, folder_name: str) -> Optional[str]:
        """Get the canonical catalog name for a folder, None if unmatched."""
        repository = self.lookup(folder_name)
        return repository.name if repository else None


def is_organization_remote(
    remote_url: str, organization: str, host: str = "github.com"
) -> bool:
    """Check whether a remote URL points into the organization.

    Both HTTPS (``https://host/org/repo``) and SCP-style SSH
    (``git@host:org/repo``) URLs are recognized; comparison ignores case.
    """
    url = remote_url.casefold()
    org = organization.casefold().strip("/")
    host = host.casefold()
    return f"{host}/{org}/" in url or f"{host}:{org}/" in url


def list_mod_folders(directory: Path) -> list[Path]:
    """List the immediate subdirectories of the mods directory.

    Hidden folders are skipped. Results are sorted by name.

    Args:
        directory: Mods directory

    Returns:
        Subdirectory paths, empty if the directory does not exist
    """
    if not directory.is_dir():
        return []

    folders: list[Path] = []
    try:
        for item in directory.iterdir():
            if item.name.startswith("."):
                continue
            try:
                if item.is_dir():
                    folders.append(item)
            except OSError:
                # Skip entries we can't stat
                continue
    except PermissionError as e:
        logger.warning(f"Permission denied listing {directory}: {e}")

    return sorted(folders, key=lambda p: p.name)
