"""Check whether a newer modsync release is available."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from . import __version__
from .api import CatalogClient
from .exceptions import ModSyncAPIError
from .models import ReleaseInfo
from .utils import parse_version

logger = logging.getLogger(__name__)

RELEASE_OWNER = "FalloutCollaborationProject"
RELEASE_REPO = "FCP-Mod-Updater"


@dataclass(frozen=True)
class UpdateCheckResult:
    """A release newer than the running version."""

    current_version: str
    latest_version: str
    release_url: str
    release_name: str
    published_at: Optional[datetime]
    is_prerelease: bool


def newest_release(releases: list[ReleaseInfo]) -> Optional[ReleaseInfo]:
    """Pick the non-draft release with the highest numeric version.

    Pre-release suffixes are ignored when comparing, so "1.2.0-beta" and
    "1.2.0" rank the same and the first one listed wins.
    """
    newest: Optional[ReleaseInfo] = None
    newest_version: Optional[tuple[int, ...]] = None

    for release in releases:
        if release.draft:
            continue
        version = parse_version(release.tag_name)
        if version is None:
            continue
        if newest_version is None or version > newest_version:
            newest, newest_version = release, version

    return newest


async def check_for_update(
    catalog: CatalogClient,
    current_version: str = __version__,
    owner: str = RELEASE_OWNER,
    repo: str = RELEASE_REPO,
) -> Optional[UpdateCheckResult]:
    """Look for a release newer than current_version.

    The check is best effort: any API failure or unparseable version
    returns None.
    """
    try:
        releases = await catalog.releases(owner, repo)
    except ModSyncAPIError as e:
        logger.debug(f"Update check failed: {e}")
        return None

    newest = newest_release(releases)
    current = parse_version(current_version)
    if newest is None or current is None:
        return None

    latest = parse_version(newest.tag_name)
    if latest is None or latest <= current:
        return None

    return UpdateCheckResult(
        current_version=current_version,
        latest_version=newest.tag_name.lstrip("vV"),
        release_url=newest.html_url,
        release_name=newest.name,
        published_at=newest.published_at,
        is_prerelease=newest.prerelease,
    )
