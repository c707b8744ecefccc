"""Status classification for git-managed mods."""

from typing import Optional

from ..models import ModStatus


def classify_status(
    branch: Optional[str],
    behind: int,
    ahead: int,
    has_local_changes: bool,
) -> ModStatus:
    """Determine the synchronization status of a git checkout.

    Conditions are checked in order and the first match wins:
    detached HEAD, local modifications, diverged, behind, ahead.

    Args:
        branch: Current branch, None for a detached HEAD
        behind: Commits on the upstream branch missing locally
        ahead: Local commits missing on the upstream branch
        has_local_changes: Whether the working tree has modifications

    Returns:
        The mod's status
    """
    if branch is None:
        return ModStatus.UNKNOWN
    if has_local_changes:
        return ModStatus.LOCAL_CHANGES
    if behind > 0 and ahead > 0:
        return ModStatus.DIVERGED
    if behind > 0:
        return ModStatus.BEHIND
    if ahead > 0:
        return ModStatus.AHEAD
    return ModStatus.UP_TO_DATE
