"""Utility functions for modsync."""

from datetime import datetime, timezone
from typing import Optional

# =============================================================================
# Constants for git and API operations
# =============================================================================

# Timeout for a single git command (seconds)
DEFAULT_GIT_TIMEOUT: float = 30.0

# Clones transfer whole histories and get a longer budget
DEFAULT_CLONE_TIMEOUT: float = DEFAULT_GIT_TIMEOUT * 10

# Page size for organization repository listing
DEFAULT_PAGE_SIZE: int = 100

# Retry configuration for transient API errors
DEFAULT_MAX_RETRIES: int = 2
DEFAULT_RETRY_DELAY: float = 1.0  # seconds

# Default number of commits shown by history views
DEFAULT_HISTORY_LIMIT: int = 20
DEFAULT_INCOMING_LIMIT: int = 10


# =============================================================================
# Timestamp parsing utilities
# =============================================================================


def parse_iso_timestamp(timestamp_str: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp from git or the hosting API.

    Args:
        timestamp_str: ISO format timestamp (e.g., "2025-01-15T10:30:00Z" or
            "2025-01-15T12:30:00+02:00")

    Returns:
        Timezone-aware datetime, or None if parsing fails. Naive input is
        assumed to be UTC.
    """
    if not timestamp_str:
        return None

    timestamp_str = timestamp_str.strip()
    # The 'Z' suffix indicates UTC time
    if timestamp_str.endswith("Z"):
        timestamp_str = timestamp_str[:-1] + "+00:00"

    try:
        dt = datetime.fromisoformat(timestamp_str)
    except ValueError:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_local_time(dt: Optional[datetime], fmt: str = "%Y-%m-%d %H:%M") -> str:
    """Format an aware datetime in the local timezone.

    Args:
        dt: Datetime to format
        fmt: strftime format

    Returns:
        Formatted string, or "-" when dt is None
    """
    if dt is None:
        return "-"
    return dt.astimezone().strftime(fmt)


# =============================================================================
# Text utilities
# =============================================================================


def truncate(text: Optional[str], max_length: int) -> str:
    """Shorten text to max_length characters, ending with an ellipsis.

    Examples:
        >>> truncate("A very long description", 10)
        'A very ...'
        >>> truncate("short", 10)
        'short'
    """
    if not text or len(text) <= max_length:
        return text or ""
    return text[: max_length - 3] + "..."


def parse_version(version: str) -> Optional[tuple[int, ...]]:
    """Parse the numeric base of a version string.

    A leading "v" and any pre-release ("-rc.1") or build ("+g1234") suffix
    are ignored.

    Examples:
        >>> parse_version("v1.2.3-beta.1")
        (1, 2, 3)
        >>> parse_version("not-a-version") is None
        True
    """
    base = version.strip().lstrip("vV")
    for separator in ("+", "-"):
        base = base.split(separator, 1)[0]
    parts = base.split(".")
    if not parts or not all(part.isdigit() for part in parts):
        return None
    numbers = [int(part) for part in parts]
    # Pad so "1.2" and "1.2.0" compare equal
    while len(numbers) < 3:
        numbers.append(0)
    return tuple(numbers)
