"""Time-based snapshot cache for catalog listings."""

from datetime import datetime, timedelta, timezone
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")

DEFAULT_CACHE_EXPIRY = timedelta(hours=1)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SnapshotCache(Generic[T]):
    """Holds a single snapshot that is fresh for a fixed period.

    The snapshot is replaced wholesale by ``store`` and never partially
    updated. Stale snapshots stay available through ``last`` so callers
    can fall back to them when a refresh fails.

    Examples:
        >>> cache = SnapshotCache(expiry=timedelta(minutes=5))
        >>> cache.fresh() is None
        True
        >>> cache.store(["CoreMod"])
        >>> cache.fresh()
        ['CoreMod']
    """

    def __init__(
        self,
        expiry: timedelta = DEFAULT_CACHE_EXPIRY,
        now: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the cache.

        Args:
            expiry: How long a stored snapshot counts as fresh
            now: Clock returning an aware datetime (defaults to UTC now)
        """
        self.expiry = expiry
        self._now = now or _utcnow
        self._value: Optional[T] = None
        self._stored_at: Optional[datetime] = None

    def fresh(self) -> Optional[T]:
        """Return the snapshot if it is inside the expiry window."""
        if self._value is None or self._stored_at is None:
            return None
        if self._now() - self._stored_at < self.expiry:
            return self._value
        return None

    def last(self) -> Optional[T]:
        """Return the last stored snapshot regardless of its age."""
        return self._value

    def store(self, value: T) -> None:
        """Replace the snapshot and restart the expiry window."""
        self._value = value
        self._stored_at = self._now()

    def clear(self) -> None:
        """Drop the snapshot."""
        self._value = None
        self._stored_at = None

    @property
    def stored_at(self) -> Optional[datetime]:
        """When the current snapshot was stored."""
        return self._stored_at
