"""Sequential batch execution with per-item results."""

import logging
from collections.abc import Awaitable, Sequence
from typing import Callable, Generic, Optional, Protocol, TypeVar

from ..models import BatchResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

PercentCallback = Callable[[float], None]
ItemOperation = Callable[[T, PercentCallback], Awaitable[tuple[bool, Optional[str]]]]


class BatchObserver(Protocol):
    """Receives progress events while a batch runs."""

    def batch_started(self, description: str, total: int) -> None: ...

    def item_started(self, name: str) -> None: ...

    def item_progress(self, name: str, percent: float) -> None: ...

    def item_finished(self, result: BatchResult) -> None: ...


class BatchExecutor(Generic[T]):
    """Runs an operation over items one at a time.

    Every item is attempted exactly once. A failing or raising item is
    recorded and the batch moves on; nothing here retries. The result list
    has one entry per item, in input order.

    Examples:
        >>> executor = BatchExecutor()
        >>> results = await executor.run_batch(mods, lambda m: m.name, ops.update)
        >>> failed = failure_count(results)
    """

    def __init__(
        self,
        observer: Optional[BatchObserver] = None,
        description: str = "Processing",
    ):
        """Initialize batch executor.

        Args:
            observer: Optional progress observer
            description: Label passed to the observer when a batch starts
        """
        self.observer = observer
        self.description = description
        self.completed: list[BatchResult] = []
        """Results gathered so far; still readable after a cancelled batch"""

    async def run_batch(
        self,
        items: Sequence[T],
        name_of: Callable[[T], str],
        operation: ItemOperation,
    ) -> list[BatchResult]:
        """Run operation for every item.

        Args:
            items: Items to process
            name_of: Display name for an item
            operation: Coroutine function called as ``operation(item, progress)``
                returning ``(success, error_message)``

        Returns:
            One BatchResult per item, in input order

        Raises:
            asyncio.CancelledError: If the calling task is cancelled; results
                collected so far remain in ``completed``
        """
        self.completed = []
        if self.observer:
            self.observer.batch_started(self.description, len(items))

        for item in items:
            name = self._name(item, name_of)
            if self.observer:
                self.observer.item_started(name)

            def progress(percent: float, _name: str = name) -> None:
                if self.observer:
                    self.observer.item_progress(_name, percent)

            try:
                success, error = await operation(item, progress)
                result = BatchResult(
                    name=name,
                    success=bool(success),
                    error=None if success else (error or "Unknown error"),
                )
            except Exception as e:
                logger.debug(f"{self.description}: {name} raised {e!r}")
                result = BatchResult(
                    name=name, success=False, error=str(e) or type(e).__name__
                )

            self.completed.append(result)
            if self.observer:
                self.observer.item_finished(result)

        return list(self.completed)

    @staticmethod
    def _name(item: T, name_of: Callable[[T], str]) -> str:
        """Display name for an item, falling back to repr if the selector fails."""
        try:
            return name_of(item)
        except Exception as e:
            logger.debug(f"Name selector failed for {item!r}: {e!r}")
            return repr(item)


def failure_count(results: Sequence[BatchResult]) -> int:
    """Count failed items in a batch."""
    return sum(1 for result in results if not result.success)
