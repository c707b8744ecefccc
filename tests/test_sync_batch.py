"""Tests for the batch executor."""

import asyncio
from unittest.mock import Mock

import pytest

from modsync.models import BatchResult
from modsync.sync.batch import BatchExecutor, BatchObserver, failure_count


class TestBatchExecutor:
    """Test BatchExecutor ordering, isolation and observer events."""

    @pytest.mark.asyncio
    async def test_all_succeed(self):
        async def operation(item, progress):
            progress(100)
            return (True, None)

        results = await BatchExecutor().run_batch(["a", "b"], str, operation)

        assert results == [BatchResult("a", True), BatchResult("b", True)]
        assert failure_count(results) == 0

    @pytest.mark.asyncio
    async def test_raising_item_does_not_stop_batch(self):
        """Item 2 of 5 raising still yields five results in input order."""
        attempted = []

        async def operation(item, progress):
            attempted.append(item)
            if item == 2:
                raise RuntimeError("disk full")
            return (True, None)

        results = await BatchExecutor().run_batch([1, 2, 3, 4, 5], str, operation)

        assert attempted == [1, 2, 3, 4, 5]
        assert [r.name for r in results] == ["1", "2", "3", "4", "5"]
        assert results[1] == BatchResult("2", False, "disk full")
        assert failure_count(results) == 1

    @pytest.mark.asyncio
    async def test_reported_failure(self):
        async def operation(item, progress):
            return (False, "Pull failed: not a fast-forward")

        results = await BatchExecutor().run_batch(["a"], str, operation)

        assert results == [BatchResult("a", False, "Pull failed: not a fast-forward")]

    @pytest.mark.asyncio
    async def test_failure_without_message(self):
        async def operation(item, progress):
            return (False, None)

        results = await BatchExecutor().run_batch(["a"], str, operation)

        assert results[0].error == "Unknown error"

    @pytest.mark.asyncio
    async def test_exception_without_message_uses_type(self):
        async def operation(item, progress):
            raise KeyError()

        results = await BatchExecutor().run_batch(["a"], str, operation)

        assert results[0].error == "KeyError"

    @pytest.mark.asyncio
    async def test_raising_name_selector_uses_repr(self):
        """A failing name selector does not abort the batch."""

        def name_of(item):
            if item == 2:
                raise AttributeError("no name")
            return f"item-{item}"

        async def operation(item, progress):
            return (True, None)

        results = await BatchExecutor().run_batch([1, 2, 3], name_of, operation)

        assert [r.name for r in results] == ["item-1", "2", "item-3"]
        assert all(r.success for r in results)

    @pytest.mark.asyncio
    async def test_empty_batch(self):
        observer = Mock(spec=BatchObserver)

        async def operation(item, progress):
            return (True, None)

        results = await BatchExecutor(observer).run_batch([], str, operation)

        assert results == []
        observer.batch_started.assert_called_once_with("Processing", 0)
        observer.item_started.assert_not_called()

    @pytest.mark.asyncio
    async def test_observer_events(self):
        """Test the observer sees start, progress and finish for each item."""
        observer = Mock(spec=BatchObserver)

        async def operation(item, progress):
            progress(50)
            return (item != "b", None if item != "b" else "nope")

        executor = BatchExecutor(observer, description="Updating")
        results = await executor.run_batch(["a", "b"], str, operation)

        observer.batch_started.assert_called_once_with("Updating", 2)
        assert [c.args[0] for c in observer.item_started.call_args_list] == ["a", "b"]
        observer.item_progress.assert_any_call("a", 50)
        observer.item_progress.assert_any_call("b", 50)
        finished = [c.args[0] for c in observer.item_finished.call_args_list]
        assert finished == results

    @pytest.mark.asyncio
    async def test_cancellation_keeps_completed(self):
        """Cancelling mid-batch propagates and leaves partial results."""
        started = asyncio.Event()

        async def operation(item, progress):
            if item == "slow":
                started.set()
                await asyncio.sleep(60)
            return (True, None)

        executor = BatchExecutor()
        task = asyncio.create_task(
            executor.run_batch(["fast", "slow", "never"], str, operation)
        )
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert executor.completed == [BatchResult("fast", True)]
