"""
Cooperative cancellation for long-running indexing work.

A single CancellationSignal is threaded through an indexing run. Callers set
it from anywhere on the event loop; awaiting code checks it between steps,
and in-flight provider calls and backoff sleeps are raced against it so they
abort promptly.
"""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

T = TypeVar("T")


class OperationCancelledError(Exception):
    """Raised when work is abandoned because cancellation was requested."""

    pass


class CancellationSignal:
    """Shared, one-shot cancellation flag backed by an asyncio.Event."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        """Request cancellation. Idempotent."""
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelledError if cancellation was requested."""
        if self._event.is_set():
            raise OperationCancelledError("Operation cancelled")

    async def sleep(self, delay: float) -> None:
        """Sleep for ``delay`` seconds, waking early if cancelled.

        Raises:
            OperationCancelledError: If cancellation arrives before or during the wait
        """
        self.raise_if_cancelled()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise OperationCancelledError("Operation cancelled while waiting")

    async def run(self, awaitable: Awaitable[T]) -> T:
        """
        Await ``awaitable`` unless cancellation wins the race.

        The wrapped task is cancelled when the signal fires first.

        Raises:
            OperationCancelledError: If cancelled before the awaitable finished
        """
        self.raise_if_cancelled()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        raise OperationCancelledError("Operation cancelled while in flight")
