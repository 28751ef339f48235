"""
Debouncing of vault change events.

Obsidian saves a note every few seconds while it is being edited, so changes
arrive as a steady trickle. The debouncer folds them into one DebouncedBatch
and hands it over once the vault has been quiet for ``delay_ms``, or once the
oldest pending change has waited ``max_wait_ms``, whichever comes first.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Optional

from vaultindex.core.file_events import DebouncedBatch, FileEvent

logger = logging.getLogger(__name__)

BatchCallback = Callable[[DebouncedBatch], Awaitable[None]]


class Debouncer:
    """
    Folds vault changes into batches separated by quiet periods.

    One worker task sleeps until the pending batch is due. New changes push
    the quiet deadline back, but never past the max-wait ceiling. A batch
    that is being handed over is not interrupted by later changes; those
    start the next batch.

    Args:
        delay_ms: Quiet period that closes a batch
        on_batch_ready: Coroutine receiving each closed batch
        max_wait_ms: Longest time the first change of a batch may wait;
            None lets a steady stream of edits postpone the batch indefinitely
    """

    def __init__(
        self,
        delay_ms: int = 3000,
        on_batch_ready: Optional[BatchCallback] = None,
        max_wait_ms: Optional[int] = None,
    ):
        if delay_ms < 0:
            raise ValueError("delay_ms must not be negative")
        if max_wait_ms is not None and max_wait_ms < delay_ms:
            raise ValueError("max_wait_ms must not be shorter than delay_ms")
        self._delay = delay_ms / 1000.0
        self._max_wait = None if max_wait_ms is None else max_wait_ms / 1000.0
        self._on_batch_ready = on_batch_ready
        self._pending = DebouncedBatch()
        self._first_change_at: Optional[float] = None
        self._last_change_at: Optional[float] = None
        self._worker: Optional[asyncio.Task[None]] = None
        self._lock = asyncio.Lock()

    @property
    def delay_ms(self) -> int:
        return round(self._delay * 1000)

    @property
    def max_wait_ms(self) -> Optional[int]:
        return None if self._max_wait is None else round(self._max_wait * 1000)

    def due_at(self) -> Optional[float]:
        """Monotonic time at which the pending batch closes, or None when idle."""
        if self._last_change_at is None:
            return None
        due = self._last_change_at + self._delay
        if self._max_wait is not None:
            due = min(due, self._first_change_at + self._max_wait)
        return due

    async def add_event(self, event: FileEvent) -> None:
        """Fold ``event`` into the pending batch and make sure a worker is waiting."""
        async with self._lock:
            now = time.monotonic()
            self._pending.merge(event)
            if self._first_change_at is None:
                self._first_change_at = now
            self._last_change_at = now
            if self._worker is None or self._worker.done():
                self._worker = asyncio.create_task(self._wait_until_due())

    async def _wait_until_due(self) -> None:
        while True:
            async with self._lock:
                due = self.due_at()
                if due is None:
                    self._worker = None
                    return
                remaining = due - time.monotonic()
                if remaining <= 0:
                    # Later changes start a fresh worker instead of joining this hand-over.
                    self._worker = None
                    batch = self._take_pending()
                    break
            await asyncio.sleep(remaining)

        await self._dispatch(batch)

    async def _stop_worker(self) -> None:
        worker, self._worker = self._worker, None
        if worker is None or worker.done() or worker is asyncio.current_task():
            return
        worker.cancel()
        try:
            await worker
        except asyncio.CancelledError:
            pass

    def _take_pending(self) -> DebouncedBatch:
        batch = self._pending.copy()
        self._pending.clear()
        self._first_change_at = None
        self._last_change_at = None
        return batch

    async def _dispatch(self, batch: DebouncedBatch) -> None:
        if batch.is_empty() or self._on_batch_ready is None:
            return
        logger.debug(
            f"Debounced {batch.total_count()} vault change(s)",
            extra={"paths": sorted(batch.all_paths())},
        )
        try:
            await self._on_batch_ready(batch)
        except Exception as e:
            logger.error(f"Error in batch callback: {e}", exc_info=True)

    async def flush(self) -> DebouncedBatch:
        """
        Hand over the pending batch now, without waiting for it to become due.

        Returns:
            The batch that was handed over (may be empty)
        """
        async with self._lock:
            await self._stop_worker()
            batch = self._take_pending()

        await self._dispatch(batch)
        return batch

    async def cancel(self) -> None:
        """Drop the pending batch without handing it over."""
        async with self._lock:
            await self._stop_worker()
            self._take_pending()

    def get_pending_count(self) -> int:
        return self._pending.total_count()

    def has_pending(self) -> bool:
        return not self._pending.is_empty()
