"""
Auto-update service: re-indexes the vault after notes change.

Vault changes are filtered by the run's include/exclude patterns, dropped
while the cool-down since the last successful update has not elapsed, and
debounced into a single incremental update. The time of the last successful
update is kept in a small JSON state file so the cool-down survives restarts.
"""

import asyncio
import concurrent.futures
import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Optional

from vaultindex.core.config import AutoUpdateConfig
from vaultindex.core.debouncer import Debouncer
from vaultindex.core.file_events import DebouncedBatch, FileEvent, FileEventType
from vaultindex.core.path_filter import PathFilter
from vaultindex.infrastructure.file_watcher import FileWatcherInterface
from vaultindex.services.indexing_models import IndexingResult, IndexUpdateOptions
from vaultindex.services.indexing_service import IndexingService

logger = logging.getLogger(__name__)


@dataclass
class AutoUpdateStats:
    """Counters for the auto-update service."""

    started_at: datetime = field(default_factory=datetime.now)
    events_received: int = 0
    events_ignored: int = 0
    updates_triggered: int = 0
    updates_skipped: int = 0
    last_update_duration_ms: float = 0.0
    errors: int = 0

    def to_dict(self) -> dict:
        """Serialize stats to dictionary for JSON reporting."""
        return {
            "started_at": self.started_at.isoformat(),
            "events_received": self.events_received,
            "events_ignored": self.events_ignored,
            "updates_triggered": self.updates_triggered,
            "updates_skipped": self.updates_skipped,
            "last_update_duration_ms": self.last_update_duration_ms,
            "errors": self.errors,
        }


class AutoUpdateStateFile:
    """
    JSON file remembering when the last successful auto-update finished.

    Args:
        path: Location of the state file
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Optional[float]:
        """Return the stored epoch seconds, or None if absent or unreadable."""
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            value = data.get("last_update_at")
            return float(value) if value is not None else None
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable auto-update state {self.path}: {e}")
            return None

    def save(self, last_update_at: float) -> None:
        """
        Write ``last_update_at`` to the state file.

        Creates the parent directory if it doesn't exist.

        Raises:
            OSError: If the file cannot be written
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps({"last_update_at": last_update_at}, indent=2), encoding="utf-8"
        )


class AutoUpdateError(Exception):
    """Base exception for auto-update errors."""

    pass


class AutoUpdateService:
    """
    Triggers incremental index updates when watched notes change.

    Args:
        indexing_service: Service that performs the updates
        options: Update options; ``reindex_all`` is ignored, updates are
            always incremental
        config: Enable flag, cool-down interval and debounce delay
        watcher: Vault watcher used by ``start``
        clock: Returns the current time in seconds since the epoch
        last_update_at: Time of the last successful update, if known
        state_file: Where the last update time is persisted; read at
            construction when ``last_update_at`` is not given
    """

    def __init__(
        self,
        indexing_service: IndexingService,
        options: IndexUpdateOptions,
        config: AutoUpdateConfig,
        watcher: Optional[FileWatcherInterface] = None,
        clock: Callable[[], float] = time.time,
        last_update_at: Optional[float] = None,
        state_file: Optional[AutoUpdateStateFile] = None,
    ):
        self._indexing_service = indexing_service
        self._options = replace(options, reindex_all=False)
        self._config = config
        self._watcher = watcher
        self._clock = clock
        self._state_file = state_file
        if last_update_at is None and state_file is not None:
            last_update_at = state_file.load()
        self._last_update_at = last_update_at
        self._filter = PathFilter(options.include_patterns, options.exclude_patterns)
        self._debouncer = Debouncer(
            delay_ms=config.debounce_ms,
            on_batch_ready=self._on_batch_ready,
            max_wait_ms=max(config.max_wait_ms, config.debounce_ms),
        )
        self._update_lock = asyncio.Lock()
        self._stats = AutoUpdateStats()
        self._event_loop: Optional[asyncio.AbstractEventLoop] = None
        self._running = False

    @property
    def last_update_at(self) -> Optional[float]:
        """Epoch seconds of the last successful auto-update."""
        return self._last_update_at

    @property
    def interval_seconds(self) -> float:
        return self._config.interval_hours * 3600.0

    def get_stats(self) -> AutoUpdateStats:
        return self._stats

    def get_pending_count(self) -> int:
        return self._debouncer.get_pending_count()

    def is_running(self) -> bool:
        return self._running

    def in_cooldown(self) -> bool:
        """True while the interval since the last successful update has not elapsed."""
        if self._last_update_at is None:
            return False
        return self._clock() - self._last_update_at < self.interval_seconds

    def accepts(self, path: str) -> bool:
        """Whether a change to ``path`` may schedule an update right now."""
        if not self._config.enabled:
            return False
        if not self._filter.matches(path):
            return False
        return not self.in_cooldown()

    async def notify_path_changed(
        self, path: str, event_type: FileEventType = FileEventType.MODIFIED
    ) -> bool:
        """
        Report a change to one vault path.

        Returns:
            True if the change was queued for a debounced update
        """
        return await self.handle_event(FileEvent(event_type=event_type, path=path))

    async def handle_event(self, event: FileEvent) -> bool:
        """
        Queue a vault event if any path it touches is accepted.

        Returns:
            True if the event was queued for a debounced update
        """
        self._stats.events_received += 1
        if not any(self.accepts(path) for path in event.paths()):
            self._stats.events_ignored += 1
            logger.debug(f"Ignoring vault change: {event.event_type.value} - {event.path}")
            return False

        logger.debug(
            f"Vault change queued: {event.event_type.value} - {event.path}",
            extra={"event_type": event.event_type.value, "path": event.path},
        )
        await self._debouncer.add_event(event)
        return True

    async def _on_batch_ready(self, batch: DebouncedBatch) -> None:
        logger.info(
            f"Auto-update triggered by {batch.total_count()} change(s)",
            extra={
                "created_count": len(batch.created),
                "modified_count": len(batch.modified),
                "deleted_count": len(batch.deleted),
            },
        )
        await self.run_update()

    async def flush(self) -> None:
        """Run the pending debounced update immediately."""
        await self._debouncer.flush()

    async def run_update(self) -> Optional[IndexingResult]:
        """
        Run one incremental update unless another run is active.

        Failures are logged and counted; they never stop the service.

        Returns:
            The IndexingResult, or None if the update was skipped or failed
        """
        if self._update_lock.locked() or self._indexing_service.is_running:
            self._stats.updates_skipped += 1
            logger.info("Index update already in progress; skipping auto-update")
            return None

        async with self._update_lock:
            start_time = time.time()
            try:
                result = await self._indexing_service.update_index(self._options)
            except Exception as e:
                self._stats.errors += 1
                logger.error(
                    f"Auto-update failed: {e}",
                    extra={"error_type": type(e).__name__, "errors_total": self._stats.errors},
                    exc_info=True,
                )
                return None

            self._last_update_at = self._clock()
            self._persist_last_update()
            self._stats.updates_triggered += 1
            self._stats.last_update_duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Auto-update completed",
                extra={
                    "new_files": result.new_files,
                    "updated_files": result.updated_files,
                    "removed_files": result.removed_files,
                    "persisted_chunks": result.persisted_chunks,
                    "failed": result.failed_count,
                    "duration_ms": self._stats.last_update_duration_ms,
                },
            )
            return result

    def _persist_last_update(self) -> None:
        if self._state_file is None:
            return
        try:
            self._state_file.save(self._last_update_at)
        except OSError as e:
            logger.warning(
                f"Failed to persist auto-update state: {e}",
                extra={"state_path": str(self._state_file.path)},
            )

    async def start(self, vault_path: Path) -> None:
        """
        Start watching ``vault_path`` for note changes.

        Raises:
            AutoUpdateError: If the service is already running or has no watcher
        """
        if self._running:
            raise AutoUpdateError("Auto-update service is already running")
        if self._watcher is None:
            raise AutoUpdateError("Auto-update service has no vault watcher")

        self._event_loop = asyncio.get_running_loop()
        self._watcher.start(Path(vault_path), self._on_file_event_sync)
        self._running = True
        self._stats = AutoUpdateStats()
        logger.info(
            f"Auto-update watching: {vault_path}",
            extra={
                "debounce_ms": self._config.debounce_ms,
                "interval_hours": self._config.interval_hours,
            },
        )

    async def stop(self) -> None:
        """Stop watching, drop pending changes and wait for an active update."""
        if not self._running:
            return
        if self._watcher is not None:
            self._watcher.stop()
        self._running = False
        await self._debouncer.cancel()
        async with self._update_lock:
            pass
        self._event_loop = None
        logger.info("Auto-update stopped", extra={"stats": self._stats.to_dict()})

    def _on_file_event_sync(self, event: FileEvent) -> None:
        """Watcher-thread callback; hands the event to the service's event loop."""
        if self._event_loop is None or not self._running:
            return
        future = asyncio.run_coroutine_threadsafe(self.handle_event(event), self._event_loop)
        future.add_done_callback(self._log_event_failure)

    def _log_event_failure(self, future: concurrent.futures.Future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            self._stats.errors += 1
            logger.error(
                f"Failed to handle vault change: {error}",
                extra={"error_type": type(error).__name__},
                exc_info=error,
            )
