"""
Vault watcher infrastructure component.

Monitors a vault directory with the watchdog library and reports note
changes as vault-relative FileEvent objects. Directory events, hidden paths
and files with other extensions are dropped here; include/exclude filtering
is left to the consumer.
"""

import logging
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Optional, Protocol

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from vaultindex.core.file_events import FileEvent, FileEventType

logger = logging.getLogger(__name__)


class FileWatcherInterface(Protocol):
    """Protocol for vault watcher implementations."""

    def start(self, path: Path, callback: Callable[[FileEvent], None]) -> None:
        ...

    def stop(self) -> None:
        ...

    def is_running(self) -> bool:
        ...


class VaultWatcher(FileWatcherInterface):
    """
    Watchdog-backed vault watcher.

    The callback runs on watchdog's observer thread; consumers that live on
    an event loop must hand events over to their loop thread-safely.
    """

    def __init__(self, extensions: Optional[set[str]] = None):
        self._extensions = {ext.lower() for ext in (extensions or {".md"})}
        self._observer: Optional[Observer] = None
        self._callback: Optional[Callable[[FileEvent], None]] = None
        self._watch_path: Optional[Path] = None
        self._lock = threading.Lock()

    def start(self, path: Path, callback: Callable[[FileEvent], None]) -> None:
        """
        Start watching the vault directory.

        Raises:
            ValueError: If path doesn't exist or isn't a directory
            RuntimeError: If the watcher is already running
        """
        with self._lock:
            if self._observer is not None and self._observer.is_alive():
                raise RuntimeError("Vault watcher is already running")

            path = Path(path).resolve()
            if not path.is_dir():
                raise ValueError(f"Not a directory: {path}")

            self._watch_path = path
            self._callback = callback

            handler = _VaultEventHandler(
                emit=self._handle_event, extensions=self._extensions, root_path=path
            )
            self._observer = Observer()
            self._observer.schedule(handler, str(path), recursive=True)
            self._observer.start()

            logger.info(f"Started watching: {path}")

    def stop(self) -> None:
        with self._lock:
            if self._observer is not None:
                self._observer.stop()
                self._observer.join(timeout=5.0)
                self._observer = None
                logger.info(f"Stopped watching: {self._watch_path}")
            self._callback = None
            self._watch_path = None

    def is_running(self) -> bool:
        with self._lock:
            return self._observer is not None and self._observer.is_alive()

    def _handle_event(self, event: FileEvent) -> None:
        if self._callback is not None:
            try:
                self._callback(event)
            except Exception as e:
                logger.error(f"Error in file event callback: {e}")


class _VaultEventHandler(FileSystemEventHandler):
    """Converts watchdog events to vault-relative FileEvents."""

    def __init__(
        self,
        emit: Callable[[FileEvent], None],
        extensions: set[str],
        root_path: Path,
    ):
        super().__init__()
        self._emit = emit
        self._extensions = extensions
        self._root_path = root_path

    def _relative(self, raw_path) -> Optional[str]:
        """Vault-relative POSIX path of a note, or None if it should be ignored."""
        path = Path(raw_path if isinstance(raw_path, str) else raw_path.decode())
        try:
            rel = path.relative_to(self._root_path)
        except ValueError:
            return None
        if any(part.startswith(".") for part in rel.parts):
            return None
        if rel.suffix.lower() not in self._extensions:
            return None
        return rel.as_posix()

    def _dispatch_simple(self, event: FileSystemEvent, event_type: FileEventType) -> None:
        if event.is_directory:
            return
        rel = self._relative(event.src_path)
        if rel is not None:
            logger.debug(f"Vault event: {event_type.value} - {rel}")
            self._emit(FileEvent(event_type=event_type, path=rel))

    def on_created(self, event: FileSystemEvent) -> None:
        self._dispatch_simple(event, FileEventType.CREATED)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._dispatch_simple(event, FileEventType.MODIFIED)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._dispatch_simple(event, FileEventType.DELETED)

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        src = self._relative(event.src_path)
        dest = self._relative(event.dest_path)
        if dest is not None:
            self._emit(FileEvent(event_type=FileEventType.MOVED, path=dest, old_path=src))
        elif src is not None:
            self._emit(FileEvent(event_type=FileEventType.DELETED, path=src))
