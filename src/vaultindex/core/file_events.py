"""
File event models for vault change tracking.

Provides data structures for representing note changes and batched event
collections for debounced re-indexing. Paths are vault-relative POSIX strings.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class FileEventType(Enum):
    """Types of vault file events."""

    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"
    MOVED = "moved"


@dataclass(frozen=True)
class FileEvent:
    """
    A single change to a note in the vault.

    Attributes:
        event_type: Type of the file event
        path: Vault-relative path of the affected note
        old_path: Previous path for MOVED events, None otherwise
        timestamp: Unix timestamp when the event occurred
    """

    event_type: FileEventType
    path: str
    old_path: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def paths(self) -> list[str]:
        """Paths touched by this event; a move touches both its old and new path."""
        if self.event_type is FileEventType.MOVED and self.old_path:
            return [self.old_path, self.path]
        return [self.path]


@dataclass
class DebouncedBatch:
    """
    Vault changes collected during one debounce window.

    Events are merged so that:
    - Repeated modifications of a note produce a single entry
    - A create followed by a delete cancels out
    - A move counts as a delete of the old path and a create of the new one

    Attributes:
        created: Paths of notes created in the window
        modified: Paths of notes modified in the window
        deleted: Paths of notes deleted in the window
    """

    created: set[str] = field(default_factory=set)
    modified: set[str] = field(default_factory=set)
    deleted: set[str] = field(default_factory=set)

    def is_empty(self) -> bool:
        return not (self.created or self.modified or self.deleted)

    def _add_present(self, path: str) -> None:
        if path in self.deleted:
            self.deleted.discard(path)
            self.modified.add(path)
        elif path not in self.created:
            self.modified.add(path)

    def _add_removed(self, path: str) -> None:
        if path in self.created:
            self.created.discard(path)
        else:
            self.modified.discard(path)
            self.deleted.add(path)

    def merge(self, event: FileEvent) -> None:
        """Merge a single event into this batch."""
        if event.event_type is FileEventType.CREATED:
            if event.path in self.deleted or event.path in self.modified:
                self._add_present(event.path)
            else:
                self.created.add(event.path)
        elif event.event_type is FileEventType.MODIFIED:
            self._add_present(event.path)
        elif event.event_type is FileEventType.DELETED:
            self._add_removed(event.path)
        elif event.event_type is FileEventType.MOVED:
            if event.old_path:
                self._add_removed(event.old_path)
            if event.path in self.deleted:
                self._add_present(event.path)
            elif event.path not in self.modified:
                self.created.add(event.path)

    def all_paths(self) -> set[str]:
        return self.created | self.modified | self.deleted

    def total_count(self) -> int:
        return len(self.created) + len(self.modified) + len(self.deleted)

    def clear(self) -> None:
        self.created.clear()
        self.modified.clear()
        self.deleted.clear()

    def copy(self) -> "DebouncedBatch":
        return DebouncedBatch(
            created=set(self.created),
            modified=set(self.modified),
            deleted=set(self.deleted),
        )
