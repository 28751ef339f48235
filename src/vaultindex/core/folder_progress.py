"""
Hierarchical per-folder progress for an indexing run.

Every folder on a document's path accumulates that document's counts: the
folder that directly contains it and each ancestor up to the vault root
(``""``). Each node also remembers its own direct contribution, so for any
folder ``total(F) == own(F) + sum(total(child) for child of F)``.
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping

from .path_filter import ROOT_FOLDER, ancestor_folders, folder_of, normalize_folder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FolderProgress:
    """Immutable progress counters for one folder."""

    completed_files: int = 0
    total_files: int = 0
    completed_chunks: int = 0
    total_chunks: int = 0

    def __add__(self, other: "FolderProgress") -> "FolderProgress":
        return FolderProgress(
            completed_files=self.completed_files + other.completed_files,
            total_files=self.total_files + other.total_files,
            completed_chunks=self.completed_chunks + other.completed_chunks,
            total_chunks=self.total_chunks + other.total_chunks,
        )


class _FolderNode:
    __slots__ = ("path", "children", "own", "total")

    def __init__(self, path: str):
        self.path = path
        self.children: Dict[str, "_FolderNode"] = {}
        self.own = FolderProgress()
        self.total = FolderProgress()


class FolderProgressTree:
    """
    Tree of folder progress nodes keyed by vault-relative folder path.

    Usage:
        tree = FolderProgressTree.from_paths(doc.path for doc in documents)
        tree.seed(folder_of(path), files=1, chunks=len(chunks))
        tree.advance(folder_of(path), chunks=persisted)
        tree.snapshot()
    """

    def __init__(self) -> None:
        self._nodes: Dict[str, _FolderNode] = {ROOT_FOLDER: _FolderNode(ROOT_FOLDER)}

    @classmethod
    def from_paths(cls, paths: Iterable[str]) -> "FolderProgressTree":
        """Create a tree with zeroed nodes for the folders containing ``paths``."""
        tree = cls()
        for path in paths:
            tree.ensure(folder_of(path))
        return tree

    def ensure(self, folder: str) -> None:
        """Create ``folder`` and any missing ancestors."""
        chain = ancestor_folders(folder)
        for child_path, parent_path in zip(chain, chain[1:]):
            child = self._nodes.get(child_path)
            if child is None:
                child = self._nodes[child_path] = _FolderNode(child_path)
            parent = self._nodes.get(parent_path)
            if parent is None:
                parent = self._nodes[parent_path] = _FolderNode(parent_path)
            parent.children[child_path] = child

    def seed(self, folder: str, files: int = 0, chunks: int = 0) -> None:
        """Add to the expected totals of ``folder`` and all its ancestors."""
        self._apply(folder, FolderProgress(total_files=files, total_chunks=chunks))

    def advance(self, folder: str, files: int = 0, chunks: int = 0) -> None:
        """Add to the completed counts of ``folder`` and all its ancestors."""
        self._apply(folder, FolderProgress(completed_files=files, completed_chunks=chunks))

    def _apply(self, folder: str, delta: FolderProgress) -> None:
        folder = normalize_folder(folder)
        self.ensure(folder)
        owner = self._nodes[folder]
        owner.own = owner.own + delta
        for path in ancestor_folders(folder):
            node = self._nodes[path]
            node.total = node.total + delta

    def get(self, folder: str) -> FolderProgress:
        """Return the rolled-up progress of ``folder`` (zeros if unknown)."""
        node = self._nodes.get(normalize_folder(folder))
        return node.total if node is not None else FolderProgress()

    def own(self, folder: str) -> FolderProgress:
        """Return the counts contributed by documents directly in ``folder``."""
        node = self._nodes.get(normalize_folder(folder))
        return node.own if node is not None else FolderProgress()

    def children(self, folder: str) -> List[str]:
        node = self._nodes.get(normalize_folder(folder))
        return sorted(node.children) if node is not None else []

    @property
    def folders(self) -> List[str]:
        return sorted(self._nodes)

    def snapshot(self) -> Mapping[str, FolderProgress]:
        """Return a read-only ``{folder: FolderProgress}`` view detached from the tree."""
        return MappingProxyType({path: node.total for path, node in self._nodes.items()})
