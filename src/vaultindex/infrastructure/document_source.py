"""
Document sources: where the notes to index come from.

The indexing core only needs to list documents with their modification
times and read a document's text; VaultDocumentSource does both for a vault
directory on disk.
"""

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, List, Optional

from vaultindex.core.chunker import Document

logger = logging.getLogger(__name__)


class DocumentSourceError(Exception):
    """Raised when a document cannot be listed or read."""

    pass


class DocumentSourceInterface(ABC):
    """Abstract interface for document collections."""

    @abstractmethod
    async def list_documents(self) -> List[Document]:
        """Return every live document with its current mtime."""
        pass

    @abstractmethod
    async def read_document(self, path: str) -> str:
        """
        Return the text of ``path``.

        Raises:
            DocumentSourceError: If the document is missing or unreadable
        """
        pass

    async def exists(self, path: str) -> bool:
        return any(doc.path == path for doc in await self.list_documents())


class VaultDocumentSource(DocumentSourceInterface):
    """
    Markdown notes under a vault directory.

    Hidden files and directories (names starting with ``.``) are skipped.
    Paths are reported relative to the vault root using ``/`` separators.
    """

    def __init__(self, root: Path | str, extensions: Optional[Iterable[str]] = None):
        self._root = Path(root).resolve()
        self._extensions = {ext.lower() for ext in (extensions or {".md"})}

    @property
    def root(self) -> Path:
        return self._root

    def _scan(self) -> List[Document]:
        if not self._root.is_dir():
            raise DocumentSourceError(f"Vault directory does not exist: {self._root}")

        documents = []
        for dirpath, dirnames, filenames in os.walk(self._root):
            dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
            for filename in sorted(filenames):
                if filename.startswith("."):
                    continue
                if Path(filename).suffix.lower() not in self._extensions:
                    continue
                full_path = Path(dirpath) / filename
                try:
                    mtime = full_path.stat().st_mtime
                except OSError as e:
                    logger.warning(f"Skipping unreadable file {full_path}: {e}")
                    continue
                rel_path = full_path.relative_to(self._root).as_posix()
                documents.append(Document(path=rel_path, mtime=mtime))
        return documents

    async def list_documents(self) -> List[Document]:
        return await asyncio.to_thread(self._scan)

    def _resolve(self, path: str) -> Path:
        full_path = (self._root / path).resolve()
        if full_path != self._root and self._root not in full_path.parents:
            raise DocumentSourceError(f"Path escapes the vault: {path}")
        return full_path

    async def read_document(self, path: str) -> str:
        full_path = self._resolve(path)
        try:
            return await asyncio.to_thread(full_path.read_text, encoding="utf-8", errors="replace")
        except OSError as e:
            raise DocumentSourceError(f"Failed to read {path}: {e}") from e

    async def exists(self, path: str) -> bool:
        try:
            return self._resolve(path).is_file()
        except DocumentSourceError:
            return False
