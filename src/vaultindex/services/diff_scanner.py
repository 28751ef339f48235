"""
Diff scanner: decides which documents an index update has to touch.

Compares the live document list against the records already stored for an
embedding model and classifies each filtered document as new, updated or
current. Deleted documents are purged separately so that the orchestrator can
run deletion detection before selection.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from vaultindex.core.chunker import Document
from vaultindex.core.path_filter import PathFilter
from vaultindex.infrastructure.document_source import DocumentSourceInterface
from vaultindex.infrastructure.vector_store import VectorStoreInterface

logger = logging.getLogger(__name__)


@dataclass
class ScanResult:
    """
    Documents selected for (re)indexing.

    The path lists are informational: they feed progress counters and never
    change which documents are indexed.
    """

    documents: List[Document] = field(default_factory=list)
    new_paths: List[str] = field(default_factory=list)
    updated_paths: List[str] = field(default_factory=list)
    removed_paths: List[str] = field(default_factory=list)


class DiffScanner:
    """Classifies live documents against stored vector records."""

    def __init__(
        self,
        document_source: DocumentSourceInterface,
        vector_store: VectorStoreInterface,
    ):
        self._source = document_source
        self._store = vector_store

    async def snapshot(self) -> List[Document]:
        """Take one consistent listing of the live documents for a pass."""
        return await self._source.list_documents()

    async def remove_deleted(
        self, model: str, live: Optional[List[Document]] = None
    ) -> List[str]:
        """
        Delete the records of every indexed path that is no longer live.

        Args:
            model: Embedding model id whose records are checked
            live: Live document snapshot; listed from the source when None

        Returns:
            Paths whose records were deleted
        """
        if live is None:
            live = await self.snapshot()
        live_paths = {doc.path for doc in live}
        indexed = await self._store.get_indexed_paths(model)
        removed = [path for path in indexed if path not in live_paths]
        if removed:
            await self._store.delete_vectors_for_paths(removed, model)
            logger.info(
                f"Removed vectors for {len(removed)} deleted document(s)",
                extra={"model": model, "removed_count": len(removed)},
            )
        return removed

    async def select(
        self,
        model: str,
        path_filter: PathFilter,
        reindex_all: bool = False,
        live: Optional[List[Document]] = None,
    ) -> ScanResult:
        """
        Select the filtered documents that need indexing.

        With ``reindex_all`` every filtered document is returned and counted
        as new. Otherwise a document is new when it has no records (documents
        with empty content are skipped), updated when its mtime is newer than
        the stored one, and left out when current.

        Args:
            model: Embedding model id
            path_filter: Include/exclude filter
            reindex_all: Select everything regardless of stored state
            live: Live document snapshot; listed from the source when None
        """
        if live is None:
            live = await self.snapshot()
        candidates = [doc for doc in live if path_filter.matches(doc.path)]

        if reindex_all:
            return ScanResult(
                documents=candidates,
                new_paths=[doc.path for doc in candidates],
            )

        statuses = await asyncio.gather(*(self._classify(doc, model) for doc in candidates))

        result = ScanResult()
        for doc, status in zip(candidates, statuses):
            if status == "new":
                result.documents.append(doc)
                result.new_paths.append(doc.path)
            elif status == "updated":
                result.documents.append(doc)
                result.updated_paths.append(doc.path)

        logger.debug(
            f"Selected {len(result.documents)} of {len(candidates)} document(s)",
            extra={"new": len(result.new_paths), "updated": len(result.updated_paths)},
        )
        return result

    async def _classify(self, doc: Document, model: str) -> Optional[str]:
        records = await self._store.get_vectors_by_path(doc.path, model)
        if not records:
            try:
                content = await self._source.read_document(doc.path)
            except Exception as e:
                # Let the chunking stage report the read failure for this document.
                logger.warning(f"Could not read {doc.path} while scanning: {e}")
                return "new"
            if not content:
                return None
            return "new"

        stored_mtime = max(record.mtime for record in records)
        if doc.mtime > stored_mtime:
            return "updated"
        return None
