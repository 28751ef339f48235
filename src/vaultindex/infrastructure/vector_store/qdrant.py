"""
Qdrant-based vector store implementation.

The store talks to a Qdrant server, or runs qdrant-client embedded on a
local directory when given a ``path``. One collection is kept per (model, dimension) pair, named
``{prefix}_{model_slug}_{dimension}``. Every point carries its chunk as
payload, plus the list of folders containing the note so scoped queries can
filter server-side.
"""

import logging
import re
import uuid
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from qdrant_client import AsyncQdrantClient, models

from vaultindex.core.path_filter import ROOT_FOLDER, ancestor_folders, folder_of

from .base import (
    EmbeddingStats,
    SearchScope,
    SimilarityMatch,
    VectorRecord,
    VectorStoreError,
    VectorStoreInterface,
)

logger = logging.getLogger(__name__)

_SCROLL_PAGE = 1000


def model_slug(model: str) -> str:
    """Collection-safe form of a model id."""
    return re.sub(r"[^a-z0-9]+", "_", model.lower()).strip("_") or "model"


class QdrantVectorStore(VectorStoreInterface):
    """
    Qdrant-based vector store implementation.

    Qdrant persists on write, so ``save()`` and ``vacuum()`` are no-ops.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6333,
        collection_prefix: str = "vaultindex",
        api_key: Optional[str] = None,
        url: Optional[str] = None,
        location: Optional[str] = None,
        path: Optional[Path | str] = None,
    ):
        """
        Args:
            host: Qdrant server host
            port: Qdrant server port
            collection_prefix: Prefix for every collection this store manages
            api_key: Optional API key for authentication
            url: Optional Qdrant URL (takes precedence over host/port)
            location: Optional client location such as ``":memory:"``
            path: Optional directory for embedded on-disk storage
        """
        self._host = host
        self._port = port
        self._prefix = collection_prefix
        self._api_key = api_key or None
        self._url = url or None
        self._location = location
        self._path = Path(path) if path else None
        self._client: Optional[AsyncQdrantClient] = None
        self._ready: set[str] = set()

    async def _get_client(self) -> AsyncQdrantClient:
        """Get or create the Qdrant client."""
        if self._client is None:
            if self._path is not None:
                self._path.mkdir(parents=True, exist_ok=True)
                self._client = AsyncQdrantClient(path=str(self._path))
            elif self._location:
                self._client = AsyncQdrantClient(location=self._location)
            elif self._url:
                self._client = AsyncQdrantClient(url=self._url, api_key=self._api_key)
            else:
                self._client = AsyncQdrantClient(
                    host=self._host, port=self._port, api_key=self._api_key
                )
        return self._client

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def collection_name(self, model: str, dimension: int) -> str:
        return f"{self._prefix}_{model_slug(model)}_{dimension}"

    async def _collections_for_model(self, model: str) -> List[str]:
        """Existing collections that may hold records of ``model``."""
        client = await self._get_client()
        pattern = re.compile(rf"^{re.escape(self._prefix)}_{re.escape(model_slug(model))}_\d+$")
        collections = await client.get_collections()
        return [c.name for c in collections.collections if pattern.match(c.name)]

    async def _ensure_collection(self, model: str, dimension: int) -> str:
        name = self.collection_name(model, dimension)
        if name in self._ready:
            return name

        client = await self._get_client()
        if not await client.collection_exists(name):
            await client.create_collection(
                collection_name=name,
                vectors_config=models.VectorParams(
                    size=dimension,
                    distance=models.Distance.COSINE,
                ),
            )
            logger.info(f"Created collection: {name}")
            for field_name in ("path", "folders", "model"):
                await client.create_payload_index(
                    collection_name=name,
                    field_name=field_name,
                    field_schema=models.PayloadSchemaType.KEYWORD,
                )
        else:
            info = await client.get_collection(name)
            params = info.config.params if info.config else None
            existing_size = params.vectors.size if params and params.vectors else None
            if existing_size and existing_size != dimension:
                raise VectorStoreError(
                    f"Existing collection '{name}' has vector size {existing_size}, "
                    f"but {dimension} was requested."
                )

        self._ready.add(name)
        return name

    @staticmethod
    def _model_condition(model: str) -> models.FieldCondition:
        return models.FieldCondition(key="model", match=models.MatchValue(value=model))

    @staticmethod
    def _record_from_point(point) -> VectorRecord:
        payload = point.payload or {}
        return VectorRecord(
            path=payload.get("path", ""),
            mtime=float(payload.get("mtime", 0.0)),
            content=payload.get("content", ""),
            start_line=int(payload.get("start_line", 0)),
            end_line=int(payload.get("end_line", 0)),
            model=payload.get("model", ""),
            dimension=int(payload.get("dimension", 0)),
            embedding=list(point.vector or []),
        )

    @staticmethod
    def _match_from_point(point) -> SimilarityMatch:
        payload = point.payload or {}
        return SimilarityMatch(
            path=payload.get("path", ""),
            mtime=float(payload.get("mtime", 0.0)),
            content=payload.get("content", ""),
            start_line=int(payload.get("start_line", 0)),
            end_line=int(payload.get("end_line", 0)),
            model=payload.get("model", ""),
            dimension=int(payload.get("dimension", 0)),
            similarity=float(point.score),
        )

    async def _scroll(self, collection: str, scroll_filter, with_vectors: bool, payload):
        client = await self._get_client()
        offset = None
        while True:
            records, offset = await client.scroll(
                collection_name=collection,
                scroll_filter=scroll_filter,
                limit=_SCROLL_PAGE,
                offset=offset,
                with_payload=payload,
                with_vectors=with_vectors,
            )
            for record in records:
                yield record
            if offset is None:
                break

    async def get_vectors_by_path(self, path: str, model: str) -> List[VectorRecord]:
        try:
            results: List[VectorRecord] = []
            path_filter = models.Filter(
                must=[
                    self._model_condition(model),
                    models.FieldCondition(key="path", match=models.MatchValue(value=path)),
                ]
            )
            for collection in await self._collections_for_model(model):
                async for point in self._scroll(collection, path_filter, True, True):
                    results.append(self._record_from_point(point))
            results.sort(key=lambda r: r.start_line)
            return results
        except VectorStoreError:
            raise
        except Exception as e:
            raise VectorStoreError(f"Failed to get vectors for '{path}': {e}") from e

    async def get_indexed_paths(self, model: str) -> List[str]:
        try:
            paths = set()
            model_filter = models.Filter(must=[self._model_condition(model)])
            for collection in await self._collections_for_model(model):
                async for point in self._scroll(collection, model_filter, False, ["path"]):
                    if point.payload and point.payload.get("path"):
                        paths.add(point.payload["path"])
            return sorted(paths)
        except Exception as e:
            raise VectorStoreError(f"Failed to get indexed paths: {e}") from e

    async def insert_vectors(self, records: List[VectorRecord]) -> None:
        if not records:
            return

        grouped: Dict[Tuple[str, int], List[VectorRecord]] = defaultdict(list)
        for record in records:
            grouped[(record.model, record.dimension)].append(record)

        try:
            client = await self._get_client()
            for (model, dimension), group in grouped.items():
                collection = await self._ensure_collection(model, dimension)
                points = [
                    models.PointStruct(
                        id=str(uuid.uuid4()),
                        vector=list(record.embedding),
                        payload={
                            "path": record.path,
                            "folders": ancestor_folders(folder_of(record.path)),
                            "mtime": record.mtime,
                            "content": record.content,
                            "start_line": record.start_line,
                            "end_line": record.end_line,
                            "model": record.model,
                            "dimension": record.dimension,
                        },
                    )
                    for record in group
                ]
                await client.upsert(collection_name=collection, points=points)
        except VectorStoreError:
            raise
        except Exception as e:
            raise VectorStoreError(f"Failed to insert vectors: {e}") from e

    async def delete_vectors_for_paths(self, paths: List[str], model: str) -> None:
        if not paths:
            return
        try:
            client = await self._get_client()
            selector = models.FilterSelector(
                filter=models.Filter(
                    must=[
                        self._model_condition(model),
                        models.FieldCondition(key="path", match=models.MatchAny(any=list(paths))),
                    ]
                )
            )
            for collection in await self._collections_for_model(model):
                await client.delete(collection_name=collection, points_selector=selector)
        except Exception as e:
            raise VectorStoreError(f"Failed to delete vectors for {len(paths)} paths: {e}") from e

    async def clear_all_vectors(self, model: str) -> None:
        try:
            client = await self._get_client()
            for collection in await self._collections_for_model(model):
                await client.delete_collection(collection)
                self._ready.discard(collection)
                logger.info(f"Deleted collection: {collection}")
        except Exception as e:
            raise VectorStoreError(f"Failed to clear vectors for model '{model}': {e}") from e

    async def has_vectors_for_model(self, model: str) -> bool:
        try:
            client = await self._get_client()
            for collection in await self._collections_for_model(model):
                result = await client.count(
                    collection_name=collection,
                    count_filter=models.Filter(must=[self._model_condition(model)]),
                    exact=False,
                )
                if result.count > 0:
                    return True
            return False
        except Exception as e:
            raise VectorStoreError(f"Failed to check vectors for model '{model}': {e}") from e

    @staticmethod
    def _scope_filter(model_condition, scope: Optional[SearchScope]) -> models.Filter:
        if scope is None or scope.is_unrestricted or ROOT_FOLDER in scope.folders:
            return models.Filter(must=[model_condition])

        should = []
        if scope.files:
            should.append(
                models.FieldCondition(key="path", match=models.MatchAny(any=sorted(scope.files)))
            )
        if scope.folders:
            folders = sorted(f.strip("/") for f in scope.folders)
            should.append(
                models.FieldCondition(key="folders", match=models.MatchAny(any=folders))
            )
        return models.Filter(must=[model_condition], should=should)

    async def similarity_search(
        self,
        query_vector: List[float],
        model: str,
        dimension: int,
        min_similarity: float = 0.0,
        limit: int = 10,
        scope: Optional[SearchScope] = None,
    ) -> List[SimilarityMatch]:
        if len(query_vector) != dimension:
            raise VectorStoreError(
                f"Query vector length {len(query_vector)} does not match dimension {dimension}"
            )
        if limit <= 0:
            return []

        client = await self._get_client()
        collection = self.collection_name(model, dimension)
        try:
            if not await client.collection_exists(collection):
                return []

            results = await client.query_points(
                collection_name=collection,
                query=list(query_vector),
                limit=limit,
                query_filter=self._scope_filter(self._model_condition(model), scope),
                with_payload=True,
                score_threshold=min_similarity,
            )
        except Exception as e:
            raise VectorStoreError(f"Failed to search vectors: {e}") from e

        points = results if isinstance(results, list) else getattr(results, "points", results)
        return [self._match_from_point(point) for point in points]

    async def get_stats(self) -> List[EmbeddingStats]:
        try:
            client = await self._get_client()
            collections = await client.get_collections()
            counts: Dict[Tuple[str, int], int] = defaultdict(int)
            for c in collections.collections:
                if not c.name.startswith(f"{self._prefix}_"):
                    continue
                async for point in self._scroll(c.name, None, False, ["model", "dimension"]):
                    payload = point.payload or {}
                    counts[(payload.get("model", ""), int(payload.get("dimension", 0)))] += 1
            return [
                EmbeddingStats(model=model, row_count=count, dimension=dimension)
                for (model, dimension), count in sorted(counts.items())
            ]
        except Exception as e:
            raise VectorStoreError(f"Failed to get stats: {e}") from e

    async def close(self) -> None:
        """Close the client connection."""
        if self._client:
            await self._client.close()
            self._client = None
            self._ready.clear()
