"""
Unit tests for QdrantVectorStore against qdrant-client's in-memory mode.
"""

import pytest

from tests.support.indexing_test_utils import run_async
from vaultindex.infrastructure.vector_store import (
    QdrantVectorStore,
    SearchScope,
    VectorRecord,
    VectorStoreError,
)
from vaultindex.infrastructure.vector_store.qdrant import model_slug


def record(path, embedding, model="text-embedding-3-small", mtime=1.0):
    return VectorRecord(
        path=path,
        mtime=mtime,
        content=f"content of {path}",
        start_line=1,
        end_line=3,
        model=model,
        dimension=len(embedding),
        embedding=list(embedding),
    )


def in_memory_store() -> QdrantVectorStore:
    return QdrantVectorStore(collection_prefix="test", location=":memory:")


def test_model_slug():
    assert model_slug("text-embedding-3-small") == "text_embedding_3_small"
    assert model_slug("!!!") == "model"


def test_collection_per_model_and_dimension():
    store = in_memory_store()

    assert store.collection_name("Model-A", 768) == "test_model_a_768"


def test_insert_query_and_delete():
    async def run():
        store = in_memory_store()
        await store.insert_vectors(
            [
                record("notes/a.md", [1.0, 0.0, 0.0]),
                record("notes/daily/b.md", [0.8, 0.2, 0.0]),
                record("c.md", [0.0, 0.0, 1.0]),
            ]
        )
        model = "text-embedding-3-small"

        paths = await store.get_indexed_paths(model)
        by_path = await store.get_vectors_by_path("notes/a.md", model)
        matches = await store.similarity_search(
            [1.0, 0.0, 0.0], model=model, dimension=3, min_similarity=0.5
        )
        scoped = await store.similarity_search(
            [1.0, 0.0, 0.0], model=model, dimension=3, scope=SearchScope.of(folders=["notes/daily"])
        )
        await store.delete_vectors_for_paths(["notes/a.md"], model)
        after_delete = await store.get_indexed_paths(model)
        stats = await store.get_stats()
        await store.clear_all_vectors(model)
        has_after_clear = await store.has_vectors_for_model(model)
        await store.close()
        return paths, by_path, matches, scoped, after_delete, stats, has_after_clear

    paths, by_path, matches, scoped, after_delete, stats, has_after_clear = run_async(run())

    assert paths == ["c.md", "notes/a.md", "notes/daily/b.md"]
    assert by_path[0].embedding == pytest.approx([1.0, 0.0, 0.0])
    assert [m.path for m in matches] == ["notes/a.md", "notes/daily/b.md"]
    assert matches[0].similarity == pytest.approx(1.0)
    assert [m.path for m in scoped] == ["notes/daily/b.md"]
    assert after_delete == ["c.md", "notes/daily/b.md"]
    assert [(s.model, s.row_count, s.dimension) for s in stats] == [
        ("text-embedding-3-small", 2, 3)
    ]
    assert not has_after_clear


def test_dimensions_are_isolated():
    async def run():
        store = in_memory_store()
        await store.insert_vectors([record("two.md", [1.0, 0.0]), record("three.md", [1.0, 0.0, 0.0])])
        matches = await store.similarity_search(
            [1.0, 0.0], model="text-embedding-3-small", dimension=2, min_similarity=-1.0
        )
        await store.close()
        return matches

    assert [m.path for m in run_async(run())] == ["two.md"]


def test_search_on_missing_collection_is_empty():
    async def run():
        store = in_memory_store()
        matches = await store.similarity_search([1.0, 0.0], model="unknown", dimension=2)
        await store.close()
        return matches

    assert run_async(run()) == []


def test_query_length_must_match_dimension():
    store = in_memory_store()

    with pytest.raises(VectorStoreError):
        run_async(store.similarity_search([1.0], model="m", dimension=2))


def test_embedded_storage_survives_reopening(tmp_path):
    storage = tmp_path / "qdrant"
    model = "text-embedding-3-small"

    async def write():
        store = QdrantVectorStore(collection_prefix="test", path=storage)
        await store.insert_vectors([record("notes/a.md", [1.0, 0.0], mtime=42.0)])
        await store.save()
        await store.close()

    async def read():
        store = QdrantVectorStore(collection_prefix="test", path=storage)
        records = await store.get_vectors_by_path("notes/a.md", model)
        matches = await store.similarity_search([1.0, 0.0], model=model, dimension=2)
        await store.close()
        return records, matches

    run_async(write())
    records, matches = run_async(read())

    assert storage.is_dir()
    assert [r.mtime for r in records] == [42.0]
    assert [m.path for m in matches] == ["notes/a.md"]
