"""
Unit tests for the in-memory vector store and the vector store factory.
"""

import pytest

from tests.support.indexing_test_utils import run_async
from vaultindex.core.config import VectorStoreConfig
from vaultindex.infrastructure.fakes import InMemoryVectorStore
from vaultindex.infrastructure.vector_store import (
    QdrantVectorStore,
    SearchScope,
    VectorRecord,
    VectorStoreError,
    create_vector_store,
)


def record(path, embedding, model="m", mtime=1.0, content=None):
    return VectorRecord(
        path=path,
        mtime=mtime,
        content=content or f"content of {path}",
        start_line=1,
        end_line=2,
        model=model,
        dimension=len(embedding),
        embedding=list(embedding),
    )


class TestRecords:
    def test_record_rejects_wrong_length(self):
        with pytest.raises(VectorStoreError):
            VectorRecord(
                path="a.md",
                mtime=1.0,
                content="x",
                start_line=1,
                end_line=1,
                model="m",
                dimension=3,
                embedding=[1.0],
            )


class TestInMemoryVectorStore:
    def test_zero_vectors_score_zero(self):
        store = InMemoryVectorStore()
        run_async(store.insert_vectors([record("zero.md", [0.0, 0.0])]))

        matches = run_async(store.similarity_search([1.0, 0.0], model="m", dimension=2))

        assert [(m.path, m.similarity) for m in matches] == [("zero.md", 0.0)]

    def test_paths_and_deletion_are_per_model(self):
        store = InMemoryVectorStore()
        run_async(
            store.insert_vectors(
                [record("a.md", [1, 0]), record("b.md", [0, 1]), record("a.md", [1, 0], model="n")]
            )
        )

        run_async(store.delete_vectors_for_paths(["a.md"], "m"))

        assert run_async(store.get_indexed_paths("m")) == ["b.md"]
        assert run_async(store.get_indexed_paths("n")) == ["a.md"]

    def test_clear_all_vectors_for_one_model(self):
        store = InMemoryVectorStore()
        run_async(store.insert_vectors([record("a.md", [1, 0]), record("a.md", [1, 0], model="n")]))

        run_async(store.clear_all_vectors("m"))

        assert not run_async(store.has_vectors_for_model("m"))
        assert run_async(store.has_vectors_for_model("n"))

    def test_search_sorts_thresholds_and_limits(self):
        store = InMemoryVectorStore()
        run_async(
            store.insert_vectors(
                [
                    record("exact.md", [1.0, 0.0]),
                    record("close.md", [0.9, 0.1]),
                    record("far.md", [0.0, 1.0]),
                ]
            )
        )

        matches = run_async(
            store.similarity_search([1.0, 0.0], model="m", dimension=2, min_similarity=0.5)
        )

        assert [m.path for m in matches] == ["exact.md", "close.md"]
        assert not hasattr(matches[0], "embedding")
        limited = run_async(store.similarity_search([1.0, 0.0], model="m", dimension=2, limit=1))
        assert [m.path for m in limited] == ["exact.md"]

    def test_search_never_mixes_dimensions(self):
        store = InMemoryVectorStore()
        run_async(store.insert_vectors([record("two.md", [1, 0]), record("three.md", [1, 0, 0])]))

        matches = run_async(
            store.similarity_search([1.0, 0.0], model="m", dimension=2, min_similarity=-1.0)
        )

        assert [m.path for m in matches] == ["two.md"]

    def test_query_length_must_match_dimension(self):
        store = InMemoryVectorStore()

        with pytest.raises(VectorStoreError):
            run_async(store.similarity_search([1.0], model="m", dimension=2))

    def test_scope_restricts_files_and_folders(self):
        store = InMemoryVectorStore()
        run_async(
            store.insert_vectors(
                [
                    record("notes/a.md", [1, 0]),
                    record("notes/daily/b.md", [1, 0]),
                    record("projects/c.md", [1, 0]),
                    record("d.md", [1, 0]),
                ]
            )
        )

        def paths(scope):
            matches = run_async(
                store.similarity_search([1.0, 0.0], model="m", dimension=2, scope=scope)
            )
            return sorted(m.path for m in matches)

        assert paths(SearchScope.of(folders=["notes"])) == ["notes/a.md", "notes/daily/b.md"]
        assert paths(SearchScope.of(files=["d.md"], folders=["projects"])) == [
            "d.md",
            "projects/c.md",
        ]
        assert len(paths(SearchScope.of(folders=[""]))) == 4
        assert len(paths(SearchScope())) == 4

    def test_stats_per_model(self):
        store = InMemoryVectorStore()
        run_async(
            store.insert_vectors(
                [record("a.md", [1, 0]), record("b.md", [1, 0]), record("a.md", [1, 0], model="n")]
            )
        )

        stats = run_async(store.get_stats())

        assert [(s.model, s.row_count, s.dimension) for s in stats] == [("m", 2, 2), ("n", 1, 2)]

    def test_vacuum_drops_empty_buckets(self):
        store = InMemoryVectorStore()
        run_async(store.insert_vectors([record("a.md", [1, 0])]))
        run_async(store.delete_vectors_for_paths(["a.md"], "m"))

        run_async(store.vacuum())

        assert run_async(store.get_stats()) == []
        assert store.vacuum_calls == 1


class TestCreateVectorStore:
    def test_local_backend_is_embedded_qdrant_under_base_dir(self, tmp_path):
        store = create_vector_store(VectorStoreConfig(backend="local", path="idx"), tmp_path)

        assert isinstance(store, QdrantVectorStore)
        assert store.path == tmp_path / "idx"

    def test_local_backend_without_path_stays_in_memory(self):
        store = create_vector_store(VectorStoreConfig(backend="local", path=""))

        assert isinstance(store, QdrantVectorStore)
        assert store.path is None

    def test_qdrant_backend(self):
        store = create_vector_store(VectorStoreConfig(backend="qdrant", url="http://q:6333"))

        assert isinstance(store, QdrantVectorStore)

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_vector_store(VectorStoreConfig(backend="faiss"))
