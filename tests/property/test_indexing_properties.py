"""
Property-based tests for incremental index updates.

Covers idempotence of unchanged vaults, replacement of stale records after
an edit, removal of records of deleted notes, and dimension isolation of
similarity queries.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from tests.support.indexing_test_utils import (
    make_service,
    markdown_text_strategy,
    note_path_strategy,
    run_async,
)
from vaultindex.infrastructure.fakes import InMemoryVectorStore, LocalEmbeddingProvider
from vaultindex.infrastructure.vector_store import VectorRecord
from vaultindex.services.indexing_models import IndexUpdateOptions
from vaultindex.services.search_service import SearchOptions, SearchService

OPTIONS = IndexUpdateOptions(chunk_size=200)


@st.composite
def vault_strategy(draw, min_size=1):
    """A vault of notes with at least one non-empty note."""
    paths = draw(st.lists(note_path_strategy(), min_size=min_size, max_size=8, unique=True))
    documents = {}
    for path in paths:
        text = draw(markdown_text_strategy())
        mtime = float(draw(st.integers(min_value=1, max_value=1000)))
        documents[path] = (mtime, text)
    first = paths[0]
    if not documents[first][1].strip():
        documents[first] = (documents[first][0], "seed note")
    return documents


@given(documents=vault_strategy())
@settings(max_examples=30, deadline=None)
def test_second_incremental_run_processes_no_chunks(documents):
    service, _, provider, _ = make_service(documents)

    run_async(service.update_index(OPTIONS))
    calls_after_first = len(provider.calls)
    second = run_async(service.update_index(OPTIONS))

    assert second.total_chunks == 0
    assert second.skipped
    assert len(provider.calls) == calls_after_first


@given(documents=vault_strategy(), data=st.data())
@settings(max_examples=30, deadline=None)
def test_edited_notes_keep_no_stale_records(documents, data):
    service, source, provider, store = make_service(documents)
    run_async(service.update_index(OPTIONS))

    edited = data.draw(st.lists(st.sampled_from(sorted(documents)), unique=True))
    for path in edited:
        mtime, text = documents[path]
        source.set_document(path, mtime + 500.0, text + "\n\nedited")
    run_async(service.update_index(OPTIONS))

    for path in edited:
        records = run_async(store.get_vectors_by_path(path, provider.model_id))
        assert records
        assert all(record.mtime == documents[path][0] + 500.0 for record in records)


@given(documents=vault_strategy(min_size=2), data=st.data())
@settings(max_examples=30, deadline=None)
def test_deleted_notes_lose_every_record(documents, data):
    service, source, provider, store = make_service(documents)
    run_async(service.update_index(OPTIONS))

    removed = data.draw(
        st.lists(st.sampled_from(sorted(documents)), min_size=1, unique=True)
    )
    for path in removed:
        source.remove_document(path)
    result = run_async(service.update_index(OPTIONS))

    for path in removed:
        assert run_async(store.get_vectors_by_path(path, provider.model_id)) == []
    indexed_before = {path for path, (_, text) in documents.items() if text.strip()}
    assert result.removed_files == len(indexed_before & set(removed))


@given(
    dim_a=st.integers(min_value=2, max_value=12),
    dim_b=st.integers(min_value=2, max_value=12),
    texts=st.lists(st.text(min_size=1, max_size=20), min_size=1, max_size=10),
)
@settings(max_examples=50, deadline=None)
def test_queries_never_cross_dimensions(dim_a, dim_b, texts):
    store = InMemoryVectorStore()
    provider_a = LocalEmbeddingProvider(dimension=dim_a, model_id="shared-model")
    provider_b = LocalEmbeddingProvider(dimension=dim_b, model_id="shared-model")

    records = [
        VectorRecord(
            path=f"b/{i}.md",
            mtime=1.0,
            content=text,
            start_line=1,
            end_line=1,
            model="shared-model",
            dimension=dim_b,
            embedding=provider_b.embed_sync(text),
        )
        for i, text in enumerate(texts)
    ]
    run_async(store.insert_vectors(records))

    matches = run_async(
        SearchService(store, provider_a).search(
            provider_a.embed_sync(texts[0]), SearchOptions(min_similarity=-1.0, limit=100)
        )
    )

    if dim_a == dim_b:
        assert len(matches) == len(texts)
    else:
        assert matches == []
    assert all(match.dimension == dim_a for match in matches)
