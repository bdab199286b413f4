"""
Tests for reference retrieval over the vector database.
"""

import threading
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest
from diskcache import Cache

from evaluator.services.ai.reference_store import ReferenceNotFoundError, ReferenceStore
from evaluator.services.ai.vector_db import (
    InMemoryVectorDB,
    PineconeVectorDB,
    SearchResult,
    VectorDBError,
    VectorDocument,
)
from evaluator.services.retry import ErrorClassification, classify_error
from tests.factories import FakeEmbedder


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def store(embedder):
    return ReferenceStore(InMemoryVectorDB(), embedder)


class TestReferenceQuery:
    """Test best-match lookups and the unfiltered fallback."""

    @pytest.mark.unit
    async def test_labelled_match(self, store):
        await store.add_document("job_description", "Backend Engineer: Python, PostgreSQL", label="Backend Engineer")
        await store.add_document("job_description", "Frontend Engineer: React, CSS", label="Frontend Engineer")

        content = await store.query("job_description", "Frontend Engineer")

        assert content == "Frontend Engineer: React, CSS"

    @pytest.mark.unit
    async def test_type_filter_applies(self, store):
        await store.add_document("cv_rubric", "CV rubric text")
        await store.add_document("project_rubric", "Project rubric text")

        assert await store.query("project_rubric") == "Project rubric text"
        assert await store.query("cv_rubric") == "CV rubric text"

    @pytest.mark.unit
    async def test_label_miss_falls_back_to_unfiltered(self, store):
        await store.add_document("job_description", "Backend Engineer: Python", label="Backend Engineer")

        content = await store.query("job_description", "Data Scientist")

        assert content == "Backend Engineer: Python"

    @pytest.mark.unit
    async def test_fallback_queries_once_without_label(self, embedder):
        vector_db = Mock()
        vector_db.search = AsyncMock(side_effect=[
            [],
            [SearchResult(id="jd-1", content="Generic description", score=0.4, metadata={})],
        ])
        store = ReferenceStore(vector_db, embedder)

        assert await store.query("job_description", "Data Scientist") == "Generic description"

        first, second = vector_db.search.await_args_list
        assert first.kwargs["filters"] == {
            "document_type": {"$eq": "job_description"},
            "label": {"$eq": "Data Scientist"},
        }
        assert second.kwargs["filters"] == {"document_type": {"$eq": "job_description"}}

    @pytest.mark.unit
    async def test_not_found_is_permanent(self, store):
        with pytest.raises(ReferenceNotFoundError) as exc_info:
            await store.query("case_study_brief")

        assert "not found" in str(exc_info.value)
        assert classify_error(exc_info.value) == ErrorClassification.PERMANENT

    @pytest.mark.unit
    async def test_unknown_document_type(self, store):
        with pytest.raises(ValueError):
            await store.query("cover_letter")

    @pytest.mark.unit
    async def test_empty_content_rejected(self, store):
        with pytest.raises(ValueError):
            await store.add_document("cv_rubric", "   ")


class TestEmbeddingCache:
    """Test the on-disk embedding cache."""

    @pytest.mark.unit
    async def test_repeated_queries_embed_once(self, embedder, tmp_path):
        cache = Cache(str(tmp_path / "embeddings"))
        store = ReferenceStore(InMemoryVectorDB(), embedder, cache=cache, embedding_model="test")
        await store.add_document("cv_rubric", "CV rubric text")

        await store.query("cv_rubric")
        await store.query("cv_rubric")

        # one call for the stored document, one for the query
        assert len(embedder.calls) == 2
        await store.close()


class TestInMemoryVectorDB:
    """Test cosine similarity search."""

    @pytest.mark.unit
    async def test_best_match_first(self):
        db = InMemoryVectorDB()
        await db.upsert([
            VectorDocument(id="a", content="A", embedding=[1.0, 0.0]),
            VectorDocument(id="b", content="B", embedding=[0.6, 0.8]),
            VectorDocument(id="c", content="C", embedding=[0.0, 1.0]),
        ])

        results = await db.search([0.0, 1.0], top_k=2)

        assert [r.id for r in results] == ["c", "b"]
        assert results[0].score == pytest.approx(1.0)

    @pytest.mark.unit
    async def test_metadata_filter(self):
        db = InMemoryVectorDB()
        await db.upsert([
            VectorDocument(id="a", content="A", embedding=[1.0, 0.0], metadata={"document_type": "cv_rubric"}),
            VectorDocument(id="b", content="B", embedding=[1.0, 0.0], metadata={"document_type": "project_rubric"}),
        ])

        results = await db.search([1.0, 0.0], filters={"document_type": {"$eq": "project_rubric"}})

        assert [r.id for r in results] == ["b"]

    @pytest.mark.unit
    async def test_delete(self):
        db = InMemoryVectorDB()
        await db.upsert([VectorDocument(id="a", content="A", embedding=[1.0])])
        await db.delete(["a"])

        assert await db.search([1.0]) == []


class TestPineconeVectorDB:
    """Test the Pinecone backend over a mocked index."""

    @pytest.fixture
    def index(self):
        return Mock()

    @pytest.fixture
    def pinecone_db(self, index):
        return PineconeVectorDB(api_key="", index_name="references", namespace="refs", index=index)

    @pytest.mark.unit
    def test_requires_api_key(self):
        with pytest.raises(VectorDBError, match="API key not configured"):
            PineconeVectorDB(api_key="", index_name="references")

    @pytest.mark.unit
    async def test_upsert_stores_content_in_metadata(self, pinecone_db, index):
        await pinecone_db.upsert([
            VectorDocument(id="a", content="Rubric", embedding=[0.1, 0.2], metadata={"document_type": "cv_rubric"}),
        ])

        index.upsert.assert_called_once_with(
            vectors=[{
                "id": "a",
                "values": [0.1, 0.2],
                "metadata": {"document_type": "cv_rubric", "content": "Rubric"},
            }],
            namespace="refs",
        )

    @pytest.mark.unit
    async def test_search_runs_off_event_loop_thread(self, pinecone_db, index):
        loop_thread = threading.get_ident()
        query_threads = []

        def query(**kwargs):
            query_threads.append(threading.get_ident())
            match = SimpleNamespace(id="a", score=0.93, metadata={"document_type": "cv_rubric", "content": "Rubric"})
            return SimpleNamespace(matches=[match])

        index.query.side_effect = query
        filters = {"document_type": {"$eq": "cv_rubric"}}

        results = await pinecone_db.search([0.1, 0.2], top_k=1, filters=filters)

        assert query_threads and query_threads[0] != loop_thread
        assert results == [
            SearchResult(id="a", content="Rubric", score=0.93, metadata={"document_type": "cv_rubric", "content": "Rubric"})
        ]
        index.query.assert_called_once_with(
            vector=[0.1, 0.2], top_k=1, namespace="refs", filter=filters, include_metadata=True
        )

    @pytest.mark.unit
    async def test_search_failure_wrapped(self, pinecone_db, index):
        index.query.side_effect = RuntimeError("index unavailable")

        with pytest.raises(VectorDBError, match="Pinecone search failed: index unavailable"):
            await pinecone_db.search([0.1])

    @pytest.mark.unit
    async def test_delete(self, pinecone_db, index):
        assert await pinecone_db.delete(["a", "b"]) is True
        index.delete.assert_called_once_with(ids=["a", "b"], namespace="refs")
