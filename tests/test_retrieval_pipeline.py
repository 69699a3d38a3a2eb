"""
Integration Tests for the Retrieval Pipeline
Ingest with the real chunker and writer, then query end to end
"""
import pytest
import pytest_asyncio
from unittest.mock import AsyncMock

from core.config import RAGConfig
from core.exceptions import RetrievalError
from core.factory import create_components
from retrieval_pipeline.pipeline import QueryStatus


@pytest.fixture
def config():
    return RAGConfig(vector_store_backend="memory", llm_api_key="unused")


@pytest.fixture
def zebra_documents(document_factory):
    # 600 chars each: one parent and two children per document
    return [
        document_factory("zebra migration", "https://example.com/migration", length=600),
        document_factory("zebra stripes", "https://example.com/stripes", length=600),
        document_factory("zebra foals", "https://example.com/foals", length=600),
    ]


@pytest.fixture
def build(config, embedder, memory_store):
    def _build(compressor):
        return create_components(config, embedder=embedder, vector_store=memory_store, compressor=compressor)
    return _build


@pytest_asyncio.fixture
async def indexed(memory_store, embedder, zebra_documents, config):
    """Store holding the three zebra documents"""
    components = create_components(config, embedder=embedder, vector_store=memory_store, compressor=AsyncMock())
    result = await components.ingestion.ingest_documents(zebra_documents)
    assert result.status == "success"
    return memory_store


class TestRetrievalPipeline:
    """Test query statuses and ordering"""

    @pytest.mark.asyncio
    async def test_empty_index_reports_no_candidates(self, build, memory_store, compressor):
        memory_store.similarity_search = AsyncMock(wraps=memory_store.similarity_search)
        components = build(compressor)

        result = await components.retrieval.query("zebra")

        assert result.status == QueryStatus.NO_CANDIDATES
        assert result.passages == []
        assert result.query == "zebra"
        # Only the child search runs
        assert memory_store.similarity_search.await_count == 1
        assert compressor.calls == []

    @pytest.mark.asyncio
    async def test_relevant_parents_are_returned(self, build, indexed, compressor):
        components = build(compressor)

        result = await components.retrieval.query("zebra migration", k_parents=3)

        assert result.status == QueryStatus.OK
        assert len(result.passages) == 3
        assert result.child_matches == 6
        assert len(result.parent_ids) == 3
        for passage in result.passages:
            parent = indexed.get(passage.chunk_id)
            assert parent.metadata["docType"] == "parent"
            assert passage.text == parent.text
            assert passage.chunk_id in result.parent_ids
        assert result.passages[0].original_url == "https://example.com/migration"

    @pytest.mark.asyncio
    async def test_k_parents_caps_passages(self, build, indexed, compressor):
        components = build(compressor)

        result = await components.retrieval.query("zebra", k_parents=1)

        assert len(result.passages) == 1
        assert len(compressor.calls) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("k_parents", [0, -1])
    async def test_non_positive_k_parents_rejected(self, build, indexed, compressor, k_parents):
        components = build(compressor)

        with pytest.raises(ValueError, match="k_parents"):
            await components.retrieval.query("zebra", k_parents=k_parents)

        assert compressor.calls == []

    @pytest.mark.asyncio
    async def test_one_compression_failure_keeps_the_rest(self, build, indexed, compressor_factory):
        components = build(compressor_factory(fail_on=["stripes"]))

        result = await components.retrieval.query("zebra", k_parents=3)

        assert result.status == QueryStatus.OK
        assert len(result.passages) == 2
        assert all("stripes" not in passage.text for passage in result.passages)
        assert len(result.failed_chunk_ids) == 1

    @pytest.mark.asyncio
    async def test_all_compressions_failing(self, build, indexed, compressor_factory):
        components = build(compressor_factory(fail_on=["zebra"]))

        result = await components.retrieval.query("zebra")

        assert result.status == QueryStatus.COMPRESSION_UNAVAILABLE
        assert result.passages == []
        assert len(result.failed_chunk_ids) == 3

    @pytest.mark.asyncio
    async def test_nothing_relevant(self, build, indexed, compressor_factory):
        components = build(compressor_factory(drop_on=["zebra"]))

        result = await components.retrieval.query("zebra")

        assert result.status == QueryStatus.NO_RELEVANT_CONTENT
        assert result.passages == []
        assert result.failed_chunk_ids == []

    @pytest.mark.asyncio
    async def test_excerpts_are_returned(self, build, indexed, compressor_factory):
        components = build(compressor_factory(excerpt_on=["foals"]))

        result = await components.retrieval.query("zebra foals")
        excerpts = [p for p in result.passages if p.verdict.value == "excerpt"]

        assert [p.text for p in excerpts] == ["foals"]

    @pytest.mark.asyncio
    async def test_store_outage_raises(self, build, compressor):
        components = build(compressor)
        components.vector_store.similarity_search = AsyncMock(side_effect=ConnectionError("down"))

        with pytest.raises(RetrievalError):
            await components.retrieval.query("zebra")

    @pytest.mark.asyncio
    async def test_batch_query_keeps_order_and_isolates_errors(self, build, indexed, compressor):
        components = build(compressor)

        results = await components.retrieval.batch_query(["zebra", "   ", "zebra foals"], k_parents=1)

        assert [r.query for r in results] == ["zebra", "   ", "zebra foals"]
        assert results[0].status == QueryStatus.OK
        assert results[1].status == QueryStatus.ERROR
        assert results[1].error_message
        assert results[2].status == QueryStatus.OK

    @pytest.mark.asyncio
    async def test_health_check(self, build, compressor):
        components = build(compressor)

        health = await components.retrieval.health_check()

        assert health == {"vector_store": True, "embedder": True, "overall": True}

    @pytest.mark.asyncio
    async def test_result_to_dict(self, build, indexed, compressor):
        components = build(compressor)

        payload = (await components.retrieval.query("zebra")).to_dict()

        assert payload["status"] == "ok"
        assert set(payload["timings"]) == {"total_ms", "retrieval_ms", "compression_ms"}
        assert payload["passages"][0]["verdict"] == "full"

    def test_pipeline_stats(self, build, compressor):
        stats = build(compressor).retrieval.get_pipeline_stats()

        assert stats["top_k_children"] == 10
        assert stats["k_parents"] == 3
        assert stats["rank_by"] == "parent"
