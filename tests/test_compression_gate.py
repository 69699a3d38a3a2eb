"""
Unit Tests for Parent Lookup and Relevance Compression
"""
import asyncio
import logging

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock

from core.config import RankBy
from core.exceptions import CompressionError, RetrievalError
from llm_generation.compression.relevance_compressor import (
    BaseRelevanceCompressor,
    CompressionResult,
    CompressionVerdict,
)
from retrieval_pipeline.context.compression_gate import CompressionGate, parent_filter
from storage.vector_store import VectorRecord


async def add_parent(store, embedder, parent_id, text):
    vector = (await embedder.embed_documents([text]))[0]
    await store.upsert(VectorRecord(
        id=parent_id,
        vector=vector,
        text=text,
        metadata={
            "docType": "parent",
            "chunkId": parent_id,
            "parentId": parent_id,
            "source": parent_id,
            "originalUrl": f"https://example.com/{parent_id}",
        }
    ))


@pytest_asyncio.fixture
async def populated_store(memory_store, embedder):
    await add_parent(memory_store, embedder, "A", "zebra migration across the plains")
    await add_parent(memory_store, embedder, "B", "zebra stripes and zebra herds")
    await add_parent(memory_store, embedder, "C", "zebra foals follow zebra mothers in migration")
    await add_parent(memory_store, embedder, "D", "quantum computing with qubits")
    return memory_store


class SlowCompressor(BaseRelevanceCompressor):
    async def compress(self, query, text, chunk_id=None):
        await asyncio.sleep(1)
        return CompressionResult.full(text)


class TestParentFilter:
    def test_filter_shape(self):
        assert parent_filter(["A", "B"]) == {"docType": "parent", "source": {"$in": ["A", "B"]}}


class TestCompressionGate:
    """Test the refine stage"""

    @pytest.mark.asyncio
    async def test_empty_candidates_short_circuit(self, embedder, compressor):
        store = AsyncMock()
        gate = CompressionGate(embedder, store, compressor)

        outcome = await gate.refine("zebra", [])

        assert outcome.passages == []
        assert outcome.all_failed is False
        store.similarity_search.assert_not_called()
        assert compressor.calls == []

    @pytest.mark.asyncio
    async def test_only_candidate_parents_are_fetched(self, embedder, populated_store, compressor):
        gate = CompressionGate(embedder, populated_store, compressor)

        outcome = await gate.refine("zebra migration", ["A", "D"], k_parents=3)

        assert sorted(p.chunk_id for p in outcome.passages) == ["A", "D"]
        assert outcome.parents_found == 2

    @pytest.mark.asyncio
    async def test_k_parents_limits_compression(self, embedder, populated_store, compressor):
        gate = CompressionGate(embedder, populated_store, compressor)

        outcome = await gate.refine("zebra migration", ["A", "B", "C", "D"], k_parents=2)

        assert len(compressor.calls) == 2
        assert len(outcome.passages) == 2

    @pytest.mark.asyncio
    async def test_verdicts(self, embedder, populated_store, compressor_factory):
        compressor = compressor_factory(drop_on=["stripes"], excerpt_on=["foals"])
        gate = CompressionGate(embedder, populated_store, compressor)

        outcome = await gate.refine("zebra", ["A", "B", "C"], k_parents=3)
        by_id = {p.chunk_id: p for p in outcome.passages}

        assert "B" not in by_id
        assert by_id["A"].verdict == CompressionVerdict.FULL
        assert by_id["A"].text == "zebra migration across the plains"
        assert by_id["A"].original_url == "https://example.com/A"
        assert by_id["C"].verdict == CompressionVerdict.EXCERPT
        assert by_id["C"].text == "foals"

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_survivors_in_rank_order(self, embedder, populated_store, compressor_factory):
        compressor = compressor_factory(fail_on=["stripes"])
        gate = CompressionGate(embedder, populated_store, compressor)

        outcome = await gate.refine("zebra migration", ["A", "B", "C"], k_parents=3)

        ranked = await populated_store.similarity_search(
            await embedder.embed_query("zebra migration"), k=3, metadata_filter=parent_filter(["A", "B", "C"])
        )
        expected_order = [hit.id for hit in ranked if hit.id != "B"]

        assert [p.chunk_id for p in outcome.passages] == expected_order
        assert outcome.failed_chunk_ids == ["B"]
        assert outcome.all_failed is False

    @pytest.mark.asyncio
    async def test_all_failed_marker(self, embedder, populated_store, compressor_factory):
        compressor = compressor_factory(fail_on=["zebra"])
        gate = CompressionGate(embedder, populated_store, compressor)

        outcome = await gate.refine("zebra", ["A", "B"], k_parents=3)

        assert outcome.passages == []
        assert outcome.all_failed is True
        assert sorted(outcome.failed_chunk_ids) == ["A", "B"]

    @pytest.mark.asyncio
    async def test_all_irrelevant_is_not_a_failure(self, embedder, populated_store, compressor_factory):
        compressor = compressor_factory(drop_on=["zebra"])
        gate = CompressionGate(embedder, populated_store, compressor)

        outcome = await gate.refine("zebra", ["A", "B"], k_parents=3)

        assert outcome.passages == []
        assert outcome.all_failed is False

    @pytest.mark.asyncio
    async def test_parent_ids_reach_the_compressor(self, embedder, populated_store, compressor_factory):
        compressor = compressor_factory()
        gate = CompressionGate(embedder, populated_store, compressor)

        outcome = await gate.refine("zebra", ["A", "B", "C"], k_parents=3)

        assert sorted(compressor.chunk_ids) == ["A", "B", "C"]
        assert sorted(p.chunk_id for p in outcome.passages) == ["A", "B", "C"]

    @pytest.mark.asyncio
    async def test_compression_error_is_logged_with_parent_id(self, embedder, populated_store, caplog):
        class FailingCompressor(BaseRelevanceCompressor):
            async def compress(self, query, text, chunk_id=None):
                raise CompressionError(chunk_id=chunk_id, reason="rate limited")

        gate = CompressionGate(embedder, populated_store, FailingCompressor())

        with caplog.at_level(logging.WARNING, logger="retrieval_pipeline.context.compression_gate"):
            outcome = await gate.refine("zebra", ["B"], k_parents=1)

        assert outcome.failed_chunk_ids == ["B"]
        assert "Compression failed for chunk B: rate limited" in caplog.text

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self, embedder, populated_store):
        gate = CompressionGate(embedder, populated_store, SlowCompressor(), timeout_seconds=0.01)

        outcome = await gate.refine("zebra", ["A"], k_parents=1)

        assert outcome.failed_chunk_ids == ["A"]
        assert outcome.all_failed is True

    @pytest.mark.asyncio
    async def test_rank_by_child_keeps_candidate_order(self, embedder, populated_store, compressor):
        gate = CompressionGate(embedder, populated_store, compressor, rank_by=RankBy.CHILD)

        outcome = await gate.refine("zebra migration", ["D", "B", "A", "C"], k_parents=3)

        assert [p.chunk_id for p in outcome.passages] == ["D", "B", "A"]

    @pytest.mark.asyncio
    async def test_unknown_parents_yield_empty_outcome(self, embedder, populated_store, compressor):
        gate = CompressionGate(embedder, populated_store, compressor)

        outcome = await gate.refine("zebra", ["missing"], k_parents=3)

        assert outcome.passages == []
        assert outcome.all_failed is False
        assert compressor.calls == []

    @pytest.mark.asyncio
    async def test_store_failure_raises_retrieval_error(self, embedder, compressor):
        store = AsyncMock()
        store.similarity_search.side_effect = ConnectionError("down")
        gate = CompressionGate(embedder, store, compressor)

        with pytest.raises(RetrievalError):
            await gate.refine("zebra", ["A"])

    @pytest.mark.asyncio
    async def test_reuses_query_vector(self, embedder, populated_store, compressor):
        gate = CompressionGate(embedder, populated_store, compressor)
        vector = await embedder.embed_query("zebra")
        embedder.calls.clear()

        await gate.refine("zebra", ["A"], query_vector=vector)

        assert embedder.calls == []

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, embedder, populated_store):
        in_flight = 0
        peak = 0

        class CountingCompressor(BaseRelevanceCompressor):
            async def compress(self, query, text, chunk_id=None):
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.01)
                in_flight -= 1
                return CompressionResult.full(text)

        gate = CompressionGate(embedder, populated_store, CountingCompressor(), max_concurrency=2)
        await gate.refine("zebra", ["A", "B", "C", "D"], k_parents=4)

        assert peak <= 2
