"""
Parent Retrieval and Relevance Compression
Fetches candidate parents with a set-membership filter and keeps only what the
compressor judges relevant
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Sequence

from core.config import RankBy
from core.exceptions import CompressionError, RetrievalError
from data_pipeline.chunking.models import DocType, DOC_TYPE_KEY, SOURCE_KEY, ORIGINAL_URL_KEY
from llm_generation.compression.relevance_compressor import (
    BaseRelevanceCompressor,
    CompressionVerdict,
)
from retrieval_pipeline.embeddings.embedder import BaseEmbedder
from storage.vector_store import VectorStore, SearchResult, IN_OPERATOR

logger = logging.getLogger(__name__)


@dataclass
class CompressedPassage:
    """A parent passage that survived compression"""
    chunk_id: str
    text: str
    verdict: CompressionVerdict
    score: float
    original_url: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chunk_id": self.chunk_id,
            "text": self.text,
            "verdict": self.verdict.value,
            "score": self.score,
            "original_url": self.original_url,
        }


@dataclass
class CompressionOutcome:
    """
    Result of refining candidate parents

    Attributes:
        passages: Relevant passages in parent rank order
        all_failed: At least one parent was compressed and every attempt failed
        failed_chunk_ids: Parents whose compression raised or timed out
        parents_found: Parents returned by the filtered search
    """
    passages: List[CompressedPassage] = field(default_factory=list)
    all_failed: bool = False
    failed_chunk_ids: List[str] = field(default_factory=list)
    parents_found: int = 0


def parent_filter(parent_ids: Sequence[str]) -> Dict[str, Any]:
    """Metadata filter selecting the given parents and nothing else"""
    return {
        DOC_TYPE_KEY: DocType.PARENT.value,
        SOURCE_KEY: {IN_OPERATOR: list(parent_ids)}
    }


class CompressionGate:
    """
    Parent search plus LLM relevance compression

    Parents are ranked by their own similarity to the query by default;
    RankBy.CHILD keeps the order in which the child search first saw them.
    """

    def __init__(
        self,
        embedder: BaseEmbedder,
        vector_store: VectorStore,
        compressor: BaseRelevanceCompressor,
        max_concurrency: int = 3,
        timeout_seconds: float = 60.0,
        rank_by: RankBy = RankBy.PARENT
    ):
        if max_concurrency <= 0:
            raise ValueError("max_concurrency must be positive")
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")

        self.embedder = embedder
        self.vector_store = vector_store
        self.compressor = compressor
        self.max_concurrency = max_concurrency
        self.timeout_seconds = timeout_seconds
        self.rank_by = RankBy(rank_by)

    async def refine(
        self,
        query: str,
        parent_ids: Sequence[str],
        k_parents: int = 3,
        query_vector: Optional[List[float]] = None
    ) -> CompressionOutcome:
        """
        Fetch up to k_parents candidate parents and compress each one

        Args:
            query: User query
            parent_ids: Candidate parent ids from the child search
            k_parents: Maximum parents to compress
            query_vector: Query embedding when already computed

        Returns:
            CompressionOutcome with passages in parent rank order

        Raises:
            RetrievalError: Parent search failed
        """
        if k_parents <= 0:
            raise ValueError("k_parents must be positive")
        if not parent_ids:
            return CompressionOutcome()

        parents = await self._fetch_parents(query, list(parent_ids), k_parents, query_vector)
        if not parents:
            logger.warning(f"None of {len(parent_ids)} candidate parents were found in the index")
            return CompressionOutcome()

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def compress_with_semaphore(parent: SearchResult):
            async with semaphore:
                return await self._compress_parent(query, parent)

        outcomes = await asyncio.gather(*(compress_with_semaphore(parent) for parent in parents))

        result = CompressionOutcome(parents_found=len(parents))
        for parent, outcome in zip(parents, outcomes):
            if outcome is None:
                result.failed_chunk_ids.append(parent.id)
            elif outcome.verdict != CompressionVerdict.NONE:
                result.passages.append(CompressedPassage(
                    chunk_id=parent.id,
                    text=outcome.text,
                    verdict=outcome.verdict,
                    score=parent.score,
                    original_url=parent.metadata.get(ORIGINAL_URL_KEY, ""),
                    metadata=dict(parent.metadata)
                ))

        result.all_failed = len(result.failed_chunk_ids) == len(parents)

        logger.info(
            f"Compression: {len(parents)} parents → {len(result.passages)} passages "
            f"({len(result.failed_chunk_ids)} failed)"
        )
        return result

    async def _fetch_parents(
        self,
        query: str,
        parent_ids: List[str],
        k_parents: int,
        query_vector: Optional[List[float]]
    ) -> List[SearchResult]:
        if self.rank_by == RankBy.CHILD:
            parent_ids = parent_ids[:k_parents]
            k = len(parent_ids)
        else:
            k = k_parents

        try:
            if query_vector is None:
                query_vector = await self.embedder.embed_query(query)
            parents = await self.vector_store.similarity_search(
                query_vector,
                k=k,
                metadata_filter=parent_filter(parent_ids)
            )
        except Exception as e:
            raise RetrievalError(f"Parent search failed: {e}") from e

        if self.rank_by == RankBy.CHILD:
            rank = {parent_id: i for i, parent_id in enumerate(parent_ids)}
            parents = sorted(parents, key=lambda parent: rank.get(parent.id, len(rank)))

        return parents

    async def _compress_parent(self, query: str, parent: SearchResult):
        """Compress one parent; None marks a failed attempt"""
        try:
            return await asyncio.wait_for(
                self.compressor.compress(query, parent.text, chunk_id=parent.id),
                timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning(f"Compression timed out for parent {parent.id} after {self.timeout_seconds}s")
        except CompressionError as e:
            logger.warning(str(e))
        except Exception as e:
            logger.warning(f"Compression failed for parent {parent.id}: {e}")
        return None
