"""
Main Retrieval Pipeline
Orchestrates child search, parent lookup and relevance compression
"""
import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Dict, Any, Optional
import time
import logging

from core.exceptions import RetrievalError
from core.logging_config import truncate_for_log
from retrieval_pipeline.context.compression_gate import CompressionGate, CompressedPassage
from retrieval_pipeline.search.candidate_retriever import CandidateRetriever

logger = logging.getLogger(__name__)


class QueryStatus(str, Enum):
    """Outcome of a query"""
    OK = "ok"
    NO_CANDIDATES = "no_candidates"                      # no child matched
    NO_RELEVANT_CONTENT = "no_relevant_content"          # compressor kept nothing
    COMPRESSION_UNAVAILABLE = "compression_unavailable"  # every compression attempt failed
    ERROR = "error"                                      # batch_query only


@dataclass
class QueryResult:
    """Complete retrieval result"""
    query: str
    passages: List[CompressedPassage] = field(default_factory=list)
    parent_ids: List[str] = field(default_factory=list)
    status: QueryStatus = QueryStatus.OK

    # Performance metrics
    total_time_ms: float = 0.0
    retrieval_time_ms: float = 0.0
    compression_time_ms: float = 0.0

    # Metadata
    child_matches: int = 0
    failed_chunk_ids: List[str] = field(default_factory=list)
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "status": self.status.value,
            "passages": [passage.to_dict() for passage in self.passages],
            "parent_ids": list(self.parent_ids),
            "child_matches": self.child_matches,
            "failed_chunk_ids": list(self.failed_chunk_ids),
            "timings": {
                "total_ms": self.total_time_ms,
                "retrieval_ms": self.retrieval_time_ms,
                "compression_ms": self.compression_time_ms,
            },
        }


class RetrievalPipeline:
    """
    Multi-vector retrieval pipeline

    Complete flow:
    1. Semantic search over child chunks (docType = child)
    2. Projection of child matches to distinct parent ids
    3. Parent search restricted to those ids (source $in parent ids)
    4. LLM relevance compression of each parent
    """

    def __init__(
        self,
        candidate_retriever: CandidateRetriever,
        compression_gate: CompressionGate,
        k_parents: int = 3
    ):
        self.candidate_retriever = candidate_retriever
        self.compression_gate = compression_gate
        self.k_parents = k_parents

        logger.info("Multi-vector retrieval pipeline initialized")

    async def query(self, query: str, k_parents: Optional[int] = None) -> QueryResult:
        """
        Execute the retrieval pipeline

        Args:
            query: User query
            k_parents: Parents to compress (defaults to the configured value)

        Returns:
            QueryResult echoing the query, with passages in rank order

        Raises:
            ValueError: Blank query or non-positive k_parents
            RetrievalError: The vector store could not answer a search
        """
        if k_parents is None:
            k_parents = self.k_parents
        elif k_parents <= 0:
            raise ValueError("k_parents must be positive")
        start_time = time.time()

        # Stage 1: Candidate parents from child search
        candidates = await self.candidate_retriever.retrieve(query)
        retrieval_time = (time.time() - start_time) * 1000

        if candidates.is_empty:
            logger.info(f"No candidates for '{truncate_for_log(query)}'")
            return QueryResult(
                query=query,
                status=QueryStatus.NO_CANDIDATES,
                total_time_ms=(time.time() - start_time) * 1000,
                retrieval_time_ms=retrieval_time,
                child_matches=len(candidates.child_matches)
            )

        # Stage 2: Parent search and compression
        compression_start = time.time()
        outcome = await self.compression_gate.refine(
            query,
            candidates.parent_ids,
            k_parents=k_parents,
            query_vector=candidates.query_vector
        )
        compression_time = (time.time() - compression_start) * 1000

        if outcome.all_failed:
            status = QueryStatus.COMPRESSION_UNAVAILABLE
        elif not outcome.passages:
            status = QueryStatus.NO_RELEVANT_CONTENT
        else:
            status = QueryStatus.OK

        total_time = (time.time() - start_time) * 1000

        result = QueryResult(
            query=query,
            passages=outcome.passages,
            parent_ids=candidates.parent_ids,
            status=status,
            total_time_ms=total_time,
            retrieval_time_ms=retrieval_time,
            compression_time_ms=compression_time,
            child_matches=len(candidates.child_matches),
            failed_chunk_ids=outcome.failed_chunk_ids
        )

        logger.info(
            f"Pipeline completed: '{truncate_for_log(query)}' → {len(result.passages)} passages "
            f"({status.value}) in {total_time:.2f}ms"
        )
        return result

    async def batch_query(
        self,
        queries: List[str],
        k_parents: Optional[int] = None,
        max_concurrent: int = 3
    ) -> List[QueryResult]:
        """Process multiple queries in parallel; results keep the input order"""
        semaphore = asyncio.Semaphore(max_concurrent)

        async def process_query(query: str) -> QueryResult:
            async with semaphore:
                return await self.query(query, k_parents)

        tasks = [process_query(query) for query in queries]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        # Handle exceptions
        final_results = []
        for query, result in zip(queries, results):
            if isinstance(result, (RetrievalError, ValueError)):
                logger.error(f"Query '{truncate_for_log(query)}' failed: {result}")
                final_results.append(QueryResult(
                    query=query,
                    status=QueryStatus.ERROR,
                    error_message=str(result)
                ))
            elif isinstance(result, BaseException):
                raise result
            else:
                final_results.append(result)

        return final_results

    async def health_check(self) -> Dict[str, bool]:
        """Check health of all pipeline components"""
        health = {}

        try:
            health["vector_store"] = await self.candidate_retriever.vector_store.health_check()
        except Exception as e:
            logger.warning(f"Vector store health check failed: {e}")
            health["vector_store"] = False

        try:
            # Test embedding
            vector = await self.candidate_retriever.embedder.embed_query("health check")
            health["embedder"] = len(vector) > 0
        except Exception as e:
            logger.warning(f"Embedder health check failed: {e}")
            health["embedder"] = False

        health["overall"] = all(health.values())
        return health

    def get_pipeline_stats(self) -> Dict[str, Any]:
        """Get pipeline configuration"""
        return {
            "top_k_children": self.candidate_retriever.top_k_children,
            "k_parents": self.k_parents,
            "rank_by": self.compression_gate.rank_by.value,
            "max_concurrent_compressions": self.compression_gate.max_concurrency,
            "compression_timeout_seconds": self.compression_gate.timeout_seconds,
            "embedder": self.candidate_retriever.embedder.get_model_info(),
        }
