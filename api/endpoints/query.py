"""
Query API Endpoints
Runs the multi-vector retrieval pipeline for a single query
"""
import logging

from fastapi import APIRouter, Depends, Request

from api.models.schemas import (
    QueryRequest,
    QueryResponse,
    ErrorResponse,
    PassageModel,
    TimingsModel
)
from core.logging_config import truncate_for_log
from retrieval_pipeline.pipeline import RetrievalPipeline, QueryResult

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/api/v1", tags=["query"])


# Dependency injection helpers
def get_retrieval_pipeline(request: Request) -> RetrievalPipeline:
    """Retrieval pipeline built once at startup"""
    return request.app.state.components.retrieval


@router.post(
    "/query",
    response_model=QueryResponse,
    responses={502: {"model": ErrorResponse}},
    summary="Retrieve relevant passages for a query",
    description="Searches child chunks, fetches their parents and returns the relevant parts"
)
async def process_query(
    request: QueryRequest,
    pipeline: RetrievalPipeline = Depends(get_retrieval_pipeline)
) -> QueryResponse:
    """
    Process user query

    Steps:
    1. Child search for candidate parents
    2. Parent search restricted to those candidates
    3. Relevance compression of each parent
    """
    logger.info(f"Processing query: {truncate_for_log(request.query, 100)}")

    # RetrievalError is mapped to 502 by the application handler
    result = await pipeline.query(request.query, k_parents=request.k_parents)

    return _build_query_response(result)


def _build_query_response(result: QueryResult) -> QueryResponse:
    """Build query response from pipeline result"""
    return QueryResponse(
        query=result.query,
        status=result.status.value,
        passages=[
            PassageModel(
                chunk_id=passage.chunk_id,
                text=passage.text,
                verdict=passage.verdict.value,
                score=passage.score,
                original_url=passage.original_url
            )
            for passage in result.passages
        ],
        parent_ids=result.parent_ids,
        failed_chunk_ids=result.failed_chunk_ids,
        timings=TimingsModel(
            total_ms=result.total_time_ms,
            retrieval_ms=result.retrieval_time_ms,
            compression_ms=result.compression_time_ms
        )
    )
