"""
Ingestion API Endpoints
Loads web pages and writes their parent and child chunks to the index
"""
import logging

from fastapi import APIRouter, Depends, Request

from api.models.schemas import IngestRequest, IngestResponse
from data_pipeline.ingestion.document_ingestion_pipeline import DocumentIngestionPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["ingest"])


def get_ingestion_pipeline(request: Request) -> DocumentIngestionPipeline:
    """Ingestion pipeline built once at startup"""
    return request.app.state.components.ingestion


@router.post(
    "/ingest",
    response_model=IngestResponse,
    summary="Ingest web pages",
    description="Fetches each URL, splits it into parent and child chunks and indexes both"
)
async def ingest_urls(
    request: IngestRequest,
    pipeline: DocumentIngestionPipeline = Depends(get_ingestion_pipeline)
) -> IngestResponse:
    logger.info(f"Ingest request for {len(request.urls)} URLs")

    result = await pipeline.ingest(request.urls)

    if result.failed_chunk_ids:
        result = await pipeline.retry_failed(result)

    return IngestResponse(**result.to_dict())
