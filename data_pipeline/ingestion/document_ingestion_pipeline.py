"""
Complete Document Ingestion Pipeline
Orchestrates the entire process: URLs → Parent/Child Chunks → Embeddings → Vector Index
"""
import logging
import time
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Sequence

from data_pipeline.chunking.hierarchical_chunker import HierarchicalChunker
from data_pipeline.chunking.models import DocType, DocumentChunk, SourceDocument, DOC_TYPE_KEY
from data_pipeline.indexing.index_writer import IndexWriter, WriteResult
from data_pipeline.ingestion.web_loader import WebPageLoader

logger = logging.getLogger(__name__)


@dataclass
class IngestionResult:
    """Result of an ingestion run"""
    status: str  # "success", "partial", "error"
    documents_loaded: int
    parent_chunks_count: int
    child_chunks_count: int
    written_count: int
    failed_urls: Dict[str, str] = field(default_factory=dict)
    failed_chunk_ids: List[str] = field(default_factory=list)
    error_message: Optional[str] = None
    processing_time_seconds: float = 0.0

    # Kept so failed chunks can be re-written without re-chunking
    chunks: List[DocumentChunk] = field(default_factory=list, repr=False)
    write_result: Optional[WriteResult] = field(default=None, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "documents_loaded": self.documents_loaded,
            "parent_chunks": self.parent_chunks_count,
            "child_chunks": self.child_chunks_count,
            "written": self.written_count,
            "failed_urls": dict(self.failed_urls),
            "failed_chunk_ids": list(self.failed_chunk_ids),
            "error_message": self.error_message,
            "processing_time_seconds": self.processing_time_seconds,
        }


def _ingestion_status(failed_urls: Dict[str, str], documents_loaded: int, write_result: WriteResult) -> str:
    if write_result.failed_ids and not write_result.written_ids:
        return "error"
    if failed_urls and documents_loaded == 0:
        return "error"
    if failed_urls or write_result.failed_ids:
        return "partial"
    return "success"


class DocumentIngestionPipeline:
    """
    Document ingestion pipeline for multi-vector retrieval

    Pipeline stages:
    1. Web page loading (HTML → text, with originalUrl provenance)
    2. Parent chunking (fresh uuid per parent)
    3. Child chunking (each child linked to the parent it was split from)
    4. Embedding and storage of parents and children in one index

    Fetch failures skip the URL; write failures are reported per chunk id
    and can be retried with retry_failed().
    """

    def __init__(
        self,
        loader: WebPageLoader,
        chunker: HierarchicalChunker,
        writer: IndexWriter
    ):
        self.loader = loader
        self.chunker = chunker
        self.writer = writer

        logger.info("Document ingestion pipeline initialized")

    async def ingest(self, urls: Sequence[str]) -> IngestionResult:
        """
        Ingest web pages into the vector index

        Args:
            urls: Page URLs to load

        Returns:
            IngestionResult with counts, failed URLs and failed chunk ids
        """
        start_time = time.time()
        logger.info(f"Starting ingestion of {len(urls)} URLs")

        # Stage 1: Document Loading
        load_result = await self.loader.load_many(urls)

        result = await self._ingest_loaded(load_result.documents, load_result.failed_urls)
        result.processing_time_seconds = time.time() - start_time

        logger.info(
            f"Ingestion {result.status}: {result.parent_chunks_count} parents, "
            f"{result.child_chunks_count} children, {result.written_count} written "
            f"in {result.processing_time_seconds:.2f}s"
        )
        return result

    async def ingest_documents(self, documents: Sequence[SourceDocument]) -> IngestionResult:
        """Ingest documents that were loaded elsewhere"""
        start_time = time.time()
        result = await self._ingest_loaded(list(documents), {})
        result.processing_time_seconds = time.time() - start_time
        return result

    async def _ingest_loaded(
        self,
        documents: List[SourceDocument],
        failed_urls: Dict[str, str]
    ) -> IngestionResult:
        try:
            # Stage 2 and 3: Hierarchical Chunking
            hierarchical_chunks = self.chunker.chunk_documents(documents)
            chunks = hierarchical_chunks.all_chunks

            # Stage 4: Embedding and Storage
            write_result = await self.writer.write(chunks)

        except Exception as e:
            logger.error(f"Ingestion failed: {e}")
            return IngestionResult(
                status="error",
                documents_loaded=len(documents),
                parent_chunks_count=0,
                child_chunks_count=0,
                written_count=0,
                failed_urls=dict(failed_urls),
                error_message=str(e)
            )

        return IngestionResult(
            status=_ingestion_status(failed_urls, len(documents), write_result),
            documents_loaded=len(documents),
            parent_chunks_count=len(hierarchical_chunks.parent_chunks),
            child_chunks_count=len(hierarchical_chunks.child_chunks),
            written_count=write_result.written_count,
            failed_urls=dict(failed_urls),
            failed_chunk_ids=list(write_result.failed_ids),
            chunks=chunks,
            write_result=write_result
        )

    async def retry_failed(self, result: IngestionResult) -> IngestionResult:
        """
        Re-write only the chunks that failed in a previous run

        Failed URLs are not re-fetched; ingest them again to retry loading.
        """
        if not result.failed_chunk_ids or result.write_result is None:
            return result

        start_time = time.time()
        write_result = await self.writer.retry(result.chunks, result.write_result)

        retried = IngestionResult(
            status=_ingestion_status(result.failed_urls, result.documents_loaded, write_result),
            documents_loaded=result.documents_loaded,
            parent_chunks_count=result.parent_chunks_count,
            child_chunks_count=result.child_chunks_count,
            written_count=write_result.written_count,
            failed_urls=dict(result.failed_urls),
            failed_chunk_ids=list(write_result.failed_ids),
            processing_time_seconds=result.processing_time_seconds + (time.time() - start_time),
            chunks=result.chunks,
            write_result=write_result
        )

        logger.info(
            f"Retry finished: {len(result.failed_chunk_ids) - len(retried.failed_chunk_ids)} "
            f"recovered, {len(retried.failed_chunk_ids)} still failing"
        )
        return retried

    async def get_ingestion_stats(self) -> Dict[str, Any]:
        """Get statistics about the indexed chunks"""
        store = self.writer.vector_store

        return {
            "parent_chunks": await store.count({DOC_TYPE_KEY: DocType.PARENT.value}),
            "child_chunks": await store.count({DOC_TYPE_KEY: DocType.CHILD.value}),
            "total_chunks": await store.count(),
            "write_config": self.writer.get_config(),
        }
