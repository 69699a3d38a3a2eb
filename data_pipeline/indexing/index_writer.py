"""
Index Writer
Embeds chunks and upserts them into the shared vector index in bounded batches
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import List, Dict, Sequence, Optional

from core.exceptions import IndexWriteError
from data_pipeline.chunking.models import DocumentChunk
from retrieval_pipeline.embeddings.embedder import BaseEmbedder
from storage.vector_store import VectorStore, VectorRecord

logger = logging.getLogger(__name__)


@dataclass
class WriteResult:
    """
    Outcome of writing a set of chunks

    Attributes:
        written_ids: Chunk ids confirmed by the store, in input order
        failed_ids: Chunk ids that were not written, in input order
        errors: chunk_id -> error message for every failed id
    """
    written_ids: List[str] = field(default_factory=list)
    failed_ids: List[str] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)
    write_time_seconds: float = 0.0

    @property
    def written_count(self) -> int:
        return len(self.written_ids)

    @property
    def success(self) -> bool:
        return not self.failed_ids


class IndexWriter:
    """
    Batch writer for parent and child chunks

    Each batch is embedded and upserted as one unit; at most
    `max_concurrency` batches are in flight. Records are keyed by chunk id,
    so writing the same chunks twice leaves one copy of each.
    """

    def __init__(
        self,
        embedder: BaseEmbedder,
        vector_store: VectorStore,
        batch_size: int = 64,
        max_concurrency: int = 5
    ):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if max_concurrency <= 0:
            raise ValueError("max_concurrency must be positive")

        self.embedder = embedder
        self.vector_store = vector_store
        self.batch_size = batch_size
        self.max_concurrency = max_concurrency

        logger.info(
            f"Initialized IndexWriter with batch_size={batch_size}, max_concurrency={max_concurrency}"
        )

    async def write(
        self,
        chunks: Sequence[DocumentChunk],
        raise_on_failure: bool = False
    ) -> WriteResult:
        """
        Embed and store chunks

        Args:
            chunks: Parent and/or child chunks
            raise_on_failure: Raise IndexWriteError instead of returning a partial result

        Returns:
            WriteResult with written and failed ids
        """
        start_time = time.time()
        result = WriteResult()

        if not chunks:
            return result

        batches = [
            list(chunks[i:i + self.batch_size])
            for i in range(0, len(chunks), self.batch_size)
        ]
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def write_with_semaphore(batch_index: int, batch: List[DocumentChunk]):
            async with semaphore:
                return await self._write_batch(batch_index, batch)

        batch_outcomes = await asyncio.gather(
            *(write_with_semaphore(i, batch) for i, batch in enumerate(batches))
        )

        written = set()
        for succeeded, errors in batch_outcomes:
            written.update(succeeded)
            result.errors.update(errors)

        for chunk in chunks:
            if chunk.chunk_id in written and chunk.chunk_id not in result.errors:
                result.written_ids.append(chunk.chunk_id)
            else:
                result.failed_ids.append(chunk.chunk_id)
                result.errors.setdefault(chunk.chunk_id, "not acknowledged by vector store")

        result.write_time_seconds = time.time() - start_time

        if result.failed_ids:
            logger.warning(
                f"Wrote {result.written_count}/{len(chunks)} chunks; "
                f"{len(result.failed_ids)} failed"
            )
            if raise_on_failure:
                raise IndexWriteError(
                    f"{len(result.failed_ids)} of {len(chunks)} chunks failed to write",
                    failed_ids=result.failed_ids,
                    errors=result.errors
                )
        else:
            logger.info(
                f"Wrote {result.written_count} chunks in {len(batches)} batches "
                f"({result.write_time_seconds:.2f}s)"
            )

        return result

    async def _write_batch(self, batch_index: int, batch: List[DocumentChunk]):
        """Embed and upsert one batch; failures are reported per chunk id"""
        chunk_ids = [chunk.chunk_id for chunk in batch]

        try:
            vectors = await self.embedder.embed_documents([chunk.text for chunk in batch])
            if len(vectors) != len(batch):
                raise ValueError(f"embedder returned {len(vectors)} vectors for {len(batch)} texts")

            records = [
                VectorRecord(
                    id=chunk.chunk_id,
                    vector=list(vector),
                    text=chunk.text,
                    metadata=chunk.metadata.to_store_metadata()
                )
                for chunk, vector in zip(batch, vectors)
            ]
            upsert_result = await self.vector_store.upsert_batch(records)

        except Exception as e:
            logger.error(f"Batch {batch_index} ({len(batch)} chunks) failed: {e}")
            return [], {chunk_id: str(e) for chunk_id in chunk_ids}

        for chunk_id, error in upsert_result.failed.items():
            logger.warning(f"Chunk {chunk_id} rejected by vector store: {error}")

        return upsert_result.succeeded_ids, dict(upsert_result.failed)

    async def retry(
        self,
        chunks: Sequence[DocumentChunk],
        previous_result: WriteResult
    ) -> WriteResult:
        """
        Re-write only the chunks that failed previously

        Args:
            chunks: The chunks originally passed to write()
            previous_result: Result of that write

        Returns:
            Merged WriteResult covering the original chunk set
        """
        failed = set(previous_result.failed_ids)
        to_retry = [chunk for chunk in chunks if chunk.chunk_id in failed]

        if not to_retry:
            return previous_result

        logger.info(f"Retrying {len(to_retry)} failed chunks")
        retry_result = await self.write(to_retry)

        return WriteResult(
            written_ids=previous_result.written_ids + retry_result.written_ids,
            failed_ids=retry_result.failed_ids,
            errors=retry_result.errors,
            write_time_seconds=previous_result.write_time_seconds + retry_result.write_time_seconds
        )

    def get_config(self) -> Dict[str, Optional[int]]:
        return {"batch_size": self.batch_size, "max_concurrency": self.max_concurrency}
