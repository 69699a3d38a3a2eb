"""
In-memory vector store
Brute-force cosine similarity over numpy arrays for local runs and tests
"""
import asyncio
from typing import Any, Dict, List, Optional, Sequence
import logging

import numpy as np

from storage.vector_store import (
    SearchResult,
    UpsertResult,
    VectorRecord,
    VectorStore,
    matches_filter,
    validate_filter,
)

logger = logging.getLogger(__name__)


class InMemoryVectorStore(VectorStore):
    """Dict-backed store; ties keep insertion order"""

    def __init__(self, dimension: Optional[int] = None):
        self.dimension = dimension
        self._records: Dict[str, VectorRecord] = {}
        self._vectors: Dict[str, np.ndarray] = {}
        self._lock = asyncio.Lock()

    async def upsert_batch(self, records: Sequence[VectorRecord]) -> UpsertResult:
        result = UpsertResult()

        async with self._lock:
            for record in records:
                vector = np.asarray(record.vector, dtype=np.float32)
                if self.dimension is None:
                    self.dimension = vector.shape[0]

                if vector.ndim != 1 or vector.shape[0] != self.dimension:
                    result.failed[record.id] = (
                        f"expected vector of dimension {self.dimension}, got shape {vector.shape}"
                    )
                    continue

                norm = np.linalg.norm(vector)
                self._vectors[record.id] = vector / norm if norm > 0 else vector
                self._records[record.id] = VectorRecord(
                    id=record.id,
                    vector=list(record.vector),
                    text=record.text,
                    metadata=dict(record.metadata)
                )
                result.succeeded_ids.append(record.id)

        if result.failed:
            logger.warning(f"In-memory upsert rejected {len(result.failed)} records")
        return result

    async def similarity_search(
        self,
        query_vector: List[float],
        k: int,
        metadata_filter: Optional[Dict[str, Any]] = None
    ) -> List[SearchResult]:
        metadata_filter = validate_filter(metadata_filter)
        if k <= 0 or not self._records:
            return []

        query = np.asarray(query_vector, dtype=np.float32)
        norm = np.linalg.norm(query)
        if norm > 0:
            query = query / norm

        candidates = [
            record_id for record_id, record in self._records.items()
            if matches_filter(record.metadata, metadata_filter)
        ]
        if not candidates:
            return []

        matrix = np.stack([self._vectors[record_id] for record_id in candidates])
        scores = matrix @ query

        # Stable sort keeps insertion order among equal scores
        order = np.argsort(-scores, kind="stable")[:k]

        results = []
        for i in order:
            record = self._records[candidates[i]]
            results.append(SearchResult(
                id=record.id,
                score=float(scores[i]),
                text=record.text,
                metadata=dict(record.metadata)
            ))
        return results

    async def count(self, metadata_filter: Optional[Dict[str, Any]] = None) -> int:
        metadata_filter = validate_filter(metadata_filter)
        return sum(
            1 for record in self._records.values()
            if matches_filter(record.metadata, metadata_filter)
        )

    def get(self, record_id: str) -> Optional[VectorRecord]:
        return self._records.get(record_id)

    def __len__(self) -> int:
        return len(self._records)
