"""
Candidate Retrieval over Child Chunks
Searches the small child passages and projects the matches onto their parents
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from core.exceptions import RetrievalError
from core.logging_config import truncate_for_log
from data_pipeline.chunking.models import DocType, DOC_TYPE_KEY, PARENT_ID_KEY
from retrieval_pipeline.embeddings.embedder import BaseEmbedder
from storage.vector_store import VectorStore, SearchResult

logger = logging.getLogger(__name__)


@dataclass
class CandidateSet:
    """
    Parents referenced by the best-matching children

    Attributes:
        parent_ids: Distinct parent ids in first-seen child rank order
        child_matches: Raw child search results, best first
        query_vector: Query embedding, reused for the parent search
    """
    parent_ids: List[str] = field(default_factory=list)
    child_matches: List[SearchResult] = field(default_factory=list)
    query_vector: Optional[List[float]] = None

    @property
    def is_empty(self) -> bool:
        return not self.parent_ids

    def __len__(self) -> int:
        return len(self.parent_ids)


def distinct_parent_ids(child_matches: List[SearchResult]) -> List[str]:
    """Project child matches to parent ids, dropping repeats but keeping rank order"""
    parent_ids: List[str] = []
    seen = set()

    for match in child_matches:
        parent_id = match.metadata.get(PARENT_ID_KEY)
        if not parent_id:
            logger.warning(f"Child match {match.id} has no {PARENT_ID_KEY}; skipping")
            continue
        if parent_id not in seen:
            seen.add(parent_id)
            parent_ids.append(parent_id)

    return parent_ids


class CandidateRetriever:
    """Child-level semantic search that yields candidate parent ids"""

    def __init__(
        self,
        embedder: BaseEmbedder,
        vector_store: VectorStore,
        top_k_children: int = 10
    ):
        if top_k_children <= 0:
            raise ValueError("top_k_children must be positive")

        self.embedder = embedder
        self.vector_store = vector_store
        self.top_k_children = top_k_children

    async def retrieve(self, query: str, top_k_children: Optional[int] = None) -> CandidateSet:
        """
        Find candidate parents for a query

        Args:
            query: User query
            top_k_children: Child matches to consider (defaults to the configured value)

        Returns:
            CandidateSet, empty when no child matched

        Raises:
            ValueError: Blank query or non-positive top_k_children
            RetrievalError: Embedding or vector store failure
        """
        if not query or not query.strip():
            raise ValueError("query must not be empty")

        k = self.top_k_children if top_k_children is None else top_k_children
        if k <= 0:
            raise ValueError("top_k_children must be positive")

        try:
            query_vector = await self.embedder.embed_query(query)
        except Exception as e:
            raise RetrievalError(f"Query embedding failed: {e}") from e

        try:
            child_matches = await self.vector_store.similarity_search(
                query_vector,
                k=k,
                metadata_filter={DOC_TYPE_KEY: DocType.CHILD.value}
            )
        except Exception as e:
            raise RetrievalError(f"Child search failed: {e}") from e

        parent_ids = distinct_parent_ids(child_matches)

        logger.info(
            f"Child search for '{truncate_for_log(query)}': {len(child_matches)} matches, "
            f"{len(parent_ids)} candidate parents"
        )

        return CandidateSet(
            parent_ids=parent_ids,
            child_matches=child_matches,
            query_vector=query_vector
        )
