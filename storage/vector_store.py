"""
Vector Store Contract
Records, search results and the flat metadata filter every store must honour
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

IN_OPERATOR = "$in"


@dataclass
class VectorRecord:
    """Vector document for indexing"""
    id: str
    vector: List[float]
    text: str
    metadata: Dict[str, Any]


@dataclass
class SearchResult:
    """Search result container"""
    id: str
    score: float
    text: str
    metadata: Dict[str, Any]


@dataclass
class UpsertResult:
    """Per-record outcome of a batch upsert"""
    succeeded_ids: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)  # id -> error message

    @property
    def failed_ids(self) -> List[str]:
        return list(self.failed)


def validate_filter(metadata_filter: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Check a metadata filter against the supported predicates

    Supported forms:
    - {"field": "value"} exact match on a flat string field
    - {"field": {"$in": [values]}} set membership

    Raises:
        ValueError: Unknown operator, nested value or empty membership set
    """
    if not metadata_filter:
        return {}

    for key, condition in metadata_filter.items():
        if isinstance(condition, dict):
            unknown = set(condition) - {IN_OPERATOR}
            if unknown:
                raise ValueError(f"Unsupported filter operator(s) for '{key}': {sorted(unknown)}")
            values = condition.get(IN_OPERATOR)
            if not isinstance(values, (list, tuple, set, frozenset)):
                raise ValueError(f"'$in' for '{key}' must be a list of values")
            if not values:
                raise ValueError(f"'$in' for '{key}' must not be empty")
        elif isinstance(condition, (list, tuple, set)):
            raise ValueError(f"Use {{'$in': [...]}} for set membership on '{key}'")

    return metadata_filter


def matches_filter(metadata: Dict[str, Any], metadata_filter: Dict[str, Any]) -> bool:
    """Evaluate a validated filter against one record's metadata"""
    for key, condition in metadata_filter.items():
        value = metadata.get(key)
        if isinstance(condition, dict):
            if value not in set(condition[IN_OPERATOR]):
                return False
        elif value != condition:
            return False
    return True


class VectorStore(ABC):
    """
    Base class for vector stores

    Writes are keyed by record id, so re-writing a record replaces it.
    """

    @abstractmethod
    async def upsert_batch(self, records: Sequence[VectorRecord]) -> UpsertResult:
        """Insert or replace records, reporting failures per id"""
        pass

    async def upsert(self, record: VectorRecord) -> bool:
        """Insert or replace a single record"""
        result = await self.upsert_batch([record])
        return record.id in result.succeeded_ids

    @abstractmethod
    async def similarity_search(
        self,
        query_vector: List[float],
        k: int,
        metadata_filter: Optional[Dict[str, Any]] = None
    ) -> List[SearchResult]:
        """Return up to k records ranked by similarity, highest first"""
        pass

    @abstractmethod
    async def count(self, metadata_filter: Optional[Dict[str, Any]] = None) -> int:
        """Number of stored records matching the filter"""
        pass

    async def health_check(self) -> bool:
        return True

    async def close(self):
        pass
