"""
Storage Layer Module
Vector store contract with OpenSearch and in-memory implementations
"""

from .vector_store import VectorStore, VectorRecord, SearchResult, UpsertResult, validate_filter
from .opensearch.client import OpenSearchVectorStore
from .memory.store import InMemoryVectorStore

__all__ = [
    "VectorStore",
    "VectorRecord",
    "SearchResult",
    "UpsertResult",
    "validate_filter",
    "OpenSearchVectorStore",
    "InMemoryVectorStore",
]
