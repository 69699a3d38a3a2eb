"""
Core Module
Configuration, errors, logging and component wiring shared by every pipeline
"""
from core.config import RAGConfig, EmbeddingBackend, LLMBackend, VectorStoreBackend, RankBy
from core.exceptions import (
    MultiVectorRAGError,
    ConfigurationError,
    DocumentFetchError,
    IndexWriteError,
    RetrievalError,
    CompressionError
)

__all__ = [
    "RAGConfig",
    "EmbeddingBackend",
    "LLMBackend",
    "VectorStoreBackend",
    "RankBy",
    "MultiVectorRAGError",
    "ConfigurationError",
    "DocumentFetchError",
    "IndexWriteError",
    "RetrievalError",
    "CompressionError",
]
