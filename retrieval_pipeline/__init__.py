"""
Multi-Vector Retrieval Pipeline
Child-level search, parent lookup by set membership and relevance compression
"""

from .embeddings.embedder import BaseEmbedder, TransformerEmbedder, OpenAIEmbedder
from .search.candidate_retriever import CandidateRetriever, CandidateSet
from .context.compression_gate import CompressionGate, CompressionOutcome, CompressedPassage
from .pipeline import RetrievalPipeline, QueryResult, QueryStatus

__all__ = [
    "BaseEmbedder",
    "TransformerEmbedder",
    "OpenAIEmbedder",
    "CandidateRetriever",
    "CandidateSet",
    "CompressionGate",
    "CompressionOutcome",
    "CompressedPassage",
    "RetrievalPipeline",
    "QueryResult",
    "QueryStatus"
]
