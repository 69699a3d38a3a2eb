"""
Chunking Module
Fixed-window splitting and parent/child hierarchy construction
"""
from .models import (
    DocType,
    SourceDocument,
    ChunkMetadata,
    DocumentChunk,
    HierarchicalChunks
)
from .text_splitter import TextSplitter, TextSpan
from .hierarchical_chunker import HierarchicalChunker, child_chunk_id

__all__ = [
    "DocType",
    "SourceDocument",
    "ChunkMetadata",
    "DocumentChunk",
    "HierarchicalChunks",
    "TextSplitter",
    "TextSpan",
    "HierarchicalChunker",
    "child_chunk_id",
]
