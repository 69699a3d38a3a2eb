"""
Data Pipeline Module
Handles web page ingestion, parent/child chunking and index writes.
"""

from .chunking.hierarchical_chunker import HierarchicalChunker
from .indexing.index_writer import IndexWriter, WriteResult
from .ingestion.web_loader import WebPageLoader, LoadResult
from .ingestion.document_ingestion_pipeline import DocumentIngestionPipeline, IngestionResult

__all__ = [
    "HierarchicalChunker",
    "IndexWriter",
    "WriteResult",
    "WebPageLoader",
    "LoadResult",
    "DocumentIngestionPipeline",
    "IngestionResult",
]
