"""
Exception hierarchy for the multi-vector retrieval system
"""
from typing import Dict, List, Optional


class MultiVectorRAGError(Exception):
    """Base class for all errors raised by this package"""


class ConfigurationError(MultiVectorRAGError):
    """Missing credentials, index name or otherwise unusable configuration"""


class DocumentFetchError(MultiVectorRAGError):
    """A source URL could not be fetched or parsed"""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to fetch {url}: {reason}")
        self.url = url
        self.reason = reason


class IndexWriteError(MultiVectorRAGError):
    """One or more chunks could not be embedded or stored"""

    def __init__(self, message: str, failed_ids: Optional[List[str]] = None,
                 errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.failed_ids = failed_ids or []
        self.errors = errors or {}


class RetrievalError(MultiVectorRAGError):
    """The vector store could not answer a search (unreachable, bad filter)"""


class CompressionError(MultiVectorRAGError):
    """The relevance compressor failed for a single passage"""

    def __init__(self, chunk_id: Optional[str], reason: str):
        target = f"chunk {chunk_id}" if chunk_id else "passage"
        super().__init__(f"Compression failed for {target}: {reason}")
        self.chunk_id = chunk_id
        self.reason = reason
