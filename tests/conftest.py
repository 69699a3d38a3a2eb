"""
Shared fixtures: deterministic embedder, scripted compressor, in-memory store
"""
import hashlib
import re
from typing import List, Optional, Sequence

import numpy as np
import pytest

from data_pipeline.chunking.hierarchical_chunker import HierarchicalChunker
from data_pipeline.chunking.models import SourceDocument
from llm_generation.compression.relevance_compressor import (
    BaseRelevanceCompressor,
    CompressionResult,
)
from retrieval_pipeline.embeddings.embedder import BaseEmbedder
from storage.memory.store import InMemoryVectorStore


class HashingEmbedder(BaseEmbedder):
    """Bag-of-words embedder: texts sharing words get similar vectors"""

    def __init__(self, dimension: int = 64):
        self.model_name = "hashing-test-embedder"
        self._dimension = dimension
        self.calls: List[List[str]] = []

    @property
    def dimension(self) -> int:
        return self._dimension

    def _embed(self, text: str) -> List[float]:
        vector = np.zeros(self._dimension, dtype=np.float32)
        for word in re.findall(r"[a-z0-9]+", text.lower()):
            digest = hashlib.md5(word.encode("utf-8")).digest()
            vector[int.from_bytes(digest[:4], "little") % self._dimension] += 1.0
        norm = np.linalg.norm(vector)
        if norm == 0:
            vector[0] = 1.0
            norm = 1.0
        return (vector / norm).tolist()

    async def embed_documents(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        return [self._embed(text) for text in texts]


class FlakyStore(InMemoryVectorStore):
    """In-memory store that rejects configured ids until `heal()` is called"""

    def __init__(self, reject_ids=()):
        super().__init__()
        self.reject_ids = set(reject_ids)
        self.upserted_batches = []

    def heal(self):
        self.reject_ids = set()

    async def upsert_batch(self, records):
        self.upserted_batches.append([r.id for r in records])
        accepted = [r for r in records if r.id not in self.reject_ids]
        result = await super().upsert_batch(accepted)
        for r in records:
            if r.id in self.reject_ids:
                result.failed[r.id] = "rejected"
        return result


class ScriptedCompressor(BaseRelevanceCompressor):
    """
    Compressor whose verdict depends on marker words in the passage

    - passages containing a word in `fail_on` raise
    - passages containing a word in `drop_on` are judged irrelevant
    - everything else is kept in full
    """

    def __init__(
        self,
        fail_on: Sequence[str] = (),
        drop_on: Sequence[str] = (),
        excerpt_on: Sequence[str] = ()
    ):
        self.fail_on = list(fail_on)
        self.drop_on = list(drop_on)
        self.excerpt_on = list(excerpt_on)
        self.calls: List[str] = []
        self.chunk_ids: List[Optional[str]] = []

    async def compress(self, query: str, text: str, chunk_id: Optional[str] = None) -> CompressionResult:
        self.calls.append(text)
        self.chunk_ids.append(chunk_id)
        if any(marker in text for marker in self.fail_on):
            raise RuntimeError("compressor unavailable")
        if any(marker in text for marker in self.drop_on):
            return CompressionResult.none()
        for marker in self.excerpt_on:
            if marker in text:
                return CompressionResult.excerpt(marker)
        return CompressionResult.full(text)


def make_document(topic: str, url: str, length: int = 2500, title: Optional[str] = None) -> SourceDocument:
    """Document of roughly `length` chars built from repeated topic sentences"""
    sentence = f"{topic} is discussed in this sentence about {topic}. "
    text = (sentence * (length // len(sentence) + 1))[:length]
    return SourceDocument(text=text, original_url=url, title=title)


@pytest.fixture
def embedder():
    return HashingEmbedder()


@pytest.fixture
def memory_store():
    return InMemoryVectorStore()


@pytest.fixture
def compressor():
    return ScriptedCompressor()


@pytest.fixture
def chunker():
    return HierarchicalChunker()


@pytest.fixture
def sample_documents():
    return [
        make_document("zebra migration", "https://example.com/zebras", title="Zebras"),
        make_document("quantum computing", "https://example.com/quantum", title="Quantum"),
    ]


@pytest.fixture
def document_factory():
    return make_document


@pytest.fixture
def compressor_factory():
    return ScriptedCompressor


@pytest.fixture
def flaky_store_factory():
    return FlakyStore
