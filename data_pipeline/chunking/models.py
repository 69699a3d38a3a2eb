"""
Chunk data model shared by ingestion, storage and retrieval
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

# Flat metadata keys as persisted in the vector index
DOC_TYPE_KEY = "docType"
CHUNK_ID_KEY = "chunkId"
PARENT_ID_KEY = "parentId"
SOURCE_KEY = "source"
ORIGINAL_URL_KEY = "originalUrl"
TITLE_KEY = "title"
POSITION_KEY = "position"
START_CHAR_KEY = "startChar"
END_CHAR_KEY = "endChar"


class DocType(str, Enum):
    """Chunk granularity"""
    PARENT = "parent"
    CHILD = "child"


@dataclass
class SourceDocument:
    """Raw document text plus provenance, as produced by a loader"""
    text: str
    original_url: str
    title: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ChunkMetadata:
    """Metadata for document chunks"""
    chunk_id: str
    parent_id: str
    doc_type: DocType
    source: str
    original_url: str
    position: int = 0
    start_char: int = 0
    end_char: int = 0
    title: Optional[str] = None

    def to_store_metadata(self) -> Dict[str, Any]:
        """Flatten into the field layout kept next to each vector"""
        metadata = {
            DOC_TYPE_KEY: self.doc_type.value,
            CHUNK_ID_KEY: self.chunk_id,
            PARENT_ID_KEY: self.parent_id,
            SOURCE_KEY: self.source,
            ORIGINAL_URL_KEY: self.original_url,
            POSITION_KEY: self.position,
            START_CHAR_KEY: self.start_char,
            END_CHAR_KEY: self.end_char,
        }
        if self.title:
            metadata[TITLE_KEY] = self.title
        return metadata

    @classmethod
    def from_store_metadata(cls, metadata: Dict[str, Any]) -> "ChunkMetadata":
        return cls(
            chunk_id=metadata[CHUNK_ID_KEY],
            parent_id=metadata[PARENT_ID_KEY],
            doc_type=DocType(metadata[DOC_TYPE_KEY]),
            source=metadata.get(SOURCE_KEY, metadata[CHUNK_ID_KEY]),
            original_url=metadata.get(ORIGINAL_URL_KEY, ""),
            position=int(metadata.get(POSITION_KEY, 0)),
            start_char=int(metadata.get(START_CHAR_KEY, 0)),
            end_char=int(metadata.get(END_CHAR_KEY, 0)),
            title=metadata.get(TITLE_KEY),
        )


@dataclass(frozen=True)
class DocumentChunk:
    """Single document chunk with metadata"""
    text: str
    metadata: ChunkMetadata

    @property
    def chunk_id(self) -> str:
        return self.metadata.chunk_id

    @property
    def parent_id(self) -> str:
        return self.metadata.parent_id

    @property
    def is_parent(self) -> bool:
        return self.metadata.doc_type == DocType.PARENT


@dataclass
class HierarchicalChunks:
    """Complete hierarchical chunking result"""
    parent_chunks: List[DocumentChunk]
    child_chunks: List[DocumentChunk]
    chunk_relationships: Dict[str, List[str]]  # parent_id -> [child_ids]

    @property
    def all_chunks(self) -> List[DocumentChunk]:
        """Parents followed by children, the order they are written in"""
        return self.parent_chunks + self.child_chunks
