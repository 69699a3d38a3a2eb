"""
Hierarchical Chunking for Parent-Child Document Structure
Assigns chunk identities and links every child to the parent it was cut from
"""
from typing import List, Dict, Any, Optional
import uuid
import logging

from data_pipeline.chunking.models import (
    ChunkMetadata,
    DocType,
    DocumentChunk,
    HierarchicalChunks,
    SourceDocument,
)
from data_pipeline.chunking.text_splitter import TextSplitter

logger = logging.getLogger(__name__)


def child_chunk_id(parent_id: str, sequence: int) -> str:
    """Readable child id: owning parent plus position within that parent"""
    return f"child-{parent_id}-{sequence}"


class HierarchicalChunker:
    """
    Hierarchical chunker that creates parent-child chunk relationships

    Process:
    1. Split each source document into parent windows (1000/200 by default)
    2. Give each parent a fresh uuid that is also its parent_id and source
    3. Re-split every parent's own text into child windows (400/50)
    4. Link each child to the parent whose text it was split from

    Linkage follows provenance, never position arithmetic, so parents that
    yield different numbers of children (short tails, page seams) stay
    correctly linked.
    """

    def __init__(
        self,
        parent_chunk_size: int = 1000,
        parent_chunk_overlap: int = 200,
        child_chunk_size: int = 400,
        child_chunk_overlap: int = 50,
        length_unit: str = "chars",
        id_factory=None
    ):
        self.parent_splitter = TextSplitter(parent_chunk_size, parent_chunk_overlap, length_unit)
        self.child_splitter = TextSplitter(child_chunk_size, child_chunk_overlap, length_unit)
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))

        logger.info(
            f"Hierarchical chunker initialized with parent: {parent_chunk_size}/{parent_chunk_overlap}, "
            f"child: {child_chunk_size}/{child_chunk_overlap} ({length_unit})"
        )

    def chunk_documents(self, documents: List[SourceDocument]) -> HierarchicalChunks:
        """
        Create hierarchical chunks for a batch of documents

        Args:
            documents: Loaded documents with provenance

        Returns:
            Parents, children and the parent -> children mapping
        """
        parent_chunks = self.build_parents(documents)
        child_chunks = self.build_children(parent_chunks)
        relationships = self._build_relationships(parent_chunks, child_chunks)

        logger.info(
            f"Hierarchical chunking completed: {len(documents)} documents, "
            f"{len(parent_chunks)} parents, {len(child_chunks)} children"
        )

        return HierarchicalChunks(
            parent_chunks=parent_chunks,
            child_chunks=child_chunks,
            chunk_relationships=relationships
        )

    def build_parents(self, documents: List[SourceDocument]) -> List[DocumentChunk]:
        """Split documents into self-referencing parent chunks"""
        parents = []

        for document in documents:
            for span in self.parent_splitter.split(document.text):
                chunk_id = self._id_factory()
                metadata = ChunkMetadata(
                    chunk_id=chunk_id,
                    parent_id=chunk_id,  # Self-reference
                    doc_type=DocType.PARENT,
                    source=chunk_id,
                    original_url=document.original_url,
                    position=span.index,
                    start_char=span.start,
                    end_char=span.end,
                    title=document.title
                )
                parents.append(DocumentChunk(text=span.text, metadata=metadata))

        return parents

    def build_children(self, parents: List[DocumentChunk]) -> List[DocumentChunk]:
        """Split each parent's text into children that point back at it"""
        children = []

        for parent in parents:
            if parent.metadata.doc_type != DocType.PARENT:
                raise ValueError(f"Chunk {parent.chunk_id} is not a parent chunk")
            children.extend(self._split_parent_into_children(parent))

        return children

    def _split_parent_into_children(self, parent: DocumentChunk) -> List[DocumentChunk]:
        """Split a parent chunk into child chunks"""
        children = []
        parent_id = parent.metadata.chunk_id
        offset = parent.metadata.start_char

        for span in self.child_splitter.split(parent.text):
            chunk_id = child_chunk_id(parent_id, span.index)
            metadata = ChunkMetadata(
                chunk_id=chunk_id,
                parent_id=parent_id,
                doc_type=DocType.CHILD,
                source=chunk_id,
                original_url=parent.metadata.original_url,
                position=span.index,
                start_char=offset + span.start,
                end_char=offset + span.end,
                title=parent.metadata.title
            )
            children.append(DocumentChunk(text=span.text, metadata=metadata))

        return children

    def _build_relationships(
        self,
        parent_chunks: List[DocumentChunk],
        child_chunks: List[DocumentChunk]
    ) -> Dict[str, List[str]]:
        """Build parent-child relationship mapping"""
        relationships = {parent.chunk_id: [] for parent in parent_chunks}

        for child in child_chunks:
            if child.parent_id not in relationships:
                raise ValueError(f"Child {child.chunk_id} references unknown parent {child.parent_id}")
            relationships[child.parent_id].append(child.chunk_id)

        return relationships

    def get_chunking_stats(self, result: HierarchicalChunks) -> Dict[str, Any]:
        """Get statistics about the chunking result"""
        parent_lengths = [len(chunk.text) for chunk in result.parent_chunks]
        child_lengths = [len(chunk.text) for chunk in result.child_chunks]
        children_per_parent = [len(ids) for ids in result.chunk_relationships.values()]

        return {
            "total_chunks": len(result.parent_chunks) + len(result.child_chunks),
            "parent_chunks": len(result.parent_chunks),
            "child_chunks": len(result.child_chunks),
            "parent_stats": _length_stats(parent_lengths),
            "child_stats": _length_stats(child_lengths),
            "avg_children_per_parent": len(result.child_chunks) / len(result.parent_chunks) if result.parent_chunks else 0,
            "min_children_per_parent": min(children_per_parent) if children_per_parent else 0,
            "max_children_per_parent": max(children_per_parent) if children_per_parent else 0,
            "source_urls": sorted({chunk.metadata.original_url for chunk in result.parent_chunks})
        }


def _length_stats(lengths: List[int]) -> Dict[str, Optional[float]]:
    return {
        "min_length": min(lengths) if lengths else 0,
        "max_length": max(lengths) if lengths else 0,
        "avg_length": sum(lengths) / len(lengths) if lengths else 0
    }
