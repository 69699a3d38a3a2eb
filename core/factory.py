"""
Component Factory
Builds the ingestion and retrieval pipelines from a RAGConfig
"""
import logging
from dataclasses import dataclass
from typing import Optional

from core.config import RAGConfig, EmbeddingBackend, VectorStoreBackend
from core.exceptions import ConfigurationError
from data_pipeline.chunking.hierarchical_chunker import HierarchicalChunker
from data_pipeline.indexing.index_writer import IndexWriter
from data_pipeline.ingestion.document_ingestion_pipeline import DocumentIngestionPipeline
from data_pipeline.ingestion.web_loader import WebPageLoader
from llm_generation.compression.relevance_compressor import (
    BaseRelevanceCompressor,
    LLMExtractionCompressor,
)
from llm_generation.generation.llm_clients import create_llm_client
from llm_generation.prompt.prompt_templates import PromptTemplateLibrary
from retrieval_pipeline.context.compression_gate import CompressionGate
from retrieval_pipeline.embeddings.embedder import BaseEmbedder, OpenAIEmbedder, TransformerEmbedder
from retrieval_pipeline.pipeline import RetrievalPipeline
from retrieval_pipeline.search.candidate_retriever import CandidateRetriever
from storage.memory.store import InMemoryVectorStore
from storage.opensearch.client import OpenSearchVectorStore
from storage.vector_store import VectorStore

logger = logging.getLogger(__name__)


@dataclass
class Components:
    """Shared collaborators plus the two pipelines built on them"""
    config: RAGConfig
    embedder: BaseEmbedder
    vector_store: VectorStore
    compressor: BaseRelevanceCompressor
    ingestion: DocumentIngestionPipeline
    retrieval: RetrievalPipeline

    async def close(self):
        await self.compressor.close()
        await self.vector_store.close()


def create_embedder(config: RAGConfig) -> BaseEmbedder:
    if config.embedding_backend == EmbeddingBackend.OPENAI:
        return OpenAIEmbedder(
            model_name=config.embedding_model,
            api_key=config.openai_api_key,
            timeout_seconds=config.store_timeout_seconds,
            dimensions=config.embedding_dimension
        )
    return TransformerEmbedder(model_name=config.embedding_model)


def create_vector_store(config: RAGConfig, dimension: int) -> VectorStore:
    if config.vector_store_backend == VectorStoreBackend.MEMORY:
        return InMemoryVectorStore(dimension=dimension)
    return OpenSearchVectorStore(
        index_name=config.index_name,
        dimension=dimension,
        host=config.opensearch_host,
        port=config.opensearch_port,
        username=config.opensearch_username,
        password=config.opensearch_password,
        use_ssl=config.opensearch_use_ssl,
        timeout=config.store_timeout_seconds
    )


def create_compressor(config: RAGConfig) -> BaseRelevanceCompressor:
    llm_client = create_llm_client(
        config.llm_backend,
        api_key=config.llm_api_key,
        base_url=config.llm_base_url
    )
    return LLMExtractionCompressor(
        llm_client=llm_client,
        model_name=config.llm_model,
        temperature=config.llm_temperature,
        max_tokens=config.llm_max_tokens,
        timeout_seconds=config.llm_timeout_seconds,
        prompt_template=PromptTemplateLibrary.get_template(config.prompt_type)
    )


def create_components(
    config: RAGConfig,
    embedder: Optional[BaseEmbedder] = None,
    vector_store: Optional[VectorStore] = None,
    compressor: Optional[BaseRelevanceCompressor] = None,
    loader: Optional[WebPageLoader] = None
) -> Components:
    """
    Build every component from configuration

    Collaborators passed in explicitly are used as-is; the rest are created
    from the config. Credentials are only checked for collaborators that are
    actually created here.

    Raises:
        ConfigurationError: A collaborator to be created lacks credentials, or the
            embedder's vector size differs from the configured embedding_dimension
    """
    if embedder is None or vector_store is None or compressor is None:
        config.validate_credentials()

    embedder = embedder or create_embedder(config)
    if config.embedding_dimension is not None and embedder.dimension != config.embedding_dimension:
        raise ConfigurationError(
            f"Embedder {embedder.model_name} produces {embedder.dimension}-dimensional vectors, "
            f"but RAG_EMBEDDING_DIMENSION is {config.embedding_dimension}"
        )
    vector_store = vector_store or create_vector_store(config, embedder.dimension)
    compressor = compressor or create_compressor(config)

    loader = loader or WebPageLoader(
        timeout_seconds=config.fetch_timeout_seconds,
        max_concurrent=config.max_concurrent_fetches
    )
    chunker = HierarchicalChunker(
        parent_chunk_size=config.parent_chunk_size,
        parent_chunk_overlap=config.parent_chunk_overlap,
        child_chunk_size=config.child_chunk_size,
        child_chunk_overlap=config.child_chunk_overlap,
        length_unit=config.length_unit
    )
    writer = IndexWriter(
        embedder=embedder,
        vector_store=vector_store,
        batch_size=config.write_batch_size,
        max_concurrency=config.write_concurrency
    )

    retrieval = RetrievalPipeline(
        candidate_retriever=CandidateRetriever(
            embedder=embedder,
            vector_store=vector_store,
            top_k_children=config.top_k_children
        ),
        compression_gate=CompressionGate(
            embedder=embedder,
            vector_store=vector_store,
            compressor=compressor,
            max_concurrency=config.max_concurrent_compressions,
            timeout_seconds=config.llm_timeout_seconds,
            rank_by=config.rank_by
        ),
        k_parents=config.k_parents
    )

    logger.info(
        f"Components created: embedder={embedder.model_name}, "
        f"store={config.vector_store_backend.value}, llm={config.llm_backend.value}"
    )

    return Components(
        config=config,
        embedder=embedder,
        vector_store=vector_store,
        compressor=compressor,
        ingestion=DocumentIngestionPipeline(loader=loader, chunker=chunker, writer=writer),
        retrieval=retrieval
    )


async def prepare_store(components: Components):
    """Create the OpenSearch index when that backend is in use"""
    if isinstance(components.vector_store, OpenSearchVectorStore):
        await components.vector_store.create_index()
