"""
Tests for component wiring from configuration
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from core.config import RAGConfig
from core.exceptions import ConfigurationError
from core.factory import create_components, create_compressor, create_embedder
from llm_generation.prompt.prompt_templates import PromptTemplateLibrary
from retrieval_pipeline.embeddings.embedder import OpenAIEmbedder


def embeddings_response(dimension: int, count: int = 1):
    return MagicMock(data=[MagicMock(index=i, embedding=[0.1] * dimension) for i in range(count)])


class TestEmbeddingDimension:
    """Test that the configured vector size reaches the embedder and the store"""

    def test_openai_dimension_reaches_store(self, compressor):
        config = RAGConfig(
            embedding_backend="openai",
            openai_api_key="sk-test",
            embedding_dimension=256,
            vector_store_backend="memory",
            llm_api_key="unused"
        )

        components = create_components(config, compressor=compressor)

        assert components.embedder.dimension == 256
        assert components.vector_store.dimension == 256

    @pytest.mark.asyncio
    async def test_openai_request_carries_dimensions(self):
        client = MagicMock()
        client.embeddings.create = AsyncMock(return_value=embeddings_response(256, count=2))
        embedder = OpenAIEmbedder("text-embedding-3-small", dimensions=256, client=client)

        vectors = await embedder.embed_documents(["zebra", "migration"])

        kwargs = client.embeddings.create.call_args.kwargs
        assert kwargs["dimensions"] == 256
        assert kwargs["model"] == "text-embedding-3-small"
        assert [len(v) for v in vectors] == [256, 256]

    @pytest.mark.asyncio
    async def test_native_size_sends_no_dimensions(self):
        client = MagicMock()
        client.embeddings.create = AsyncMock(return_value=embeddings_response(1536))
        embedder = OpenAIEmbedder("text-embedding-3-small", client=client)

        await embedder.embed_documents(["zebra"])

        assert embedder.dimension == 1536
        assert "dimensions" not in client.embeddings.create.call_args.kwargs

    def test_fixed_size_model_rejects_other_dimensions(self):
        with pytest.raises(ValueError, match="1536"):
            OpenAIEmbedder("text-embedding-ada-002", dimensions=256, client=MagicMock())

    def test_create_embedder_passes_dimension(self):
        config = RAGConfig(
            embedding_backend="openai",
            openai_api_key="sk-test",
            embedding_dimension=512,
            embedding_model="text-embedding-3-large"
        )

        embedder = create_embedder(config)

        assert embedder.dimension == 512
        assert embedder.dimensions == 512

    def test_mismatched_embedder_is_a_configuration_error(self, embedder, memory_store, compressor):
        config = RAGConfig(vector_store_backend="memory", llm_api_key="unused", embedding_dimension=128)

        with pytest.raises(ConfigurationError, match="128"):
            create_components(config, embedder=embedder, vector_store=memory_store, compressor=compressor)


class TestPromptSelection:
    """Test that prompt_type picks the compressor's template"""

    def test_default_prompt(self):
        config = RAGConfig(llm_backend="ollama")

        compressor = create_compressor(config)

        assert compressor.prompt_template is PromptTemplateLibrary.EXTRACTION_TEMPLATE

    def test_strict_prompt(self):
        config = RAGConfig(llm_backend="ollama", prompt_type="strict_extraction", llm_max_tokens=300)

        compressor = create_compressor(config)

        assert compressor.prompt_template is PromptTemplateLibrary.STRICT_EXTRACTION_TEMPLATE
        assert compressor.get_config()["max_tokens"] == 300
