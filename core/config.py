"""
Configuration Module
Settings for chunking, retrieval, concurrency and the external collaborators
"""
import os
from dataclasses import dataclass
from typing import Optional, Dict, Any
from enum import Enum

from core.exceptions import ConfigurationError


class EmbeddingBackend(str, Enum):
    """Supported embedding providers"""
    TRANSFORMERS = "transformers"
    OPENAI = "openai"


class LLMBackend(str, Enum):
    """Supported LLM backends for relevance compression"""
    OPENAI = "openai"
    OLLAMA = "ollama"
    CEREBRAS = "cerebras"


class VectorStoreBackend(str, Enum):
    """Supported vector stores"""
    OPENSEARCH = "opensearch"
    MEMORY = "memory"


# Values of llm_generation.prompt.prompt_templates.PromptType
PROMPT_TYPES = ("extraction", "strict_extraction")


class RankBy(str, Enum):
    """Ordering of parents handed to the compressor"""
    PARENT = "parent"  # parent-level similarity to the query
    CHILD = "child"    # first-seen order in the child search


def _env_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


@dataclass
class RAGConfig:
    """
    Configuration for the multi-vector retrieval system

    Attributes:
        Chunking:
        - parent_chunk_size / parent_chunk_overlap: Parent window (1000/200)
        - child_chunk_size / child_chunk_overlap: Child window (400/50)
        - length_unit: "chars" or "tokens" (tiktoken cl100k_base)

        Retrieval:
        - top_k_children: Child matches used to derive candidate parents
        - k_parents: Parents passed to the compressor
        - rank_by: Parent ordering (parent similarity or child rank)

        Concurrency:
        - max_concurrent_fetches: Parallel URL fetches
        - write_concurrency: Parallel embed+upsert batches
        - write_batch_size: Chunks per batch
        - max_concurrent_compressions: Parallel LLM compression calls

        Timeouts (seconds):
        - fetch_timeout_seconds, store_timeout_seconds, llm_timeout_seconds

        Collaborators:
        - embedding_backend / embedding_model / embedding_dimension
        - llm_backend / llm_model / llm_temperature / llm_api_key / llm_base_url
        - prompt_type: "extraction" or "strict_extraction"
        - vector_store_backend / opensearch_* / index_name
    """
    # Chunking
    parent_chunk_size: int = 1000
    parent_chunk_overlap: int = 200
    child_chunk_size: int = 400
    child_chunk_overlap: int = 50
    length_unit: str = "chars"

    # Retrieval
    top_k_children: int = 10
    k_parents: int = 3
    rank_by: RankBy = RankBy.PARENT

    # Concurrency
    max_concurrent_fetches: int = 5
    write_concurrency: int = 5
    write_batch_size: int = 64
    max_concurrent_compressions: int = 3

    # Timeouts
    fetch_timeout_seconds: float = 30.0
    store_timeout_seconds: float = 30.0
    llm_timeout_seconds: float = 60.0

    # Embeddings
    embedding_backend: EmbeddingBackend = EmbeddingBackend.TRANSFORMERS
    embedding_model: Optional[str] = None
    embedding_dimension: Optional[int] = None  # None keeps the model's native size
    openai_api_key: Optional[str] = None

    # LLM compressor
    llm_backend: LLMBackend = LLMBackend.CEREBRAS
    llm_model: Optional[str] = None
    llm_temperature: float = 0.0
    llm_max_tokens: int = 1024
    llm_api_key: Optional[str] = None
    llm_base_url: Optional[str] = None
    prompt_type: str = "extraction"

    # Vector store
    vector_store_backend: VectorStoreBackend = VectorStoreBackend.OPENSEARCH
    index_name: str = "multivector-chunks"
    opensearch_host: str = "localhost"
    opensearch_port: int = 9200
    opensearch_username: Optional[str] = None
    opensearch_password: Optional[str] = None
    opensearch_use_ssl: bool = False

    # Logging
    log_level: str = "INFO"

    def __post_init__(self):
        """Validate configuration values"""
        for name in ("parent", "child"):
            size = getattr(self, f"{name}_chunk_size")
            overlap = getattr(self, f"{name}_chunk_overlap")
            if size <= 0:
                raise ValueError(f"{name}_chunk_size must be positive")
            if overlap < 0:
                raise ValueError(f"{name}_chunk_overlap must be non-negative")
            if overlap >= size:
                raise ValueError(f"{name}_chunk_overlap must be smaller than {name}_chunk_size")

        if self.child_chunk_size > self.parent_chunk_size:
            raise ValueError("child_chunk_size must not exceed parent_chunk_size")
        if self.length_unit not in ("chars", "tokens"):
            raise ValueError("length_unit must be 'chars' or 'tokens'")

        if self.top_k_children <= 0:
            raise ValueError("top_k_children must be positive")
        if self.k_parents <= 0:
            raise ValueError("k_parents must be positive")

        for name in ("max_concurrent_fetches", "write_concurrency",
                     "write_batch_size", "max_concurrent_compressions"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")

        for name in ("fetch_timeout_seconds", "store_timeout_seconds", "llm_timeout_seconds"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")

        if not (0.0 <= self.llm_temperature <= 2.0):
            raise ValueError("llm_temperature must be between 0.0 and 2.0")

        if self.embedding_dimension is not None and self.embedding_dimension <= 0:
            raise ValueError("embedding_dimension must be positive")
        self.prompt_type = self.prompt_type.lower()
        if self.prompt_type not in PROMPT_TYPES:
            raise ValueError(f"prompt_type must be one of {', '.join(PROMPT_TYPES)}")

        # Enum coercion for values that arrive as plain strings
        self.rank_by = RankBy(self.rank_by)
        self.embedding_backend = EmbeddingBackend(self.embedding_backend)
        self.llm_backend = LLMBackend(self.llm_backend)
        self.vector_store_backend = VectorStoreBackend(self.vector_store_backend)

        if self.embedding_model is None:
            default_embedding_models = {
                EmbeddingBackend.TRANSFORMERS: "sentence-transformers/all-MiniLM-L6-v2",
                EmbeddingBackend.OPENAI: "text-embedding-3-small",
            }
            self.embedding_model = default_embedding_models[self.embedding_backend]

        if self.llm_model is None:
            default_llm_models = {
                LLMBackend.OPENAI: "gpt-4o-mini",
                LLMBackend.OLLAMA: "llama3.1",
                LLMBackend.CEREBRAS: "llama-3.3-70b",
            }
            self.llm_model = default_llm_models[self.llm_backend]

        # Set API keys from environment if not provided
        if not self.openai_api_key:
            self.openai_api_key = os.getenv("OPENAI_API_KEY")
        if not self.llm_api_key:
            if self.llm_backend == LLMBackend.OPENAI:
                self.llm_api_key = os.getenv("OPENAI_API_KEY")
            elif self.llm_backend == LLMBackend.CEREBRAS:
                self.llm_api_key = os.getenv("CEREBRAS_API_KEY")

    def validate_credentials(self) -> None:
        """
        Check that every selected collaborator can be constructed

        Raises:
            ConfigurationError: Missing credentials or index name
        """
        problems = []

        if not self.index_name or not self.index_name.strip():
            problems.append("index name is empty (RAG_INDEX_NAME)")

        if self.embedding_backend == EmbeddingBackend.OPENAI and not self.openai_api_key:
            problems.append("OpenAI embeddings selected but OPENAI_API_KEY is not set")

        if self.llm_backend in (LLMBackend.OPENAI, LLMBackend.CEREBRAS) and not self.llm_api_key:
            env_name = "OPENAI_API_KEY" if self.llm_backend == LLMBackend.OPENAI else "CEREBRAS_API_KEY"
            problems.append(f"{self.llm_backend.value} LLM selected but {env_name} is not set")

        if self.vector_store_backend == VectorStoreBackend.OPENSEARCH and not self.opensearch_host:
            problems.append("OpenSearch selected but RAG_OPENSEARCH_HOST is empty")

        if problems:
            raise ConfigurationError("Invalid configuration: " + "; ".join(problems))

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary (secrets omitted)"""
        return {
            "chunking": {
                "parent": {"size": self.parent_chunk_size, "overlap": self.parent_chunk_overlap},
                "child": {"size": self.child_chunk_size, "overlap": self.child_chunk_overlap},
                "length_unit": self.length_unit,
            },
            "retrieval": {
                "top_k_children": self.top_k_children,
                "k_parents": self.k_parents,
                "rank_by": self.rank_by.value,
            },
            "concurrency": {
                "fetches": self.max_concurrent_fetches,
                "writes": self.write_concurrency,
                "write_batch_size": self.write_batch_size,
                "compressions": self.max_concurrent_compressions,
            },
            "embedding": {
                "backend": self.embedding_backend.value,
                "model": self.embedding_model,
                "dimension": self.embedding_dimension,
            },
            "llm": {
                "backend": self.llm_backend.value,
                "model": self.llm_model,
                "temperature": self.llm_temperature,
                "prompt_type": self.prompt_type,
            },
            "vector_store": {
                "backend": self.vector_store_backend.value,
                "index_name": self.index_name,
                "host": self.opensearch_host,
                "port": self.opensearch_port,
            },
        }

    @classmethod
    def from_env(cls, **overrides) -> "RAGConfig":
        """
        Create configuration from environment variables with optional overrides

        Environment variables:
        - RAG_PARENT_CHUNK_SIZE / RAG_PARENT_CHUNK_OVERLAP
        - RAG_CHILD_CHUNK_SIZE / RAG_CHILD_CHUNK_OVERLAP
        - RAG_LENGTH_UNIT: chars or tokens
        - RAG_TOP_K_CHILDREN / RAG_K_PARENTS / RAG_RANK_BY
        - RAG_EMBEDDING_BACKEND / RAG_EMBEDDING_MODEL / RAG_EMBEDDING_DIMENSION
        - RAG_LLM_BACKEND / RAG_LLM_MODEL / RAG_LLM_BASE_URL
        - RAG_PROMPT_TYPE: extraction or strict_extraction
        - RAG_VECTOR_STORE: opensearch or memory
        - RAG_INDEX_NAME
        - RAG_OPENSEARCH_HOST / RAG_OPENSEARCH_PORT / RAG_OPENSEARCH_USERNAME
          / RAG_OPENSEARCH_PASSWORD / RAG_OPENSEARCH_USE_SSL
        - RAG_LOG_LEVEL

        Args:
            **overrides: Override specific configuration values

        Returns:
            RAGConfig instance
        """
        config_dict: Dict[str, Any] = {}

        int_fields = {
            "RAG_PARENT_CHUNK_SIZE": "parent_chunk_size",
            "RAG_PARENT_CHUNK_OVERLAP": "parent_chunk_overlap",
            "RAG_CHILD_CHUNK_SIZE": "child_chunk_size",
            "RAG_CHILD_CHUNK_OVERLAP": "child_chunk_overlap",
            "RAG_TOP_K_CHILDREN": "top_k_children",
            "RAG_K_PARENTS": "k_parents",
            "RAG_MAX_CONCURRENT_FETCHES": "max_concurrent_fetches",
            "RAG_WRITE_CONCURRENCY": "write_concurrency",
            "RAG_WRITE_BATCH_SIZE": "write_batch_size",
            "RAG_MAX_CONCURRENT_COMPRESSIONS": "max_concurrent_compressions",
            "RAG_EMBEDDING_DIMENSION": "embedding_dimension",
            "RAG_OPENSEARCH_PORT": "opensearch_port",
            "RAG_LLM_MAX_TOKENS": "llm_max_tokens",
        }
        for env_name, field_name in int_fields.items():
            if value := os.getenv(env_name):
                config_dict[field_name] = int(value)

        float_fields = {
            "RAG_FETCH_TIMEOUT": "fetch_timeout_seconds",
            "RAG_STORE_TIMEOUT": "store_timeout_seconds",
            "RAG_LLM_TIMEOUT": "llm_timeout_seconds",
            "RAG_LLM_TEMPERATURE": "llm_temperature",
        }
        for env_name, field_name in float_fields.items():
            if value := os.getenv(env_name):
                config_dict[field_name] = float(value)

        str_fields = {
            "RAG_LENGTH_UNIT": "length_unit",
            "RAG_EMBEDDING_MODEL": "embedding_model",
            "RAG_LLM_MODEL": "llm_model",
            "RAG_LLM_BASE_URL": "llm_base_url",
            "RAG_PROMPT_TYPE": "prompt_type",
            "RAG_INDEX_NAME": "index_name",
            "RAG_OPENSEARCH_HOST": "opensearch_host",
            "RAG_OPENSEARCH_USERNAME": "opensearch_username",
            "RAG_OPENSEARCH_PASSWORD": "opensearch_password",
            "RAG_LOG_LEVEL": "log_level",
        }
        for env_name, field_name in str_fields.items():
            if value := os.getenv(env_name):
                config_dict[field_name] = value

        # Backends
        if rank_by := os.getenv("RAG_RANK_BY"):
            config_dict["rank_by"] = RankBy(rank_by.lower())
        if embedding_backend := os.getenv("RAG_EMBEDDING_BACKEND"):
            config_dict["embedding_backend"] = EmbeddingBackend(embedding_backend.lower())
        if llm_backend := os.getenv("RAG_LLM_BACKEND"):
            config_dict["llm_backend"] = LLMBackend(llm_backend.lower())
        if store_backend := os.getenv("RAG_VECTOR_STORE"):
            config_dict["vector_store_backend"] = VectorStoreBackend(store_backend.lower())

        if use_ssl := os.getenv("RAG_OPENSEARCH_USE_SSL"):
            config_dict["opensearch_use_ssl"] = _env_bool(use_ssl)

        # Apply overrides
        config_dict.update(overrides)

        return cls(**config_dict)
