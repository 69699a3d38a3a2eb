"""
LLM Generation Module
Chat clients for several backends and the extraction-based relevance compressor
"""
from llm_generation.generation import (
    GenerationConfig,
    GenerationResult,
    BaseLLMClient,
    create_llm_client
)
from llm_generation.prompt import (
    NO_OUTPUT,
    PromptType,
    PromptTemplate,
    PromptTemplateLibrary
)
from llm_generation.compression import (
    CompressionVerdict,
    CompressionResult,
    BaseRelevanceCompressor,
    LLMExtractionCompressor
)

__all__ = [
    # Generation
    "GenerationConfig",
    "GenerationResult",
    "BaseLLMClient",
    "create_llm_client",

    # Prompts
    "NO_OUTPUT",
    "PromptType",
    "PromptTemplate",
    "PromptTemplateLibrary",

    # Compression
    "CompressionVerdict",
    "CompressionResult",
    "BaseRelevanceCompressor",
    "LLMExtractionCompressor"
]
