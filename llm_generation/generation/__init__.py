"""
LLM client module
"""
from llm_generation.generation.llm_clients import (
    GenerationConfig,
    GenerationResult,
    BaseLLMClient,
    OpenAIClient,
    OllamaClient,
    create_llm_client
)

__all__ = [
    "GenerationConfig",
    "GenerationResult",
    "BaseLLMClient",
    "OpenAIClient",
    "OllamaClient",
    "create_llm_client"
]
