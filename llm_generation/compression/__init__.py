"""
Relevance compression of retrieved passages
"""
from llm_generation.compression.relevance_compressor import (
    CompressionVerdict,
    CompressionResult,
    BaseRelevanceCompressor,
    LLMExtractionCompressor,
    interpret_extraction
)

__all__ = [
    "CompressionVerdict",
    "CompressionResult",
    "BaseRelevanceCompressor",
    "LLMExtractionCompressor",
    "interpret_extraction"
]
