"""
Prompt management for relevance compression
"""
from llm_generation.prompt.prompt_templates import (
    NO_OUTPUT,
    PromptType,
    PromptTemplate,
    PromptTemplateLibrary
)

__all__ = [
    "NO_OUTPUT",
    "PromptType",
    "PromptTemplate",
    "PromptTemplateLibrary"
]
