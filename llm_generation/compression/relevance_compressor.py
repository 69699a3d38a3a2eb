"""
Relevance Compressor
Reduces a retrieved passage to the parts relevant to a query
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any

from core.exceptions import CompressionError
from core.logging_config import truncate_for_log
from llm_generation.generation.llm_clients import BaseLLMClient, GenerationConfig
from llm_generation.prompt.prompt_templates import (
    NO_OUTPUT,
    PromptTemplate,
    PromptTemplateLibrary,
)

logger = logging.getLogger(__name__)


class CompressionVerdict(str, Enum):
    """What the compressor decided to keep"""
    FULL = "full"        # passage kept verbatim
    EXCERPT = "excerpt"  # only the extracted text is kept
    NONE = "none"        # nothing relevant, passage dropped


@dataclass
class CompressionResult:
    """
    Outcome of compressing one passage

    Attributes:
        verdict: FULL, EXCERPT or NONE
        text: Text to return (empty for NONE)
    """
    verdict: CompressionVerdict
    text: str = ""

    @property
    def is_relevant(self) -> bool:
        return self.verdict != CompressionVerdict.NONE

    @classmethod
    def full(cls, text: str) -> "CompressionResult":
        return cls(verdict=CompressionVerdict.FULL, text=text)

    @classmethod
    def excerpt(cls, text: str) -> "CompressionResult":
        return cls(verdict=CompressionVerdict.EXCERPT, text=text)

    @classmethod
    def none(cls) -> "CompressionResult":
        return cls(verdict=CompressionVerdict.NONE, text="")


class BaseRelevanceCompressor(ABC):
    """Interface the compression gate talks to"""

    @abstractmethod
    async def compress(self, query: str, text: str, chunk_id: Optional[str] = None) -> CompressionResult:
        """
        Decide which part of `text` is relevant to `query`

        Args:
            query: User query
            text: Passage to compress
            chunk_id: Id of the passage, carried into errors and logs

        Raises:
            CompressionError: The underlying model call failed
        """
        pass

    async def close(self):
        pass


def _normalise(text: str) -> str:
    return " ".join(text.split())


def interpret_extraction(passage: str, output: str) -> CompressionResult:
    """
    Map raw extraction output to a verdict

    Empty output or the NO_OUTPUT sentinel means nothing was relevant.
    Output that reproduces the whole passage (ignoring whitespace) keeps the
    original passage verbatim.
    """
    extracted = output.strip()
    if not extracted or extracted == NO_OUTPUT:
        return CompressionResult.none()

    # Models sometimes wrap the sentinel in quotes or punctuation
    if extracted.strip("\"'`.").strip() == NO_OUTPUT:
        return CompressionResult.none()

    if _normalise(extracted) == _normalise(passage):
        return CompressionResult.full(passage)

    return CompressionResult.excerpt(extracted)


class LLMExtractionCompressor(BaseRelevanceCompressor):
    """
    Extraction compressor backed by a chat model

    The model copies the relevant parts of the passage as-is, or answers with
    the NO_OUTPUT sentinel.
    """

    def __init__(
        self,
        llm_client: BaseLLMClient,
        model_name: str,
        temperature: float = 0.0,
        max_tokens: int = 1024,
        timeout_seconds: float = 60.0,
        prompt_template: Optional[PromptTemplate] = None
    ):
        self.llm_client = llm_client
        self.prompt_template = prompt_template or PromptTemplateLibrary.EXTRACTION_TEMPLATE
        self.generation_config = GenerationConfig(
            model_name=model_name,
            max_tokens=max_tokens,
            temperature=temperature,
            timeout_seconds=timeout_seconds
        )

        logger.info(f"Initialized LLMExtractionCompressor with model {model_name}")

    async def compress(self, query: str, text: str, chunk_id: Optional[str] = None) -> CompressionResult:
        if not text.strip():
            return CompressionResult.none()

        messages = self.prompt_template.to_messages(query=query, context=text)

        try:
            generation = await self.llm_client.generate_chat(messages, self.generation_config)
        except Exception as e:
            raise CompressionError(chunk_id=chunk_id, reason=str(e)) from e

        result = interpret_extraction(text, generation.text)
        logger.debug(
            f"Compression verdict {result.verdict.value} for {chunk_id or 'passage'}, query "
            f"'{truncate_for_log(query)}' ({len(text)} -> {len(result.text)} chars)"
        )
        return result

    def get_config(self) -> Dict[str, Any]:
        return self.generation_config.to_dict()

    async def close(self):
        await self.llm_client.close()
