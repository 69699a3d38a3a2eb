"""
LLM Clients
Chat completion clients used by the relevance compressor
"""
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List

from core.config import LLMBackend

logger = logging.getLogger(__name__)

CEREBRAS_BASE_URL = "https://api.cerebras.ai/v1"


@dataclass
class GenerationConfig:
    """
    Configuration for a single LLM call

    Attributes:
        model_name: Model name for the backend
        max_tokens: Maximum tokens to generate
        temperature: Sampling temperature (0.0 keeps extraction deterministic)
        timeout_seconds: Per-call timeout
    """
    model_name: str
    max_tokens: int = 1024
    temperature: float = 0.0
    timeout_seconds: float = 60.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model_name": self.model_name,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "timeout_seconds": self.timeout_seconds
        }


@dataclass
class GenerationResult:
    """
    Result of one LLM call

    Attributes:
        text: Generated text
        model: Model used for generation
        prompt_tokens / completion_tokens / total_tokens: Usage when reported
        generation_time_ms: Time taken for generation
        finish_reason: Reason generation finished
    """
    text: str
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    generation_time_ms: float = 0.0
    finish_reason: str = "stop"
    metadata: Dict[str, Any] = field(default_factory=dict)


class BaseLLMClient(ABC):
    """
    Abstract base class for LLM clients

    All LLM backends must implement this interface
    """

    @abstractmethod
    async def generate_chat(
        self,
        messages: List[Dict[str, str]],
        config: GenerationConfig,
        **kwargs
    ) -> GenerationResult:
        """
        Generate a reply using chat format

        Args:
            messages: List of message dicts with 'role' and 'content'
            config: Generation configuration
            **kwargs: Additional backend-specific parameters

        Returns:
            GenerationResult
        """
        pass

    async def close(self):
        pass


class OpenAIClient(BaseLLMClient):
    """
    OpenAI-compatible chat client

    Also serves Cerebras, whose inference API speaks the OpenAI protocol.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        backend_name: str = "openai",
        client=None
    ):
        self.backend_name = backend_name

        if client is not None:
            self.client = client
        else:
            if not api_key:
                raise ValueError(f"API key not found for {backend_name} backend.")
            from openai import AsyncOpenAI
            self.client = AsyncOpenAI(api_key=api_key, base_url=base_url)

        logger.info(f"{backend_name} chat client initialized")

    async def generate_chat(
        self,
        messages: List[Dict[str, str]],
        config: GenerationConfig,
        **kwargs
    ) -> GenerationResult:
        """Generate reply using chat completion API"""
        start_time = time.time()

        response = await self.client.chat.completions.create(
            model=config.model_name,
            messages=messages,
            max_tokens=config.max_tokens,
            temperature=config.temperature,
            timeout=config.timeout_seconds,
            **kwargs
        )

        generation_time = (time.time() - start_time) * 1000

        usage = response.usage
        choice = response.choices[0]

        result = GenerationResult(
            text=choice.message.content or "",
            model=config.model_name,
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
            total_tokens=usage.total_tokens if usage else 0,
            generation_time_ms=generation_time,
            finish_reason=choice.finish_reason or "stop",
            metadata={"backend": self.backend_name, "response_id": response.id}
        )

        logger.debug(
            f"{self.backend_name} generation completed: {result.total_tokens} tokens in {generation_time:.0f}ms"
        )
        return result

    async def close(self):
        await self.client.close()


class OllamaClient(BaseLLMClient):
    """Ollama API client for local model generation"""

    def __init__(self, base_url: Optional[str] = None, client=None):
        self.base_url = base_url or "http://localhost:11434"

        if client is not None:
            self.client = client
        else:
            import ollama
            self.client = ollama.AsyncClient(host=self.base_url)

        logger.info(f"Ollama client initialized at {self.base_url}")

    async def generate_chat(
        self,
        messages: List[Dict[str, str]],
        config: GenerationConfig,
        **kwargs
    ) -> GenerationResult:
        """Generate reply using chat API"""
        start_time = time.time()

        response = await self.client.chat(
            model=config.model_name,
            messages=messages,
            options={
                "num_predict": config.max_tokens,
                "temperature": config.temperature,
            },
            stream=False,
            **kwargs
        )

        generation_time = (time.time() - start_time) * 1000

        prompt_tokens = response.get("prompt_eval_count") or 0
        completion_tokens = response.get("eval_count") or 0

        return GenerationResult(
            text=response.get("message", {}).get("content", ""),
            model=config.model_name,
            prompt_tokens=int(prompt_tokens),
            completion_tokens=int(completion_tokens),
            total_tokens=int(prompt_tokens + completion_tokens),
            generation_time_ms=generation_time,
            finish_reason="stop",
            metadata={"backend": "ollama", "model_info": response.get("model", "")}
        )


def create_llm_client(
    backend: LLMBackend,
    api_key: Optional[str] = None,
    base_url: Optional[str] = None
) -> BaseLLMClient:
    """
    Create LLM client for specified backend

    Args:
        backend: LLM backend type
        api_key: Credentials for hosted backends
        base_url: Endpoint override

    Returns:
        BaseLLMClient instance
    """
    if backend == LLMBackend.OPENAI:
        return OpenAIClient(api_key=api_key, base_url=base_url, backend_name="openai")
    elif backend == LLMBackend.CEREBRAS:
        return OpenAIClient(api_key=api_key, base_url=base_url or CEREBRAS_BASE_URL, backend_name="cerebras")
    elif backend == LLMBackend.OLLAMA:
        return OllamaClient(base_url=base_url)
    else:
        raise ValueError(f"Unsupported backend: {backend}")
