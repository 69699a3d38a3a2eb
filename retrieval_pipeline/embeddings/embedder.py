"""
Embedding Providers
Single-vector text embeddings from local transformers models or the OpenAI API
"""
import asyncio
from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)


class BaseEmbedder(ABC):
    """
    Base class for embedding providers

    Implementations must be deterministic for identical input and model
    version, and return vectors of a fixed dimension.
    """

    model_name: str

    @property
    @abstractmethod
    def dimension(self) -> int:
        pass

    @abstractmethod
    async def embed_documents(self, texts: List[str]) -> List[List[float]]:
        """Embed a batch of passages, preserving order"""
        pass

    async def embed_query(self, query: str) -> List[float]:
        """Embed a single query"""
        vectors = await self.embed_documents([query])
        return vectors[0]

    def get_model_info(self) -> Dict[str, Any]:
        return {"model_name": self.model_name, "dimension": self.dimension}


class TransformerEmbedder(BaseEmbedder):
    """
    Mean-pooled sentence embeddings from a HuggingFace encoder

    Vectors are L2 normalised so cosine and dot-product rankings agree.
    """

    def __init__(
        self,
        model_name: str = "sentence-transformers/all-MiniLM-L6-v2",
        max_length: int = 512,
        batch_size: int = 16,
        device: Optional[str] = None
    ):
        import torch

        self.model_name = model_name
        self.max_length = max_length
        self.batch_size = batch_size
        self.device = device or ("cuda" if torch.cuda.is_available() else "cpu")

        self.tokenizer = None
        self.model = None
        self._load_model()

    def _load_model(self):
        """Load the embedding model"""
        from transformers import AutoTokenizer, AutoModel

        try:
            self.tokenizer = AutoTokenizer.from_pretrained(self.model_name)
            self.model = AutoModel.from_pretrained(self.model_name)
            self.model.to(self.device)
            self.model.eval()

            logger.info(f"Loaded model {self.model_name} on {self.device}")

        except Exception as e:
            logger.error(f"Failed to load model {self.model_name}: {e}")
            raise

    @property
    def dimension(self) -> int:
        return int(self.model.config.hidden_size)

    async def embed_documents(self, texts: List[str]) -> List[List[float]]:
        """Encode texts in batches off the event loop"""
        results: List[List[float]] = []

        for i in range(0, len(texts), self.batch_size):
            batch = [text.strip() for text in texts[i:i + self.batch_size]]
            results.extend(await asyncio.to_thread(self._encode_batch, batch))

        return results

    def _encode_batch(self, texts: List[str]) -> List[List[float]]:
        import torch
        import torch.nn.functional as F

        with torch.no_grad():
            inputs = self.tokenizer(
                texts,
                return_tensors="pt",
                max_length=self.max_length,
                truncation=True,
                padding=True
            )
            inputs = {k: v.to(self.device) for k, v in inputs.items()}

            outputs = self.model(**inputs)
            token_embeddings = outputs.last_hidden_state  # [batch, seq_len, hidden_dim]

            # Mean pooling, excluding padding
            mask_expanded = inputs["attention_mask"].unsqueeze(-1).expand(token_embeddings.size()).float()
            pooled = torch.sum(token_embeddings * mask_expanded, 1) / torch.clamp(mask_expanded.sum(1), min=1e-9)
            pooled = F.normalize(pooled, p=2, dim=1)

            return pooled.cpu().numpy().tolist()


class OpenAIEmbedder(BaseEmbedder):
    """
    OpenAI embeddings API client

    text-embedding-3 models accept a `dimensions` request parameter that
    shortens the returned vectors; older models only produce their native size.
    """

    # Output sizes of the hosted embedding models
    MODEL_DIMENSIONS = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    }

    def __init__(
        self,
        model_name: str = "text-embedding-3-small",
        api_key: Optional[str] = None,
        batch_size: int = 96,
        timeout_seconds: float = 30.0,
        dimensions: Optional[int] = None,
        client=None
    ):
        native = self.MODEL_DIMENSIONS.get(model_name, 1536)
        if dimensions is not None:
            if dimensions <= 0:
                raise ValueError("dimensions must be positive")
            if not model_name.startswith("text-embedding-3") and dimensions != native:
                raise ValueError(f"{model_name} only produces {native}-dimensional vectors")
            if dimensions == native:
                dimensions = None

        self.model_name = model_name
        self.batch_size = batch_size
        self.dimensions = dimensions
        self._dimension = dimensions or native

        if client is not None:
            self.client = client
        else:
            if not api_key:
                raise ValueError("OpenAI API key not found. Set OPENAI_API_KEY environment variable.")
            from openai import AsyncOpenAI
            self.client = AsyncOpenAI(api_key=api_key, timeout=timeout_seconds)

        logger.info(f"OpenAI embedder initialized: {model_name} ({self._dimension} dimensions)")

    @property
    def dimension(self) -> int:
        return self._dimension

    async def embed_documents(self, texts: List[str]) -> List[List[float]]:
        results: List[List[float]] = []
        request: Dict[str, Any] = {"model": self.model_name}
        if self.dimensions is not None:
            request["dimensions"] = self.dimensions

        for i in range(0, len(texts), self.batch_size):
            batch = texts[i:i + self.batch_size]
            response = await self.client.embeddings.create(input=batch, **request)
            # The API may return items out of order; index restores it
            ordered = sorted(response.data, key=lambda item: item.index)
            results.extend(list(item.embedding) for item in ordered)

        return results
