"""
Embedding Service for generating vector representations.

Uses OpenAI's embedding models by default, with support for
local models via sentence-transformers as a fallback.
"""

import logging
from abc import ABC, abstractmethod
from typing import Literal

from openai import AsyncOpenAI, OpenAIError

from ..errors import EmbeddingProviderError, EmbeddingUnavailable, InvalidArgument

logger = logging.getLogger("knowledge_recall.memory.embeddings")


def _check_text(text: str) -> None:
    if not isinstance(text, str) or not text.strip():
        raise InvalidArgument("Cannot embed empty text")


class EmbeddingService(ABC):
    """Abstract interface for embedding generation."""

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Return the dimension of embeddings produced."""
        pass

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Generate embedding for a single non-empty text."""
        pass

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts, in input order."""
        pass


class OpenAIEmbeddingService(EmbeddingService):
    """
    OpenAI embedding service using text-embedding-3 models.

    Supports native dimension reduction via the dimensions parameter,
    so text-embedding-3-large can be fitted to an index created with
    a smaller dimension.

    Models:
    - text-embedding-3-small: default 1536 dimensions
    - text-embedding-3-large: default 3072 dimensions (can be reduced)
    """

    # Default dimensions for each model
    MODEL_DEFAULT_DIMENSIONS = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
    }

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        dimensions: int | None = None,
    ):
        """
        Initialize OpenAI embedding service.

        Args:
            api_key: OpenAI API key
            model: Model name (text-embedding-3-small or text-embedding-3-large)
            dimensions: Override output dimensions. If None, uses the
                        model's default dimensions.
        """
        if not api_key:
            raise EmbeddingUnavailable("OpenAI API key is not configured")

        self.api_key = api_key
        self.model = model
        self._client: AsyncOpenAI | None = None

        # Determine dimensions
        default_dim = self.MODEL_DEFAULT_DIMENSIONS.get(model, 1536)
        if dimensions is not None:
            if dimensions > default_dim:
                logger.warning(
                    f"Requested dimensions ({dimensions}) exceeds model default ({default_dim}). "
                    f"Using {default_dim}."
                )
                self._dimension = default_dim
                self._requested_dimensions = None
            else:
                self._dimension = dimensions
                self._requested_dimensions = dimensions
        else:
            self._dimension = default_dim
            self._requested_dimensions = None

        logger.info(
            f"OpenAIEmbeddingService initialized: model={model}, dimensions={self._dimension}"
        )

    @property
    def dimension(self) -> int:
        return self._dimension

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def _create(self, input_value) -> list:
        kwargs = {
            "model": self.model,
            "input": input_value,
        }
        if self._requested_dimensions is not None:
            kwargs["dimensions"] = self._requested_dimensions

        try:
            response = await self._get_client().embeddings.create(**kwargs)
        except OpenAIError as e:
            logger.error(f"OpenAI embedding request failed: {e}")
            raise EmbeddingProviderError(f"Embedding request failed: {e}") from e

        # Sort by index to maintain order
        return sorted(response.data, key=lambda x: x.index)

    async def embed(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        _check_text(text)
        data = await self._create(text)
        return list(data[0].embedding)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts efficiently."""
        if not texts:
            return []
        for text in texts:
            _check_text(text)

        data = await self._create(list(texts))
        if len(data) != len(texts):
            raise EmbeddingProviderError(
                f"Embedding provider returned {len(data)} vectors for {len(texts)} inputs"
            )
        return [list(item.embedding) for item in data]


class LocalEmbeddingService(EmbeddingService):
    """
    Local embedding service using sentence-transformers.

    Used when embeddings.provider is "local".
    Uses all-MiniLM-L6-v2 by default (384 dimensions, fast, good quality).
    """

    def __init__(self, model_name: str = "all-MiniLM-L6-v2"):
        self.model_name = model_name
        self._model = None
        self._dimension = 384  # Default for MiniLM
        logger.info(f"LocalEmbeddingService initialized with model: {model_name}")

    @property
    def dimension(self) -> int:
        return self._dimension

    def _get_model(self):
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError as e:
                raise EmbeddingUnavailable(
                    "sentence-transformers not installed",
                    suggestion="Install with: pip install 'knowledge-recall[local]'",
                ) from e
            self._model = SentenceTransformer(self.model_name)
            self._dimension = self._model.get_sentence_embedding_dimension()
            logger.info(f"Loaded local embedding model: {self.model_name}")
        return self._model

    async def embed(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        _check_text(text)
        model = self._get_model()
        embedding = model.encode(text, convert_to_numpy=True)
        return embedding.tolist()

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts."""
        if not texts:
            return []
        for text in texts:
            _check_text(text)

        model = self._get_model()
        embeddings = model.encode(texts, convert_to_numpy=True)
        return embeddings.tolist()


def create_embedding_service(
    provider: Literal["openai", "local"] = "openai",
    api_key: str = "",
    model: str = "",
    dimensions: int | None = None,
) -> EmbeddingService:
    """
    Factory function to create the appropriate embedding service.

    Args:
        provider: "openai" or "local"
        api_key: OpenAI API key (required for openai provider)
        model: Model name (optional, uses defaults)
        dimensions: Override output dimensions for OpenAI embeddings.
                    Must match the dimension of the target index.

    Returns:
        Configured EmbeddingService instance

    Raises:
        EmbeddingUnavailable: if the openai provider has no API key
    """
    if provider == "openai":
        if not api_key:
            raise EmbeddingUnavailable("OpenAI API key is not configured")
        return OpenAIEmbeddingService(
            api_key=api_key,
            model=model or "text-embedding-3-small",
            dimensions=dimensions,
        )
    elif provider == "local":
        return LocalEmbeddingService(
            model_name=model or "all-MiniLM-L6-v2",
        )
    else:
        raise ValueError(f"Unknown embedding provider: {provider}")
