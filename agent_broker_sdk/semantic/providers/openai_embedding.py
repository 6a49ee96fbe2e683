"""OpenAI embedding provider."""
import os
from typing import Any, List, Optional

from ...core.exceptions import (
    ConfigurationError,
    NetworkError,
    RateLimitError,
    UpstreamServiceError,
    error_from_status,
)
from ...utils.logger import get_logger
from ..interfaces import EmbeddingProvider

logger = get_logger("semantic.openai")

# Try to import OpenAI
try:
    import openai
    from openai import AsyncOpenAI
    HAS_OPENAI = True
except ImportError:
    HAS_OPENAI = False

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """
    Embeds agent descriptions with the OpenAI embeddings API.

    The OpenAI client's own retries are disabled; retrying is left to the
    SDK's retry executor so the policy is the same for every backend.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_EMBEDDING_MODEL,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        dimensions: Optional[int] = None,
        client: Any = None,
    ):
        self.model = model
        self.dimensions = dimensions
        if client is not None:
            self._client = client
            return

        if not HAS_OPENAI:
            raise ConfigurationError(
                "OpenAI SDK not available. Install with: pip install openai"
            )
        api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise ConfigurationError("OpenAI API key required. Set OPENAI_API_KEY or pass api_key.")

        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )

    async def embed_one(self, text: str) -> List[float]:
        vectors = await self._create(text)
        if not vectors:
            raise UpstreamServiceError("OpenAI returned no embedding")
        return vectors[0]

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        return await self._create(list(texts))

    async def _create(self, payload: Any) -> List[List[float]]:
        kwargs = {"model": self.model, "input": payload}
        if self.dimensions:
            kwargs["dimensions"] = self.dimensions
        try:
            response = await self._client.embeddings.create(**kwargs)
        except Exception as e:
            raise self._map_error(e) from e

        data = sorted(response.data, key=lambda item: item.index)
        return [list(item.embedding) for item in data]

    def _map_error(self, error: Exception) -> Exception:
        if not HAS_OPENAI:
            return error
        if isinstance(error, openai.APIConnectionError):
            return NetworkError(f"OpenAI request failed: {error}")
        if isinstance(error, openai.RateLimitError):
            retry_after = error.response.headers.get("retry-after") if error.response is not None else None
            try:
                seconds = float(retry_after) if retry_after else None
            except ValueError:
                seconds = None
            return RateLimitError("OpenAI rate limit exceeded.", retry_after=seconds)
        if isinstance(error, openai.APIStatusError):
            return error_from_status(error.status_code, f"OpenAI request failed: {error.message}")
        return error
