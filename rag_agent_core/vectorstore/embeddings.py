"""
Embedding clients used by the vector stores.

Stores call an EmbeddingClient to turn chunk and query text into vectors.
"""

from abc import ABC, abstractmethod
from typing import Optional

from rag_agent_core.errors import CapabilityTimeoutError, ExternalCapabilityError


class EmbeddingClient(ABC):
    """Converts text into vectors."""

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        ...

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed several texts; the result keeps the input order."""
        ...

    @property
    @abstractmethod
    def dimensions(self) -> int:
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        ...

    async def close(self) -> None:
        """Close any connections. Override if needed."""
        pass


class OpenAIEmbeddings(EmbeddingClient):
    """
    OpenAI embeddings (text-embedding-3-small by default).

    Requires: pip install openai
    """

    MODEL_DIMENSIONS = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    }

    def __init__(
        self,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        dimensions: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        from rag_agent_core.config import get_config

        config = get_config()
        self._model = model or config.embedding_model
        self._api_key = api_key or config.get_openai_api_key()
        self._base_url = base_url
        self._dimensions_override = dimensions
        self._timeout = timeout or config.request_timeout
        self._client = None

    def _get_client(self):
        if self._client is None:
            try:
                import openai
            except ImportError:
                raise ImportError(
                    "OpenAI package not installed. Install with: pip install openai"
                )
            self._client = openai.AsyncOpenAI(
                api_key=self._api_key,
                base_url=self._base_url,
                timeout=self._timeout,
            )
        return self._client

    @property
    def dimensions(self) -> int:
        if self._dimensions_override:
            return self._dimensions_override
        return self.MODEL_DIMENSIONS.get(self._model, 1536)

    @property
    def model_name(self) -> str:
        return self._model

    async def _create(self, input):
        import openai

        kwargs = {"model": self._model, "input": input}
        if self._dimensions_override and self._model.startswith("text-embedding-3"):
            kwargs["dimensions"] = self._dimensions_override
        try:
            return await self._get_client().embeddings.create(**kwargs)
        except openai.APITimeoutError as e:
            raise CapabilityTimeoutError(
                f"Embedding request timed out: {e}", timeout=self._timeout
            ) from e
        except openai.OpenAIError as e:
            raise ExternalCapabilityError(f"Embedding request failed: {e}") from e

    async def embed(self, text: str) -> list[float]:
        response = await self._create(text)
        return response.data[0].embedding

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        response = await self._create(texts)
        # Sort by index to ensure correct order
        return [item.embedding for item in sorted(response.data, key=lambda x: x.index)]

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
