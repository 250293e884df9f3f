"""
Vector store module for rag_agent_core.

Provides pluggable vector storage backends for similarity search:
- memory: process-local store, no extra dependencies
- sqlite_vec: persistent local store (requires: pip install sqlite-vec)

Example usage:
    from rag_agent_core.vectorstore import get_vector_store, get_embedding_client

    embeddings = get_embedding_client("openai")
    store = get_vector_store("sqlite_vec", embedding_client=embeddings, path="./vectors.db")

    await store.upsert([DocumentChunk(id="doc-1", content="The quick brown fox")])
    for hit in await store.similarity_search("fast animal", k=5):
        print(f"{hit.score:.3f}: {hit.content}")
"""

from typing import Optional

from rag_agent_core.errors import ConfigurationError
from rag_agent_core.vectorstore.base import (
    DocumentChunk,
    ScoredChunk,
    VectorStore,
)
from rag_agent_core.vectorstore.embeddings import (
    EmbeddingClient,
    OpenAIEmbeddings,
)
from rag_agent_core.vectorstore.memory import InMemoryVectorStore


def get_vector_store(backend: str = "memory", **kwargs) -> VectorStore:
    """
    Factory function to get a vector store instance.

    Args:
        backend: "memory" or "sqlite_vec"
        **kwargs: Backend-specific options. Both backends take an
            embedding_client; when omitted the configured OpenAI model is used.

    Raises:
        ConfigurationError: If the backend is unknown
        ImportError: If required dependencies are not installed
    """
    if backend not in ("memory", "sqlite_vec"):
        raise ConfigurationError(
            f"Unknown vector store backend: {backend}. "
            f"Available backends: memory, sqlite_vec"
        )

    if "embedding_client" not in kwargs:
        kwargs["embedding_client"] = get_embedding_client()

    if backend == "memory":
        return InMemoryVectorStore(**kwargs)
    from rag_agent_core.config import get_config
    from rag_agent_core.vectorstore.sqlite_vec import SqliteVecStore

    kwargs.setdefault("path", get_config().vector_store_path or ":memory:")
    return SqliteVecStore(**kwargs)


def get_embedding_client(
    provider: str = "openai",
    model: Optional[str] = None,
    **kwargs,
) -> EmbeddingClient:
    """Factory function to get an embedding client."""
    if provider == "openai":
        if model:
            kwargs["model"] = model
        return OpenAIEmbeddings(**kwargs)
    raise ConfigurationError(
        f"Unknown embedding provider: {provider}. Available providers: openai"
    )


# Lazy imports for optional backends
def __getattr__(name: str):
    if name == "SqliteVecStore":
        from rag_agent_core.vectorstore.sqlite_vec import SqliteVecStore

        return SqliteVecStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    # Abstract interfaces
    "VectorStore",
    "DocumentChunk",
    "ScoredChunk",
    "EmbeddingClient",
    # Implementations
    "OpenAIEmbeddings",
    "InMemoryVectorStore",
    "SqliteVecStore",
    # Factory functions
    "get_vector_store",
    "get_embedding_client",
]
