"""
Abstract base class for the vector store capability.

The ingestion pipeline and the retriever only talk to a VectorStore.
Stores embed text themselves, so callers pass plain text in and get
scored text back.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class DocumentChunk:
    """A stored chunk of document text."""

    id: str
    content: str
    metadata: dict = field(default_factory=dict)


@dataclass
class ScoredChunk:
    """A similarity search hit."""

    content: str
    metadata: dict = field(default_factory=dict)
    score: float = 0.0  # Higher = more similar


def matches_filter(metadata: dict, filter: Optional[dict[str, Any]]) -> bool:
    """Equality match of every filter key against chunk metadata."""
    if not filter:
        return True
    return all(metadata.get(key) == value for key, value in filter.items())


class VectorStore(ABC):
    """
    Abstract interface for chunk storage and similarity search.

    Implementations:
    - InMemoryVectorStore: process-local, for tests and small corpora
    - SqliteVecStore: sqlite-vec backed, persistent
    """

    @abstractmethod
    async def upsert(self, chunks: list[DocumentChunk]) -> None:
        """
        Insert or replace chunks.

        Args:
            chunks: Chunks to store; an existing id is overwritten
        """
        ...

    @abstractmethod
    async def similarity_search(
        self,
        query: str,
        k: int = 4,
        filter: Optional[dict] = None,
    ) -> list[ScoredChunk]:
        """
        Find the chunks most similar to a query.

        Args:
            query: Query text
            k: Maximum number of results
            filter: Optional metadata filter (equality matching)

        Returns:
            Results ordered by score, highest first
        """
        ...

    @abstractmethod
    async def get_by_filter(
        self,
        filter: dict,
        limit: Optional[int] = None,
    ) -> list[DocumentChunk]:
        """
        Get stored chunks whose metadata matches a filter.

        An empty filter matches every chunk.
        """
        ...

    @abstractmethod
    async def delete_by_ids(self, ids: list[str]) -> int:
        """
        Delete chunks by id.

        Returns:
            Number of chunks deleted
        """
        ...

    @abstractmethod
    async def count(self) -> int:
        """Return the number of stored chunks."""
        ...

    async def close(self) -> None:
        """Close connections. Override if needed."""
        pass
