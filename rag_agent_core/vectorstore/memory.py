"""
In-process vector store.

Keeps chunks and their embeddings in a dict and scores queries by cosine
similarity. Suitable for tests and small corpora; nothing is persisted.
"""

import math
from typing import Optional

from rag_agent_core.vectorstore.base import (
    DocumentChunk,
    ScoredChunk,
    VectorStore,
    matches_filter,
)
from rag_agent_core.vectorstore.embeddings import EmbeddingClient


def cosine_similarity(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class InMemoryVectorStore(VectorStore):
    """Vector store backed by a dict, preserving insertion order."""

    def __init__(self, embedding_client: EmbeddingClient):
        self._embeddings = embedding_client
        self._records: dict[str, tuple[DocumentChunk, list[float]]] = {}

    async def upsert(self, chunks: list[DocumentChunk]) -> None:
        if not chunks:
            return
        vectors = await self._embeddings.embed_batch([c.content for c in chunks])
        for chunk, vector in zip(chunks, vectors):
            self._records[chunk.id] = (chunk, vector)

    async def similarity_search(
        self,
        query: str,
        k: int = 4,
        filter: Optional[dict] = None,
    ) -> list[ScoredChunk]:
        if not self._records:
            return []
        query_vector = await self._embeddings.embed(query)

        scored = [
            ScoredChunk(
                content=chunk.content,
                metadata=dict(chunk.metadata),
                score=cosine_similarity(query_vector, vector),
            )
            for chunk, vector in self._records.values()
            if matches_filter(chunk.metadata, filter)
        ]
        scored.sort(key=lambda r: r.score, reverse=True)
        return scored[:k]

    async def get_by_filter(
        self,
        filter: dict,
        limit: Optional[int] = None,
    ) -> list[DocumentChunk]:
        found = [
            chunk
            for chunk, _ in self._records.values()
            if matches_filter(chunk.metadata, filter)
        ]
        return found[:limit] if limit is not None else found

    async def delete_by_ids(self, ids: list[str]) -> int:
        deleted = 0
        for id in ids:
            if self._records.pop(id, None) is not None:
                deleted += 1
        return deleted

    async def count(self) -> int:
        return len(self._records)
