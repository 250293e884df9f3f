"""
RAG (Retrieval Augmented Generation) module for rag_agent_core.

This module provides:
- KnowledgeIndexer: fetch, decode, de-duplicate, chunk and store documents
- KnowledgeRetriever: strictness-filtered similarity queries
- Text chunking and document hashing utilities

Example usage:
    from rag_agent_core.rag import (
        KnowledgeIndexer,
        KnowledgeRetriever,
        FileInput,
        QueryOptions,
    )
    from rag_agent_core.vectorstore import get_vector_store

    store = get_vector_store("sqlite_vec", path="./vectors.db")

    indexer = KnowledgeIndexer(store)
    await indexer.ingest([FileInput(source="./faq.md", type="md", filename="faq.md")])

    retriever = KnowledgeRetriever(store)
    hits = await retriever.query("What is the return policy?", QueryOptions(strictness="balanced"))
"""

from rag_agent_core.rag.chunking import (
    ChunkingOptions,
    ChunkingStrategy,
    calculate_optimal_chunk_size,
    chunk_text,
)
from rag_agent_core.rag.hashing import generate_document_hash


# Lazy imports to avoid circular dependencies
def __getattr__(name: str):
    if name in ("KnowledgeIndexer", "FileInput", "IngestOptions", "IngestionResult", "DuplicateHandling"):
        from rag_agent_core.rag import indexer
        return getattr(indexer, name)
    elif name in ("KnowledgeRetriever", "QueryOptions", "SearchMethod", "SearchStrictness", "STRICTNESS_LEVELS"):
        from rag_agent_core.rag import retriever
        return getattr(retriever, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    # Chunking
    "chunk_text",
    "ChunkingOptions",
    "ChunkingStrategy",
    "calculate_optimal_chunk_size",
    # Hashing
    "generate_document_hash",
    # Ingestion
    "KnowledgeIndexer",
    "FileInput",
    "IngestOptions",
    "IngestionResult",
    "DuplicateHandling",
    # Retrieval
    "KnowledgeRetriever",
    "QueryOptions",
    "SearchMethod",
    "SearchStrictness",
    "STRICTNESS_LEVELS",
]
