"""
rag_agent_core - retrieval-augmented agent orchestration.

This package provides:
- Document ingestion with duplicate detection and configurable chunking
- Strictness-filtered retrieval over a pluggable vector store
- A bounded tool-calling agent loop with citations and cost accounting
- OpenAI and Anthropic model clients

Example usage:
    from rag_agent_core import (
        KnowledgeChat,
        KnowledgeIndexer,
        KnowledgeRetriever,
        FileInput,
        Message,
        QueryOptions,
    )
    from rag_agent_core.llm import get_llm_client
    from rag_agent_core.vectorstore import get_vector_store

    store = get_vector_store("sqlite_vec", path="./vectors.db")
    await KnowledgeIndexer(store).ingest(
        [FileInput(source="./handbook.pdf", type="pdf", filename="handbook.pdf")]
    )

    chat = KnowledgeChat(
        model=get_llm_client(),
        retriever=KnowledgeRetriever(store, QueryOptions(strictness="balanced")),
    )
    result = await chat.run([Message.human("How many leave days do I get?")])
    print(result.response.content, result.citations)
"""

__version__ = "0.1.0"

# Core interfaces
from rag_agent_core.interfaces import (
    Citation,
    Message,
    MessageRole,
    ModelClient,
    ModelResponse,
    TokenUsage,
    ToolCall,
)

# Errors
from rag_agent_core.errors import (
    CapabilityTimeoutError,
    ConfigurationError,
    DuplicateDocumentError,
    ExternalCapabilityError,
    RagAgentError,
    SourceNotFoundError,
)

# Configuration
from rag_agent_core.config import (
    RuntimeConfig,
    configure,
    get_config,
)

# RAG
from rag_agent_core.rag.chunking import (
    ChunkingOptions,
    ChunkingStrategy,
    chunk_text,
)
from rag_agent_core.rag.hashing import generate_document_hash
from rag_agent_core.rag.indexer import (
    DuplicateHandling,
    FileInput,
    IngestionResult,
    IngestOptions,
    KnowledgeIndexer,
)
from rag_agent_core.rag.retriever import (
    KnowledgeRetriever,
    QueryOptions,
    SearchMethod,
    SearchStrictness,
)

# Agent loop
from rag_agent_core.agentic_loop import (
    AgentLoopResult,
    run_agent_loop,
)
from rag_agent_core.chat import KnowledgeChat
from rag_agent_core.citations import CitationTracker
from rag_agent_core.structured import StructuredAttribute, build_response_schema
from rag_agent_core.tools import Tool, ToolRegistry, create_retriever_tool
from rag_agent_core.usage import UsageAccountant, UsageEntry

# Remote agents
from rag_agent_core.remote import RemoteAgentClient

__all__ = [
    "__version__",
    # Interfaces
    "Citation",
    "Message",
    "MessageRole",
    "ModelClient",
    "ModelResponse",
    "TokenUsage",
    "ToolCall",
    # Errors
    "RagAgentError",
    "ConfigurationError",
    "ExternalCapabilityError",
    "CapabilityTimeoutError",
    "SourceNotFoundError",
    "DuplicateDocumentError",
    # Configuration
    "RuntimeConfig",
    "configure",
    "get_config",
    # RAG
    "chunk_text",
    "ChunkingOptions",
    "ChunkingStrategy",
    "generate_document_hash",
    "KnowledgeIndexer",
    "FileInput",
    "IngestOptions",
    "IngestionResult",
    "DuplicateHandling",
    "KnowledgeRetriever",
    "QueryOptions",
    "SearchMethod",
    "SearchStrictness",
    # Agent loop
    "run_agent_loop",
    "AgentLoopResult",
    "KnowledgeChat",
    "CitationTracker",
    "StructuredAttribute",
    "build_response_schema",
    "Tool",
    "ToolRegistry",
    "create_retriever_tool",
    "UsageAccountant",
    "UsageEntry",
    # Remote agents
    "RemoteAgentClient",
]
