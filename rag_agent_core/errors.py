"""
Exception types raised by rag_agent_core.

Configuration problems are fatal and never retried. Failures of an external
capability (model, vector store, decoder, remote fetch) propagate unless they
happen inside a tool call, where the agent loop turns them into a tool message.
"""

from typing import Optional


class RagAgentError(Exception):
    """Base class for all rag_agent_core errors."""
    pass


class ConfigurationError(RagAgentError, ValueError):
    """Raised for missing fields, unknown enum values or empty queries."""
    pass


class ExternalCapabilityError(RagAgentError):
    """Raised when a model, tool, vector store, decoder or fetch fails."""
    pass


class CapabilityTimeoutError(ExternalCapabilityError):
    """Raised when an external call exceeds its timeout."""

    def __init__(
        self,
        message: str,
        elapsed: Optional[float] = None,
        timeout: Optional[float] = None,
    ):
        super().__init__(message)
        self.elapsed = elapsed
        self.timeout = timeout


class SourceNotFoundError(ExternalCapabilityError):
    """Raised when a document source does not exist (HTTP 404/410, missing file)."""

    def __init__(self, source: str, message: Optional[str] = None):
        super().__init__(message or f"Document source not found: {source}")
        self.source = source


class DuplicateDocumentError(RagAgentError):
    """Raised when duplicate handling is 'error' and the document is already stored."""

    def __init__(self, filename: str, document_hash: str):
        super().__init__(f"Duplicate document found: {filename}. Hash: {document_hash}")
        self.filename = filename
        self.document_hash = document_hash
