"""
Document decoding for ingestion.

Example usage:
    from rag_agent_core.files import DecoderRegistry, DocumentType

    registry = DecoderRegistry()
    registry.auto_register()
    text = await registry.decode(pdf_bytes, DocumentType.PDF)
"""

from .base import (
    DecoderRegistry,
    DocumentDecoder,
    DocumentType,
    detect_document_type,
    resolve_document_type,
)
from .decoders import (
    CsvDecoder,
    DocxDecoder,
    HtmlDecoder,
    JsonDecoder,
    PdfDecoder,
    TextDecoder,
    XlsxDecoder,
)


def get_default_registry() -> DecoderRegistry:
    """Create a registry with all built-in decoders."""
    registry = DecoderRegistry()
    registry.auto_register()
    return registry


__all__ = [
    "DecoderRegistry",
    "DocumentDecoder",
    "DocumentType",
    "detect_document_type",
    "resolve_document_type",
    "get_default_registry",
    "TextDecoder",
    "CsvDecoder",
    "JsonDecoder",
    "HtmlDecoder",
    "PdfDecoder",
    "DocxDecoder",
    "XlsxDecoder",
]
