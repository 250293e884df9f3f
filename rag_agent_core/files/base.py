"""
Base classes for document decoding.

Provides the DocumentDecoder abstract base class and a registry keyed by
document type, used by the ingestion pipeline to turn bytes into text.
"""

from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from rag_agent_core.errors import ConfigurationError, ExternalCapabilityError


class DocumentType(str, Enum):
    """Supported document types."""
    PDF = "pdf"
    DOCX = "docx"
    XLSX = "xlsx"
    CSV = "csv"
    TXT = "txt"
    MD = "md"
    JSON = "json"
    HTML = "html"


EXTENSION_TYPES = {
    ".pdf": DocumentType.PDF,
    ".docx": DocumentType.DOCX,
    ".xlsx": DocumentType.XLSX,
    ".csv": DocumentType.CSV,
    ".txt": DocumentType.TXT,
    ".text": DocumentType.TXT,
    ".md": DocumentType.MD,
    ".markdown": DocumentType.MD,
    ".json": DocumentType.JSON,
    ".html": DocumentType.HTML,
    ".htm": DocumentType.HTML,
}


def detect_document_type(filename: str) -> Optional[DocumentType]:
    """Guess the document type from a filename extension."""
    return EXTENSION_TYPES.get(Path(filename).suffix.lower())


def resolve_document_type(value: Union[DocumentType, str]) -> DocumentType:
    try:
        return DocumentType(value)
    except ValueError as e:
        valid = ", ".join(t.value for t in DocumentType)
        raise ConfigurationError(
            f"Unknown document type: {value!r}. Valid types: {valid}"
        ) from e


class DocumentDecoder(ABC):
    """
    Abstract base class for decoders.

    Each decoder declares the document types it handles and turns raw
    bytes into plain text.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    @abstractmethod
    def supported_types(self) -> list[DocumentType]:
        ...

    @abstractmethod
    async def decode(self, content: bytes) -> str:
        """
        Extract text from document bytes.

        Args:
            content: Raw file bytes

        Returns:
            Extracted text (may be empty)
        """
        ...


class DecoderRegistry:
    """
    Registry of document decoders keyed by DocumentType.

    The last decoder registered for a type wins.
    """

    def __init__(self):
        self._decoders: dict[DocumentType, DocumentDecoder] = {}

    def register(self, decoder: DocumentDecoder) -> None:
        for document_type in decoder.supported_types:
            self._decoders[document_type] = decoder

    def get(self, document_type: Union[DocumentType, str]) -> Optional[DocumentDecoder]:
        return self._decoders.get(resolve_document_type(document_type))

    def supported_types(self) -> list[DocumentType]:
        return list(self._decoders)

    async def decode(self, content: bytes, document_type: Union[DocumentType, str]) -> str:
        """
        Decode bytes with the decoder registered for a type.

        Raises:
            ConfigurationError: If the type is unknown or has no decoder
            ExternalCapabilityError: If the decoder fails
        """
        decoder = self.get(document_type)
        if decoder is None:
            raise ConfigurationError(f"No decoder registered for type: {document_type}")
        try:
            return await decoder.decode(content)
        except (ConfigurationError, ExternalCapabilityError, ImportError):
            raise
        except Exception as e:
            raise ExternalCapabilityError(
                f"Failed to decode {resolve_document_type(document_type).value} "
                f"document with {decoder.name}: {e}"
            ) from e

    def auto_register(self) -> None:
        """Register the built-in decoders for every document type."""
        from .decoders import (
            CsvDecoder,
            DocxDecoder,
            HtmlDecoder,
            JsonDecoder,
            PdfDecoder,
            TextDecoder,
            XlsxDecoder,
        )

        self.register(TextDecoder())
        self.register(CsvDecoder())
        self.register(JsonDecoder())
        self.register(HtmlDecoder())
        self.register(PdfDecoder())
        self.register(DocxDecoder())
        self.register(XlsxDecoder())
