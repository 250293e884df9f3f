"""
Document ingestion for RAG.

Fetches, decodes, de-duplicates, chunks and stores documents in a vector
store. Duplicate detection uses a content hash stored in each chunk's
metadata under "documentHash".
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from rag_agent_core.errors import (
    ConfigurationError,
    DuplicateDocumentError,
    ExternalCapabilityError,
    RagAgentError,
    SourceNotFoundError,
)
from rag_agent_core.files import DecoderRegistry, DocumentType, get_default_registry
from rag_agent_core.files.base import resolve_document_type
from rag_agent_core.rag.chunking import ChunkingOptions, chunk_text
from rag_agent_core.rag.hashing import generate_document_hash
from rag_agent_core.rag.sources import resolve_source
from rag_agent_core.vectorstore.base import DocumentChunk, VectorStore

logger = logging.getLogger(__name__)

HASH_METADATA_KEY = "documentHash"


class DuplicateHandling(str, Enum):
    SKIP = "skip"
    REPLACE = "replace"
    ERROR = "error"
    ALLOW = "allow"


@dataclass
class FileInput:
    """A document to ingest."""

    source: Union[bytes, str]
    """Raw bytes, an http(s) URL or a local path."""

    type: Union[DocumentType, str]
    """Declared document type; selects the decoder."""

    filename: Optional[str] = None
    """Stored in chunk metadata and mixed into the document hash."""

    metadata: dict = field(default_factory=dict)
    """Caller metadata copied onto every chunk."""

    id_prefix: Optional[str] = None
    """Prefix for chunk ids; defaults to the filename."""


@dataclass
class IngestOptions:
    chunking: ChunkingOptions = field(default_factory=ChunkingOptions)
    duplicate_handling: Union[DuplicateHandling, str] = DuplicateHandling.SKIP


@dataclass
class IngestionResult:
    """Counts from one ingest call."""

    added: int = 0
    """Chunks written to the store."""

    skipped: int = 0
    """Files skipped as duplicates, empty or missing."""

    replaced: int = 0
    """Files whose previously stored chunks were replaced."""


def _resolve_duplicate_handling(value: Union[DuplicateHandling, str]) -> DuplicateHandling:
    try:
        return DuplicateHandling(value)
    except ValueError as e:
        valid = ", ".join(d.value for d in DuplicateHandling)
        raise ConfigurationError(
            f"Unknown duplicate handling: {value!r}. Valid values: {valid}"
        ) from e


class KnowledgeIndexer:
    """
    Ingests documents into a vector store.

    Usage:
        from rag_agent_core.rag import KnowledgeIndexer, FileInput, IngestOptions
        from rag_agent_core.vectorstore import get_vector_store

        indexer = KnowledgeIndexer(get_vector_store("sqlite_vec", path="./vectors.db"))
        result = await indexer.ingest(
            [FileInput(source="./handbook.pdf", type="pdf", filename="handbook.pdf")],
            IngestOptions(duplicate_handling="replace"),
        )
        print(result.added, result.skipped, result.replaced)
    """

    def __init__(
        self,
        vector_store: VectorStore,
        decoders: Optional[DecoderRegistry] = None,
        fetch_timeout: Optional[float] = None,
    ):
        self._vector_store = vector_store
        self._decoders = decoders or get_default_registry()
        self._fetch_timeout = fetch_timeout

    async def ingest(
        self,
        files: list[FileInput],
        options: Optional[IngestOptions] = None,
    ) -> IngestionResult:
        """
        Ingest documents.

        Files are processed in order. Chunks are written in a single upsert
        after every file has been processed, and replaced documents are
        deleted just before that write.

        Raises:
            ConfigurationError: If no files are given or an option is invalid
            DuplicateDocumentError: If duplicate handling is "error" and a
                file is already stored
            ExternalCapabilityError: If fetching, decoding or the store fails
        """
        if not files:
            raise ConfigurationError("At least one file is required")

        options = options or IngestOptions()
        policy = _resolve_duplicate_handling(options.duplicate_handling)
        timestamp = int(time.time() * 1000)

        result = IngestionResult()
        chunks: list[DocumentChunk] = []
        ids_to_delete: list[str] = []

        try:
            for file_index, file in enumerate(files):
                name = file.filename or f"file_{file_index}"
                document_type = resolve_document_type(file.type)

                try:
                    content = await resolve_source(file.source, timeout=self._fetch_timeout)
                except SourceNotFoundError as e:
                    logger.warning(f"Skipping {name}: {e}")
                    result.skipped += 1
                    continue

                document_hash = generate_document_hash(content, file.filename)

                if policy != DuplicateHandling.ALLOW:
                    existing = await self._vector_store.get_by_filter(
                        {HASH_METADATA_KEY: document_hash}
                    )
                    if existing:
                        if policy == DuplicateHandling.SKIP:
                            logger.info(f"Skipping duplicate document: {name}")
                            result.skipped += 1
                            continue
                        if policy == DuplicateHandling.ERROR:
                            raise DuplicateDocumentError(name, document_hash)
                        ids_to_delete.extend(chunk.id for chunk in existing)
                        result.replaced += 1

                text = await self._decoders.decode(content, document_type)
                if not text or not text.strip():
                    logger.warning(f"No text extracted from {name}, skipping")
                    result.skipped += 1
                    continue

                pieces = chunk_text(text, options.chunking)
                prefix = file.id_prefix or file.filename or f"file_{file_index}"
                for chunk_index, piece in enumerate(pieces):
                    metadata = {
                        **file.metadata,
                        "fileIndex": file_index,
                        "chunkIndex": chunk_index,
                        "totalChunks": len(pieces),
                        "documentType": document_type.value,
                        HASH_METADATA_KEY: document_hash,
                    }
                    if file.filename:
                        metadata["filename"] = file.filename
                    chunks.append(
                        DocumentChunk(
                            id=f"{prefix}_{timestamp}_chunk_{chunk_index}",
                            content=piece,
                            metadata=metadata,
                        )
                    )
                logger.debug(f"Chunked {name} into {len(pieces)} chunks")

            if ids_to_delete:
                await self._vector_store.delete_by_ids(ids_to_delete)

            if not chunks:
                logger.info(
                    f"No new chunks to add (skipped={result.skipped}, "
                    f"replaced={result.replaced})"
                )
                return result

            await self._vector_store.upsert(chunks)
        except RagAgentError:
            raise
        except Exception as e:
            raise ExternalCapabilityError(f"Failed to add documents from files: {e}") from e

        result.added = len(chunks)
        logger.info(
            f"Ingested {len(files)} files: added={result.added}, "
            f"skipped={result.skipped}, replaced={result.replaced}"
        )
        return result

    async def add_documents(
        self,
        documents: list[Union[str, DocumentChunk]],
        ids: Optional[list[str]] = None,
        metadata: Optional[dict] = None,
    ) -> list[str]:
        """
        Store already-prepared text without chunking.

        Returns:
            The ids written
        """
        if not documents:
            raise ConfigurationError("At least one document is required")
        if ids is not None and len(ids) != len(documents):
            raise ConfigurationError("ids must match the number of documents")

        timestamp = int(time.time() * 1000)
        chunks = []
        for i, document in enumerate(documents):
            if isinstance(document, DocumentChunk):
                chunks.append(document)
                continue
            chunks.append(
                DocumentChunk(
                    id=ids[i] if ids else f"doc_{timestamp}_{i}",
                    content=document,
                    metadata=dict(metadata or {}),
                )
            )

        try:
            await self._vector_store.upsert(chunks)
        except RagAgentError:
            raise
        except Exception as e:
            raise ExternalCapabilityError(f"Failed to add documents: {e}") from e
        return [chunk.id for chunk in chunks]

    async def delete_documents(self, ids: list[str]) -> int:
        if not ids:
            raise ConfigurationError("At least one document id is required")
        try:
            return await self._vector_store.delete_by_ids(ids)
        except RagAgentError:
            raise
        except Exception as e:
            raise ExternalCapabilityError(f"Failed to delete documents: {e}") from e

    async def count(self) -> int:
        return await self._vector_store.count()
