"""
Text chunking utilities for RAG.

Splits text into bounded chunks suitable for embedding and retrieval.
Four strategies are available:

- fixed: sliding character window
- sentence: sentences packed greedily up to the chunk size
- paragraph: paragraphs packed greedily, oversized ones split by window
- recursive: split on a priority list of separators, then add overlap

This module has no external dependencies and can be used standalone.
"""

import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from rag_agent_core.errors import ConfigurationError


class ChunkingStrategy(str, Enum):
    FIXED = "fixed"
    SENTENCE = "sentence"
    PARAGRAPH = "paragraph"
    RECURSIVE = "recursive"


DEFAULT_SEPARATORS = ["\n\n", "\n", ". ", " ", ""]

_SENTENCE_RE = re.compile(r"[^.!?]*[.!?]+|[^.!?]+$")
_PARAGRAPH_RE = re.compile(r"\n\s*\n")


@dataclass
class ChunkingOptions:
    """Configuration for text chunking."""

    strategy: Union[ChunkingStrategy, str] = ChunkingStrategy.RECURSIVE
    """One of fixed, sentence, paragraph, recursive."""

    chunk_size: int = 1000
    """Maximum size of each chunk in characters (before overlap is added)."""

    chunk_overlap: int = 200
    """Characters shared between consecutive chunks."""

    separators: list[str] = field(default_factory=lambda: list(DEFAULT_SEPARATORS))
    """Separators tried in order by the recursive strategy."""


def _resolve_strategy(strategy: Union[ChunkingStrategy, str]) -> ChunkingStrategy:
    try:
        return ChunkingStrategy(strategy)
    except ValueError as e:
        valid = ", ".join(s.value for s in ChunkingStrategy)
        raise ConfigurationError(
            f"Unknown chunking strategy: {strategy!r}. Valid strategies: {valid}"
        ) from e


def chunk_text(text: str, options: Optional[ChunkingOptions] = None) -> list[str]:
    """
    Split text into chunks.

    Args:
        text: The text to chunk
        options: Chunking options (defaults to recursive, 1000/200)

    Returns:
        List of chunk strings; empty for empty or whitespace-only text

    Raises:
        ConfigurationError: For an unknown strategy or invalid sizes
    """
    options = options or ChunkingOptions()
    strategy = _resolve_strategy(options.strategy)

    if options.chunk_size <= 0:
        raise ConfigurationError(f"chunk_size must be positive, got {options.chunk_size}")
    if options.chunk_overlap < 0:
        raise ConfigurationError(
            f"chunk_overlap must not be negative, got {options.chunk_overlap}"
        )

    if not text or not text.strip():
        return []

    if strategy == ChunkingStrategy.FIXED:
        return _split_fixed(text, options.chunk_size, options.chunk_overlap)
    if strategy == ChunkingStrategy.SENTENCE:
        return _split_sentences(text, options.chunk_size)
    if strategy == ChunkingStrategy.PARAGRAPH:
        return _split_paragraphs(text, options.chunk_size)
    return _split_recursive(
        text,
        options.chunk_size,
        options.chunk_overlap,
        options.separators or DEFAULT_SEPARATORS,
    )


def _split_fixed(text: str, chunk_size: int, chunk_overlap: int) -> list[str]:
    step = chunk_size - chunk_overlap
    if step <= 0:
        step = chunk_size

    chunks = []
    start = 0
    while start < len(text):
        piece = text[start:start + chunk_size].strip()
        if piece:
            chunks.append(piece)
        start += step
    return chunks


def _split_sentences(text: str, chunk_size: int) -> list[str]:
    sentences = [s.strip() for s in _SENTENCE_RE.findall(text)]
    sentences = [s for s in sentences if s] or [text.strip()]

    chunks = []
    current = ""
    for sentence in sentences:
        if current and len(current) + len(sentence) + 1 > chunk_size:
            chunks.append(current)
            current = sentence
        else:
            current = f"{current} {sentence}" if current else sentence
    if current:
        chunks.append(current)
    return chunks


def _split_paragraphs(text: str, chunk_size: int) -> list[str]:
    paragraphs = [p.strip() for p in _PARAGRAPH_RE.split(text)]
    paragraphs = [p for p in paragraphs if p]

    chunks = []
    current = ""
    for paragraph in paragraphs:
        if len(paragraph) > chunk_size:
            if current:
                chunks.append(current)
                current = ""
            chunks.extend(_split_fixed(paragraph, chunk_size, 0))
        elif current and len(current) + len(paragraph) + 2 > chunk_size:
            chunks.append(current)
            current = paragraph
        else:
            current = f"{current}\n\n{paragraph}" if current else paragraph
    if current:
        chunks.append(current)
    return chunks


def _split_recursive(
    text: str,
    chunk_size: int,
    chunk_overlap: int,
    separators: list[str],
) -> list[str]:
    chunks: list[str] = []

    def flush(group: str, level: int) -> None:
        if len(group) > chunk_size:
            split(group, level + 1)
            return
        group = group.strip()
        if group:
            chunks.append(group)

    def split(segment: str, level: int) -> None:
        if len(segment) <= chunk_size:
            segment = segment.strip()
            if segment:
                chunks.append(segment)
            return

        if level >= len(separators):
            chunks.extend(_split_fixed(segment, chunk_size, 0))
            return

        separator = separators[level]
        # str.split rejects an empty separator
        parts = list(segment) if separator == "" else segment.split(separator)

        current = ""
        for part in parts:
            candidate = current + (separator if current else "") + part
            if len(candidate) > chunk_size and current:
                flush(current, level)
                current = part
            else:
                current = candidate
        if current:
            flush(current, level)

    split(text, 0)

    if chunk_overlap <= 0 or len(chunks) <= 1:
        return chunks

    overlapped = [chunks[0]]
    for previous, chunk in zip(chunks, chunks[1:]):
        overlapped.append(previous[-chunk_overlap:] + " " + chunk)
    return overlapped


def calculate_optimal_chunk_size(
    text_length: int,
    target_chunks: int = 10,
    min_size: int = 100,
    max_size: int = 2000,
) -> int:
    """Pick a chunk size that yields roughly target_chunks chunks, within bounds."""
    if target_chunks <= 0:
        raise ConfigurationError("target_chunks must be positive")
    optimal = math.ceil(text_length / target_chunks)
    return max(min_size, min(max_size, optimal))
