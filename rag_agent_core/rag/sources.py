"""
Resolve a document source to bytes.

A source is raw bytes, an http(s) URL, or a local file path.
"""

import logging
import time
from pathlib import Path
from typing import Optional, Union

import httpx

from rag_agent_core.errors import (
    CapabilityTimeoutError,
    ExternalCapabilityError,
    SourceNotFoundError,
)

logger = logging.getLogger(__name__)

# HTTP statuses that mean the document is gone rather than temporarily unavailable
MISSING_STATUSES = {404, 410}


def is_remote(source: str) -> bool:
    return source.startswith("http://") or source.startswith("https://")


async def fetch_url(url: str, timeout: Optional[float] = None) -> bytes:
    """
    Download a remote document.

    Raises:
        SourceNotFoundError: On HTTP 404 or 410
        CapabilityTimeoutError: When the request times out
        ExternalCapabilityError: On any other HTTP or transport failure
    """
    from rag_agent_core.config import get_config

    config = get_config()
    if timeout is None:
        timeout = config.request_timeout

    started = time.monotonic()
    try:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=config.connect_timeout),
            follow_redirects=True,
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response.content
    except httpx.HTTPStatusError as e:
        if e.response.status_code in MISSING_STATUSES:
            raise SourceNotFoundError(
                url, f"Document not found at {url} (HTTP {e.response.status_code})"
            ) from e
        raise ExternalCapabilityError(
            f"Failed to fetch {url}: HTTP {e.response.status_code}"
        ) from e
    except httpx.TimeoutException as e:
        elapsed = time.monotonic() - started
        raise CapabilityTimeoutError(
            f"Timed out fetching {url} after {elapsed:.1f}s",
            elapsed=elapsed,
            timeout=timeout,
        ) from e
    except httpx.HTTPError as e:
        raise ExternalCapabilityError(f"Failed to fetch {url}: {e}") from e


def read_file(path: Union[str, Path]) -> bytes:
    """
    Read a local document.

    Raises:
        SourceNotFoundError: If the file does not exist
        ExternalCapabilityError: If it cannot be read
    """
    path = Path(path)
    try:
        return path.read_bytes()
    except FileNotFoundError as e:
        raise SourceNotFoundError(str(path)) from e
    except OSError as e:
        raise ExternalCapabilityError(f"Failed to read {path}: {e}") from e


async def resolve_source(
    source: Union[bytes, bytearray, str, Path],
    timeout: Optional[float] = None,
) -> bytes:
    """Return the bytes of a document given as a buffer, URL or path."""
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    if isinstance(source, str) and is_remote(source):
        logger.debug(f"Fetching remote document: {source}")
        return await fetch_url(source, timeout=timeout)
    return read_file(source)
