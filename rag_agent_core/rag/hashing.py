"""Content fingerprints used to detect documents that are already indexed."""

import hashlib
from typing import Optional, Union

FILENAME_SEPARATOR = b"::"


def generate_document_hash(
    content: Union[bytes, str],
    filename: Optional[str] = None,
) -> str:
    """
    Compute a SHA-256 hex digest for a document.

    When a filename is given it is hashed as a prefix followed by "::", so the
    same bytes uploaded under two names are treated as different documents.
    """
    if isinstance(content, str):
        content = content.encode("utf-8")

    digest = hashlib.sha256()
    if filename:
        digest.update(filename.encode("utf-8"))
        digest.update(FILENAME_SEPARATOR)
    digest.update(content)
    return digest.hexdigest()
