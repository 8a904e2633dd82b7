"""
Content Hashing

Stable digest of raw import payloads, used to recognize a file that was
already imported.
"""

import hashlib


def content_bytes(content: bytes | str) -> bytes:
    """Return the raw bytes of an upload; text is taken as its UTF-8 encoding."""
    if isinstance(content, str):
        return content.encode("utf-8")
    return content


def content_hash(content: bytes | str) -> str:
    """Return the SHA-256 hex digest of the raw import content."""
    return hashlib.sha256(content_bytes(content)).hexdigest()
