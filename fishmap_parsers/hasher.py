"""
Content hashing for decoded buffers.

The digest lands in FileMetadata.content_hash so the storage layer can
deduplicate uploads of the same device export without re-decoding.
"""

import hashlib
import logging
from typing import Optional

import blake3

logger = logging.getLogger(__name__)

HASH_ALGORITHMS = ("blake3", "sha256")


def _create_hasher(algorithm: str = "blake3"):
    """Create a new hash object."""
    if algorithm == "blake3":
        return blake3.blake3()
    elif algorithm == "sha256":
        return hashlib.sha256()
    else:
        raise ValueError(f"Unknown hash algorithm: {algorithm}")


def content_hash(data: bytes, algorithm: str = "blake3") -> str:
    """Hex digest of the whole buffer."""
    hasher = _create_hasher(algorithm)
    hasher.update(bytes(data))
    return hasher.hexdigest()


def try_content_hash(data: bytes, algorithm: Optional[str] = "blake3") -> Optional[str]:
    """
    Like content_hash(), but returns None when hashing is disabled
    (algorithm is None) or the algorithm name is not recognised.
    """
    if not algorithm:
        return None
    try:
        return content_hash(data, algorithm)
    except ValueError as e:
        logger.warning(f"Content hash skipped: {e}")
        return None
