"""Content hashing for rule files.

Hashes are computed over the exact file bytes (no normalisation) and tagged
with the algorithm: ``"sha256:" + hexdigest``.  Nothing is cached; callers
rehash whenever they need current state.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

HASH_ALGORITHM = "sha256"
_CHUNK_SIZE = 64 * 1024


def content_hash(data: bytes) -> str:
    """Return the tagged SHA-256 hash of *data*."""
    return f"{HASH_ALGORITHM}:{hashlib.sha256(data).hexdigest()}"


def file_hash(path: Path, chunk_size: int = _CHUNK_SIZE) -> str:
    """Return the tagged SHA-256 hash of the file at *path*.

    The file is read in chunks; the result does not depend on
    *chunk_size*.

    Raises:
        FileNotFoundError: If *path* does not exist.
    """
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(chunk_size), b""):
            digest.update(chunk)
    return f"{HASH_ALGORITHM}:{digest.hexdigest()}"
