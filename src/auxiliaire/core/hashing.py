"""Content hashing for backed-up files.

This module provides:
- SHA-256 digests of fetched bytes (stored in the backup record)
- SHA-256 digests of files on disk (used to detect local edits)
"""

import hashlib
from pathlib import Path


def compute_bytes_hash(data: bytes) -> str:
    """Compute SHA-256 hash of in-memory content.

    Args:
        data: Content to hash.

    Returns:
        Hexadecimal SHA-256 hash string.
    """
    return hashlib.sha256(data).hexdigest()


def compute_file_hash(path: Path) -> str:
    """Compute SHA-256 hash of a file.

    Reads the file in chunks to handle large files efficiently.

    Args:
        path: Path to the file to hash.

    Returns:
        Hexadecimal SHA-256 hash string.
    """
    hasher = hashlib.sha256()
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(8192), b""):
            hasher.update(block)
    return hasher.hexdigest()
