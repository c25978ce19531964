"""
Utility functions shared across modules: checksums and local file handling.
"""

import hashlib
import logging
import os
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def file_checksum(path: Union[str, Path], algorithm: str = "md5") -> str:
    """
    Compute the hex digest of a file, reading it in chunks.

    Args:
        path: File to digest
        algorithm: Any algorithm name hashlib accepts

    Returns:
        Lowercase hex digest
    """
    digest = hashlib.new(algorithm)
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(block)
    return digest.hexdigest()


def bytes_checksum(data: bytes, algorithm: str = "md5") -> str:
    """Hex digest of an in-memory buffer."""
    return hashlib.new(algorithm, data).hexdigest()


def remove_quietly(path: Union[str, Path]) -> bool:
    """
    Delete a local file, logging rather than raising on failure.

    Returns:
        True if the file is gone afterwards
    """
    try:
        os.remove(path)
        return True
    except FileNotFoundError:
        return True
    except OSError as e:
        logger.warning(f"Could not remove local file {path}: {e}")
        return False
