"""
Content hashing for change detection.
"""
import hashlib
from pathlib import Path
from typing import Union

from sheet_search.services.errors import FileAccessError


def compute_digest(data: bytes) -> str:
    """Hex MD5 digest of raw file bytes, used only for equality comparison."""
    return hashlib.md5(data, usedforsecurity=False).hexdigest()


def read_file_bytes(path: Union[str, Path]) -> bytes:
    """Read a file fully, mapping OS failures to FileAccessError."""
    try:
        with open(path, "rb") as fh:
            return fh.read()
    except OSError as e:
        raise FileAccessError(f"Cannot read {path}: {e}", path=str(path)) from e
