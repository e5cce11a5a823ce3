"""
Error taxonomy for ingestion and search.
"""
from typing import Optional


class IngestError(Exception):
    """Base class for failures of a single file's pipeline."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class FileAccessError(IngestError):
    """Path could not be read (missing, permissions, not a regular file)."""


class ParseError(IngestError):
    """Bytes are not a recognizable workbook, or the primary sheet has no header row."""


class PersistenceError(IngestError):
    """A database transaction failed after all retries."""


class QueryError(ValueError):
    """Malformed search or pagination parameters."""
