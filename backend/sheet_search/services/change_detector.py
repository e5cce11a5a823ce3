"""
Change detection - decides whether a discovered file needs (re)importing.
"""
import enum
from typing import Optional


class FileState(str, enum.Enum):
    UNKNOWN = "unknown"
    UP_TO_DATE = "up_to_date"
    CHANGED = "changed"


class ImportAction(str, enum.Enum):
    IMPORT = "import"
    SKIP = "skip"
    REIMPORT = "reimport"


def classify(stored_hash: Optional[str], current_hash: str) -> FileState:
    if stored_hash is None:
        return FileState.UNKNOWN
    if stored_hash == current_hash:
        return FileState.UP_TO_DATE
    return FileState.CHANGED


def decide(stored_hash: Optional[str], current_hash: str, force_reimport: bool = False) -> ImportAction:
    """
    Map the stored and fresh digests to an action.

    Unknown files are imported. Known files are reimported when the digest
    differs, or always when force_reimport is set; otherwise skipped.
    """
    state = classify(stored_hash, current_hash)
    if state is FileState.UNKNOWN:
        return ImportAction.IMPORT
    if force_reimport or state is FileState.CHANGED:
        return ImportAction.REIMPORT
    return ImportAction.SKIP
