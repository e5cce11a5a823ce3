"""
Directory scanning for candidate spreadsheet files.
"""
import logging
from pathlib import Path
from typing import Any, Dict, List, Union

from sheet_search.config.scan_config import get_extensions, is_ignored
from sheet_search.services.errors import FileAccessError
from sheet_search.services.file_parser import is_spreadsheet

logger = logging.getLogger(__name__)


def discover_spreadsheets(folder: Union[str, Path], config: Dict[str, Any]) -> List[str]:
    """
    Recursively list spreadsheet files under folder as absolute paths.

    Extensions match case-insensitively; ignored filename patterns (Office
    lock files by default) are left out. Paths come back sorted.
    """
    root = Path(folder)
    if not root.exists():
        raise FileAccessError(f"Folder does not exist: {folder}", path=str(folder))
    if not root.is_dir():
        raise FileAccessError(f"Path is not a folder: {folder}", path=str(folder))

    extensions = get_extensions(config)
    found: List[str] = []
    for path in root.resolve().rglob("*"):
        if not path.is_file() or not is_spreadsheet(path, extensions):
            continue
        if is_ignored(path.name, config):
            logger.debug("Ignoring %s", path)
            continue
        found.append(str(path))

    found.sort()
    logger.info("Found %d spreadsheet file(s) under %s", len(found), root)
    return found
