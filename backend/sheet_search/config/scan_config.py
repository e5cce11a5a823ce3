"""
Utilities for loading the directory-scan configuration.
"""
from __future__ import annotations

import fnmatch
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "scan_config.yaml"

DEFAULT_EXTENSIONS = ["xlsx", "xls"]
DEFAULT_IGNORE_PATTERNS = ["~$*"]  # Office lock files


@lru_cache()
def load_scan_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    path = Path(config_path) if config_path else CONFIG_PATH
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def get_extensions(config: Dict[str, Any]) -> List[str]:
    extensions = config.get("extensions") or DEFAULT_EXTENSIONS
    return [str(ext).lower().lstrip(".") for ext in extensions]


def get_ignore_patterns(config: Dict[str, Any]) -> List[str]:
    patterns = config.get("ignore_patterns")
    if patterns is None:
        return list(DEFAULT_IGNORE_PATTERNS)
    return [str(p) for p in patterns]


def is_ignored(filename: str, config: Dict[str, Any]) -> bool:
    return any(fnmatch.fnmatch(filename, pattern) for pattern in get_ignore_patterns(config))


def get_skipped_sheets(filename: str, config: Dict[str, Any]) -> List[str]:
    """Sheet names to leave out for a file; keys are substrings of the filename."""
    files_cfg = config.get("files") or {}
    filename_lower = filename.lower()
    skipped: List[str] = []
    for key, value in files_cfg.items():
        if key.lower() in filename_lower:
            skipped.extend(str(name) for name in (value or {}).get("skip_sheets", []))
    return skipped
