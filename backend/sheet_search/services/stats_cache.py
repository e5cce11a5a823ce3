"""
Stats cache - keeps the aggregate counts in memory between requests.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from threading import Lock
from typing import Any, Dict, Optional
import time

from sqlalchemy.orm import Session

from sheet_search.services.store import get_stats


@dataclass
class CachedStats:
    data: Dict[str, Any]
    loaded_at: float


class StatsCache:
    """
    TTL cache around store.get_stats.

    Ingestion calls invalidate() after every committed file, so cached values
    never outlive the state they were computed from.
    """

    def __init__(self, ttl: timedelta = timedelta(minutes=5)):
        self.ttl = ttl
        self._entry: Optional[CachedStats] = None
        self._lock = Lock()

    def get(self, db: Session, force_reload: bool = False) -> Dict[str, Any]:
        with self._lock:
            should_reload = force_reload or self._entry is None or self.ttl.total_seconds() <= 0
            if self._entry and not should_reload:
                if time.monotonic() - self._entry.loaded_at > self.ttl.total_seconds():
                    should_reload = True
            if should_reload:
                self._entry = CachedStats(data=get_stats(db), loaded_at=time.monotonic())
            return dict(self._entry.data)

    def invalidate(self) -> None:
        with self._lock:
            self._entry = None
