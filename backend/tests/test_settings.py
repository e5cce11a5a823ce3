"""
Tests for runtime settings and the stats cache.
"""
import time
from datetime import timedelta

from sheet_search.db.database import Settings
from sheet_search.services.stats_cache import StatsCache
from sheet_search.services.store import FileMetadata, run_in_transaction, upsert_file


def add_file(session_factory, path):
    run_in_transaction(
        session_factory,
        lambda db: upsert_file(db, FileMetadata(path=path, name=path, size=1, hash="h"), []),
        backoff=0,
    )


class TestSettings:
    def test_default_url_names_psycopg2_driver(self):
        assert Settings().database_url.startswith("postgresql+psycopg2://")

    def test_default_stats_ttl_is_short(self):
        assert Settings().stats_cache_ttl == 30.0

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite:///./local.sqlite")
        monkeypatch.setenv("MAX_CONCURRENT_FILES", "0")
        monkeypatch.setenv("FORCE_REIMPORT", "yes")
        monkeypatch.setenv("STATS_CACHE_TTL", "0")
        monkeypatch.setenv("SEARCH_MAX_LIMIT", " ")

        settings = Settings.from_env()

        assert settings.database_url == "sqlite:///./local.sqlite"
        assert settings.max_concurrent_files == 1
        assert settings.force_reimport is True
        assert settings.stats_cache_ttl == 0.0
        assert settings.search_max_limit == 100

    def test_with_overrides(self):
        settings = Settings().with_overrides(max_concurrent_files=8)
        assert settings.max_concurrent_files == 8
        assert Settings().max_concurrent_files == 4


class TestStatsCache:
    def test_cached_until_invalidated(self, db, session_factory):
        cache = StatsCache(ttl=timedelta(minutes=5))
        assert cache.get(db)["total_files"] == 0

        add_file(session_factory, "/data/a.xlsx")
        assert cache.get(db)["total_files"] == 0

        cache.invalidate()
        assert cache.get(db)["total_files"] == 1

    def test_outside_writes_visible_after_ttl(self, db, session_factory):
        cache = StatsCache(ttl=timedelta(milliseconds=50))
        assert cache.get(db)["total_files"] == 0

        add_file(session_factory, "/data/a.xlsx")
        time.sleep(0.1)

        assert cache.get(db)["total_files"] == 1

    def test_zero_ttl_always_reloads(self, db, session_factory):
        cache = StatsCache(ttl=timedelta(0))
        assert cache.get(db)["total_files"] == 0
        add_file(session_factory, "/data/a.xlsx")
        assert cache.get(db)["total_files"] == 1

    def test_force_reload(self, db, session_factory):
        cache = StatsCache()
        cache.get(db)
        add_file(session_factory, "/data/a.xlsx")
        assert cache.get(db, force_reload=True)["total_files"] == 1
