"""
Application-state dependencies shared by the routers.
"""
from fastapi import Request

from sheet_search.db.database import Settings, settings as default_settings
from sheet_search.services.ingest_scheduler import IngestScheduler
from sheet_search.services.stats_cache import StatsCache


def get_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or default_settings


def get_scheduler(request: Request) -> IngestScheduler:
    return request.app.state.scheduler


def get_stats_cache(request: Request) -> StatsCache:
    return request.app.state.stats_cache
