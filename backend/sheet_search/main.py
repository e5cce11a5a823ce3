"""
Main FastAPI application entry point.
"""
import logging
import threading
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sheet_search.api import files, ingest, search
from sheet_search.db.database import (
    SessionLocal,
    Settings,
    engine as default_engine,
    init_db,
    make_engine,
    make_session_factory,
    settings,
)
from sheet_search.services.errors import FileAccessError
from sheet_search.services.ingest_scheduler import IngestScheduler
from sheet_search.services.stats_cache import StatsCache

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def _startup_import(scheduler: IngestScheduler, app_settings: Settings, cancel_event: threading.Event) -> None:
    try:
        scheduler.scan_folder(
            app_settings.excel_folder_path,
            force_reimport=app_settings.force_reimport,
            cancel_event=cancel_event,
            prune_missing=app_settings.prune_missing_files,
        )
    except FileAccessError as e:
        # keep serving whatever is already imported
        logger.error("Startup import skipped: %s", e)


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """Build the application around its own engine, scheduler and stats cache."""
    app_settings = app_settings or settings
    if app_settings.database_url == settings.database_url:
        engine, session_factory = default_engine, SessionLocal
    else:
        engine = make_engine(app_settings.database_url, echo=app_settings.sql_echo)
        session_factory = make_session_factory(engine)

    stats_cache = StatsCache(ttl=timedelta(seconds=app_settings.stats_cache_ttl))
    scheduler = IngestScheduler.from_settings(session_factory, app_settings, on_commit=stats_cache.invalidate)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Create database tables
        init_db(engine)
        cancel_event = threading.Event()
        worker = None
        if app_settings.import_on_startup:
            worker = threading.Thread(
                target=_startup_import,
                args=(scheduler, app_settings, cancel_event),
                name="startup-import",
                daemon=True,
            )
            worker.start()
        yield
        # files already running finish their transaction; queued ones are dropped
        cancel_event.set()
        if worker is not None:
            worker.join()

    app = FastAPI(
        title="Spreadsheet Search",
        description="Full-text search over rows of a watched folder of spreadsheets",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.stats_cache = stats_cache
    app.state.scheduler = scheduler

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(search.router, prefix="/api", tags=["search"])
    app.include_router(ingest.router, prefix="/api", tags=["import"])
    app.include_router(files.router, prefix="/api/files", tags=["files"])

    @app.get("/")
    async def root():
        return {"message": "Spreadsheet Search API"}

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    return app


app = create_app()


def run() -> None:
    uvicorn.run("sheet_search.main:app", host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
