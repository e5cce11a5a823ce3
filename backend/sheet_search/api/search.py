"""
Search, stats and export API endpoints.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from sheet_search.api.dependencies import get_settings, get_stats_cache
from sheet_search.db.database import Settings, get_db
from sheet_search.schemas import SearchResponse, StatsResponse
from sheet_search.services.errors import QueryError
from sheet_search.services.excel_export import XLSX_MEDIA_TYPE, export_search_results
from sheet_search.services.search_engine import search_records
from sheet_search.services.stats_cache import StatsCache

router = APIRouter()
logger = logging.getLogger(__name__)


def _require_query(q: Optional[str]) -> str:
    if q is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Query parameter 'q' is required"
        )
    return q


@router.get("/search", response_model=SearchResponse)
def search(
    q: Optional[str] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    db: Session = Depends(get_db),
    app_settings: Settings = Depends(get_settings),
):
    """Multi-keyword AND search over all imported rows."""
    query_text = _require_query(q)
    try:
        return search_records(
            db,
            query_text,
            limit=limit,
            offset=offset,
            default_limit=app_settings.search_default_limit,
            max_limit=app_settings.search_max_limit,
        )
    except QueryError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )


@router.get("/stats", response_model=StatsResponse)
def stats(
    db: Session = Depends(get_db),
    stats_cache: StatsCache = Depends(get_stats_cache),
):
    """File and record counts with the latest import time."""
    try:
        return stats_cache.get(db)
    except Exception as e:
        logger.exception("Failed to load stats")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error loading stats: {str(e)}"
        )


@router.get("/export")
def export(
    q: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Download every match for q as an xlsx workbook."""
    query_text = _require_query(q)
    try:
        payload = export_search_results(db, query_text)
    except Exception as e:
        logger.exception("Export failed for query %r", query_text)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error exporting results: {str(e)}"
        )

    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return Response(
        content=payload,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="search_results_{timestamp}.xlsx"'},
    )
