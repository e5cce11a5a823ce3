"""
Import trigger API endpoint.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from sheet_search.api.dependencies import get_scheduler, get_settings
from sheet_search.db.database import Settings
from sheet_search.schemas import IngestSummaryResponse
from sheet_search.services.errors import FileAccessError
from sheet_search.services.ingest_scheduler import IngestScheduler

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/import", response_model=IngestSummaryResponse)
def run_import(
    force: bool = False,
    scheduler: IngestScheduler = Depends(get_scheduler),
    app_settings: Settings = Depends(get_settings),
):
    """Scan the configured folder now and return the pass summary."""
    try:
        summary = scheduler.scan_folder(
            app_settings.excel_folder_path,
            force_reimport=force or app_settings.force_reimport,
            prune_missing=app_settings.prune_missing_files,
        )
    except FileAccessError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Cannot scan folder: {str(e)}"
        )
    return summary.to_dict()
