"""
Tracked file API endpoints.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from sheet_search.api.dependencies import get_scheduler
from sheet_search.db.database import get_db
from sheet_search.models import File, Record
from sheet_search.schemas import FileResponse
from sheet_search.services.errors import PersistenceError
from sheet_search.services.ingest_scheduler import IngestScheduler

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=List[FileResponse])
def list_files(db: Session = Depends(get_db)):
    """List tracked files with their record counts."""
    counts = dict(
        db.query(Record.file_id, func.count(Record.id))
        .group_by(Record.file_id)
        .all()
    )
    files = db.query(File).order_by(File.path.asc()).all()
    for file in files:
        setattr(file, "record_count", counts.get(file.id, 0))
    return files


@router.delete("/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_file(
    file_id: int,
    scheduler: IngestScheduler = Depends(get_scheduler),
):
    """Stop tracking a file and remove all of its records."""
    try:
        removed = scheduler.remove_file(file_id)
    except PersistenceError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error deleting file: {str(e)}"
        )
    if removed is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"File {file_id} not found"
        )
    logger.info("Deleted file %s (%s)", file_id, removed)
