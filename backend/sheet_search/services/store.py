"""
Store - transactional persistence of files and their records.

upsert_file and replace_records only flush; run_in_transaction owns the
commit, so a file's metadata and its row set land together or not at all.
"""
import logging
import os
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, TypeVar

from sqlalchemy import func
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from sheet_search.models import File, Record
from sheet_search.models.file import utcnow
from sheet_search.services.errors import PersistenceError
from sheet_search.services.normalizer import NormalizedRecord

logger = logging.getLogger(__name__)

INSERT_BATCH_SIZE = 1000

T = TypeVar("T")


@dataclass
class FileMetadata:
    path: str
    name: str
    size: int
    hash: str


def get_file_by_path(db: Session, path: str) -> Optional[File]:
    return db.query(File).filter(File.path == path).first()


def get_file(db: Session, file_id: int) -> Optional[File]:
    return db.query(File).filter(File.id == file_id).first()


def list_files(db: Session) -> List[File]:
    return db.query(File).order_by(File.path.asc()).all()


def count_records(db: Session, file_id: Optional[int] = None) -> int:
    query = db.query(func.count(Record.id))
    if file_id is not None:
        query = query.filter(Record.file_id == file_id)
    return query.scalar() or 0


def upsert_file(
    db: Session,
    metadata: FileMetadata,
    field_order: Sequence[str],
    now: Optional[datetime] = None,
) -> int:
    """
    Insert or update the File row for metadata.path and return its id.

    This is the only write path that sets field_order.
    """
    now = now or utcnow()
    file = get_file_by_path(db, metadata.path)
    if file is None:
        file = File(
            path=metadata.path,
            name=metadata.name,
            size=metadata.size,
            hash=metadata.hash,
            field_order=list(field_order),
            created_at=now,
            updated_at=now,
        )
        db.add(file)
    else:
        file.name = metadata.name
        file.size = metadata.size
        file.hash = metadata.hash
        file.field_order = list(field_order)
        file.updated_at = now
    db.flush()
    return file.id


def replace_records(
    db: Session,
    file_id: int,
    records: Iterable[NormalizedRecord],
    import_time: Optional[datetime] = None,
) -> int:
    """
    Delete every record of file_id, then bulk-insert the new generation.

    Runs inside the caller's transaction; returns the number inserted.
    """
    import_time = import_time or utcnow()
    db.query(Record).filter(Record.file_id == file_id).delete(synchronize_session=False)

    inserted = 0
    batch: List[Dict[str, Any]] = []
    for record in records:
        batch.append({
            "file_id": file_id,
            "import_time": import_time,
            "row_number": record.row_number,
            "sheet_name": record.sheet_name,
            "data_json": record.data,
            "search_text": record.search_text,
        })
        inserted += 1
        if len(batch) >= INSERT_BATCH_SIZE:
            db.bulk_insert_mappings(Record, batch)
            batch.clear()

    if batch:
        db.bulk_insert_mappings(Record, batch)
    db.flush()
    return inserted


def delete_file(db: Session, file_id: int) -> bool:
    """Remove a File; its records go with it through the cascading foreign key."""
    file = get_file(db, file_id)
    if file is None:
        return False
    db.delete(file)
    db.flush()
    return True


def find_missing_files(db: Session, folder: str, present_paths: Iterable[str]) -> List[File]:
    """Tracked files under folder whose path was not seen in the latest scan."""
    prefix = folder.rstrip(os.sep) + os.sep
    present = set(present_paths)
    return [
        file for file in db.query(File).filter(File.path.startswith(prefix, autoescape=True)).all()
        if file.path not in present
    ]


def get_stats(db: Session) -> Dict[str, Any]:
    """
    Aggregate counts and the latest import time.

    last_updated falls back to the newest file update when no records exist.
    """
    total_files = db.query(func.count(File.id)).scalar() or 0
    total_records = db.query(func.count(Record.id)).scalar() or 0
    last_updated = db.query(func.max(Record.import_time)).scalar()
    if last_updated is None:
        last_updated = db.query(func.max(File.updated_at)).scalar()
    return {
        "total_files": total_files,
        "total_records": total_records,
        "last_updated": last_updated,
    }


def is_transient_error(error: BaseException) -> bool:
    if isinstance(error, (OperationalError, InterfaceError)):
        return True
    return isinstance(error, DBAPIError) and bool(error.connection_invalidated)


def run_in_transaction(
    session_factory: sessionmaker,
    work: Callable[[Session], T],
    max_retries: int = 3,
    backoff: float = 0.5,
    label: str = "",
) -> T:
    """
    Run work(db) in its own session and commit it as one transaction.

    Transient errors roll back and retry with exponential backoff; anything
    else, or running out of retries, raises PersistenceError.
    """
    attempt = 0
    while True:
        db = session_factory()
        try:
            result = work(db)
            db.commit()
            return result
        except SQLAlchemyError as e:
            db.rollback()
            if is_transient_error(e) and attempt < max_retries:
                delay = backoff * (2 ** attempt)
                attempt += 1
                logger.warning(
                    "Transient database error for %s (attempt %d/%d), retrying in %.2fs: %s",
                    label, attempt, max_retries, delay, e,
                )
                time.sleep(delay)
                continue
            raise PersistenceError(f"Database write failed for {label}: {e}", path=label) from e
        finally:
            db.close()
