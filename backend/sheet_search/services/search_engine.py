"""
Search engine - multi-keyword AND queries over record search text.

A record matches when its search_text contains every keyword of the query as
a case-insensitive substring. Matches are ordered by import time (newest
first) and then by ascending record id, so page boundaries are stable.
"""
import json
import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from sheet_search.models import File, Record
from sheet_search.services.errors import QueryError
from sheet_search.services.normalizer import normalize_search_value, ordered_data

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
MAX_LIMIT = 100
EXPORT_BATCH_SIZE = 1000


def parse_keywords(query_text: Optional[str]) -> List[str]:
    """Split on whitespace, case-fold, and drop duplicates keeping first-seen order."""
    keywords: List[str] = []
    for token in (query_text or "").split():
        keyword = normalize_search_value(token)
        if keyword and keyword not in keywords:
            keywords.append(keyword)
    return keywords


def resolve_pagination(
    limit: Optional[int],
    offset: Optional[int],
    default_limit: int = DEFAULT_LIMIT,
    max_limit: int = MAX_LIMIT,
) -> Tuple[int, int]:
    """Apply defaults, reject negatives and clamp limit to max_limit."""
    limit = default_limit if limit is None else limit
    offset = 0 if offset is None else offset
    if limit < 0:
        raise QueryError(f"limit must be >= 0, got {limit}")
    if offset < 0:
        raise QueryError(f"offset must be >= 0, got {offset}")
    return min(limit, max_limit), offset


def _match_conditions(keywords: List[str]) -> list:
    return [Record.search_text.contains(keyword, autoescape=True) for keyword in keywords]


def serialize_hit(record: Record, file: File) -> Dict[str, Any]:
    return {
        "id": record.id,
        "file_name": file.name,
        "sheet_name": record.sheet_name,
        "row_number": record.row_number,
        "data_json": json.dumps(ordered_data(record.data_json or {}, file.field_order), ensure_ascii=False),
        "import_time": record.import_time,
    }


def search_records(
    db: Session,
    query_text: Optional[str],
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    default_limit: int = DEFAULT_LIMIT,
    max_limit: int = MAX_LIMIT,
) -> Dict[str, Any]:
    """
    Return one page of matches plus the total match count.

    An empty or whitespace-only query is a valid query with no results.
    The total is a window count computed by the same statement that reads
    the page, so both always describe one committed state.
    """
    limit, offset = resolve_pagination(limit, offset, default_limit, max_limit)
    keywords = parse_keywords(query_text)
    if not keywords:
        return {"results": [], "total": 0, "limit": limit, "offset": offset}

    conditions = _match_conditions(keywords)
    rows: List[Tuple[Record, File, int]] = []
    if limit > 0:
        rows = (
            db.query(Record, File, func.count(Record.id).over().label("total"))
            .join(File, Record.file_id == File.id)
            .filter(*conditions)
            .order_by(Record.import_time.desc(), Record.id.asc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    if rows:
        total = rows[0][2]
    else:
        # empty page: the count alone is the whole answer
        total = db.query(func.count(Record.id)).filter(*conditions).scalar() or 0

    logger.debug("Search %r keywords=%s total=%d offset=%d limit=%d", query_text, keywords, total, offset, limit)
    return {
        "results": [serialize_hit(record, file) for record, file, _ in rows],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


def iter_matches(db: Session, query_text: Optional[str], batch_size: int = EXPORT_BATCH_SIZE) -> Iterator[Tuple[Record, File]]:
    """Every match for query_text in search order, without a page limit."""
    keywords = parse_keywords(query_text)
    if not keywords:
        return
    query = (
        db.query(Record, File)
        .join(File, Record.file_id == File.id)
        .filter(*_match_conditions(keywords))
        .order_by(Record.import_time.desc(), Record.id.asc())
        .yield_per(batch_size)
    )
    for record, file in query:
        yield record, file
