"""
Excel export service - search matches back into a workbook.
"""
import io
import logging
import re
import time
from datetime import datetime
from typing import Dict, List, Optional, Set, Tuple

from openpyxl import Workbook
from openpyxl.styles import Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet
from sqlalchemy.orm import Session

from sheet_search.models import File, Record
from sheet_search.services.search_engine import iter_matches

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

BASE_COLUMNS = ["Sheet", "Row", "Import Time"]
COLUMN_WIDTH = 15
MAX_SHEET_TITLE = 31
_INVALID_TITLE_CHARS = re.compile(r"[\\/?*\[\]:]")

HEADER_FONT = Font(bold=True, color="FFFFFF")
HEADER_FILL = PatternFill(fill_type="solid", fgColor="4472C4")
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)


def sanitize_sheet_title(name: str, used: Set[str]) -> str:
    """
    Make a valid, unique worksheet title from a file name.

    Excel titles are at most 31 characters and cannot contain \\ / ? * [ ] :
    """
    title = _INVALID_TITLE_CHARS.sub("", name).strip()
    if len(title) > MAX_SHEET_TITLE:
        title = title[:MAX_SHEET_TITLE - 3] + "..."
    if not title:
        title = "Sheet1"

    candidate = title
    counter = 1
    while candidate.lower() in used:
        counter += 1
        suffix = f" ({counter})"
        candidate = title[:MAX_SHEET_TITLE - len(suffix)] + suffix
    used.add(candidate.lower())
    return candidate


def format_import_time(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else ""


def _write_row(ws: Worksheet, row_idx: int, values: List[object], header: bool = False) -> None:
    for col_idx, value in enumerate(values, start=1):
        cell = ws.cell(row=row_idx, column=col_idx, value=value)
        if isinstance(value, str) and value.startswith("="):
            # cell text, not a formula
            cell.data_type = "s"
        cell.border = THIN_BORDER
        if header:
            cell.font = HEADER_FONT
            cell.fill = HEADER_FILL


def _columns_for(file: File, records: List[Record]) -> List[str]:
    columns = list(file.field_order or [])
    for record in records:
        for name in (record.data_json or {}):
            if name not in columns:
                columns.append(name)
    return columns


def _header_names(columns: List[str]) -> List[str]:
    """Field headers that do not repeat a base column; collisions get _2, _3, ..."""
    used = set(BASE_COLUMNS)
    names = []
    for name in columns:
        candidate = name
        suffix = 1
        while candidate in used:
            suffix += 1
            candidate = f"{name}_{suffix}"
        used.add(candidate)
        names.append(candidate)
    return names


def _write_file_sheet(ws: Worksheet, file: File, records: List[Record]) -> None:
    columns = _columns_for(file, records)
    _write_row(ws, 1, BASE_COLUMNS + _header_names(columns), header=True)
    for row_idx, record in enumerate(records, start=2):
        data = record.data_json or {}
        values = [record.sheet_name, record.row_number, format_import_time(record.import_time)]
        values.extend(data.get(name, "") for name in columns)
        _write_row(ws, row_idx, values)
    for col_idx in range(1, len(BASE_COLUMNS) + len(columns) + 1):
        ws.column_dimensions[get_column_letter(col_idx)].width = COLUMN_WIDTH


def export_search_results(db: Session, query_text: str) -> bytes:
    """
    Build an xlsx workbook with every match of query_text.

    Matches keep the search order and are grouped into one worksheet per
    source file, in the order files first appear; columns follow the file's
    field order. No matches gives a single header-only "Results" sheet.
    """
    start_time = time.perf_counter()
    grouped: Dict[int, Tuple[File, List[Record]]] = {}
    match_count = 0
    for record, file in iter_matches(db, query_text):
        grouped.setdefault(file.id, (file, []))[1].append(record)
        match_count += 1

    wb = Workbook()
    default_ws = wb.active
    if grouped:
        wb.remove(default_ws)
        used_titles: Set[str] = set()
        for file, records in grouped.values():
            ws = wb.create_sheet(sanitize_sheet_title(file.name, used_titles))
            _write_file_sheet(ws, file, records)
    else:
        default_ws.title = "Results"
        _write_row(default_ws, 1, BASE_COLUMNS, header=True)

    buffer = io.BytesIO()
    wb.save(buffer)
    duration = round(time.perf_counter() - start_time, 3)
    logger.info(
        "Exported %d match(es) from %d file(s) for query %r in %.2fs",
        match_count,
        len(grouped),
        query_text,
        duration,
    )
    return buffer.getvalue()
