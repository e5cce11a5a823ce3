"""
Spreadsheet parsing - workbook bytes to per-sheet header and row sequences.

Row 0 of every sheet is its header: the first non-blank row names the columns
left to right, and every later row is mapped positionally onto those names.
Rows shorter than the header are padded with empty cells; cells beyond the
header width are dropped. Blank rows are never emitted.

Cell values are coerced to text with a locale-independent rule, because the
text form feeds the search string:

- numbers: integers (and integral floats) as plain digits, other floats as the
  shortest round-trip positional form without an exponent
- booleans: ``true`` / ``false``
- dates: ``YYYY-MM-DD`` at midnight, otherwise ``YYYY-MM-DD HH:MM:SS``;
  times as ``HH:MM:SS``
- text: invisible and control characters removed, then trimmed
"""
import enum
import io
import logging
import math
import re
import unicodedata
from dataclasses import dataclass, field
from datetime import date, datetime, time
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence

import numpy as np
import pandas as pd

from sheet_search.services.errors import ParseError

logger = logging.getLogger(__name__)

EMPTY_HEADER_NAME = "EMPTY"

_INVISIBLE_CHARS = re.compile(r"[\u0000\ufeff\u200b\u200c\u200d]")


class CellKind(str, enum.Enum):
    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    EMPTY = "empty"


@dataclass(frozen=True)
class CellValue:
    kind: CellKind
    value: object = None

    @property
    def is_empty(self) -> bool:
        return self.kind is CellKind.EMPTY

    def as_text(self) -> str:
        if self.kind is CellKind.EMPTY:
            return ""
        if self.kind is CellKind.BOOLEAN:
            return "true" if self.value else "false"
        if self.kind is CellKind.NUMBER:
            return format_number(self.value)
        return str(self.value)


EMPTY_CELL = CellValue(CellKind.EMPTY)


def clean_text(value: str) -> str:
    """Strip NUL, BOM, zero-width and control characters, then trim."""
    value = _INVISIBLE_CHARS.sub("", value)
    value = "".join(
        ch for ch in value
        if ch.isspace() or unicodedata.category(ch) != "Cc"
    )
    return value.strip()


def format_number(value) -> str:
    if isinstance(value, (int, np.integer)):
        return str(int(value))
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return np.format_float_positional(number, trim="-")


def format_temporal(value) -> str:
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.strftime("%Y-%m-%d")
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    return value.strftime("%H:%M:%S")


def to_cell(raw) -> CellValue:
    """Classify a raw cell from the workbook reader into a tagged value."""
    if raw is None or raw is pd.NaT:
        return EMPTY_CELL
    if isinstance(raw, (bool, np.bool_)):
        return CellValue(CellKind.BOOLEAN, bool(raw))
    if isinstance(raw, (int, np.integer)):
        return CellValue(CellKind.NUMBER, int(raw))
    if isinstance(raw, (float, np.floating)):
        if math.isnan(raw):
            return EMPTY_CELL
        return CellValue(CellKind.NUMBER, float(raw))
    if isinstance(raw, (datetime, date, time)):
        return CellValue(CellKind.TEXT, format_temporal(raw))
    text = clean_text(str(raw))
    if not text:
        return EMPTY_CELL
    return CellValue(CellKind.TEXT, text)


def is_blank(cells: Iterable[CellValue]) -> bool:
    return all(cell.is_empty for cell in cells)


def build_header(cells: Sequence[CellValue]) -> List[str]:
    """
    Turn a header row into unique field names.

    Trailing blank cells define no column, interior blanks are named EMPTY,
    and repeated names get a numeric suffix (Name, Name_2, ...).
    """
    width = 0
    for idx, cell in enumerate(cells):
        if not cell.is_empty:
            width = idx + 1

    names: List[str] = []
    used = set()
    for cell in cells[:width]:
        base = cell.as_text() or EMPTY_HEADER_NAME
        name = base
        suffix = 1
        while name in used:
            suffix += 1
            name = f"{base}_{suffix}"
        used.add(name)
        names.append(name)
    return names


class SheetRows:
    """
    Lazy, restartable sequence of the data rows of one worksheet.

    Each iteration starts again from the row after the header and yields
    lists of CellValue exactly as wide as the header.
    """

    def __init__(self, name: str, frame: pd.DataFrame):
        self.name = name
        self._frame = frame
        self._header_index: Optional[int] = None
        self.header: Optional[List[str]] = None
        self._locate_header()

    def _raw_rows(self, start: int = 0) -> Iterator[tuple]:
        return self._frame.iloc[start:].itertuples(index=False, name=None)

    def _locate_header(self) -> None:
        for offset, raw in enumerate(self._raw_rows()):
            cells = [to_cell(value) for value in raw]
            if not is_blank(cells):
                self._header_index = offset
                self.header = build_header(cells)
                return

    @property
    def has_header(self) -> bool:
        return bool(self.header)

    def __iter__(self) -> Iterator[List[CellValue]]:
        if not self.has_header:
            return
        width = len(self.header)
        for raw in self._raw_rows(self._header_index + 1):
            cells = [to_cell(value) for value in raw[:width]]
            if is_blank(cells):
                continue
            if len(cells) < width:
                cells.extend([EMPTY_CELL] * (width - len(cells)))
            yield cells


@dataclass
class ParsedWorkbook:
    sheets: List[SheetRows] = field(default_factory=list)
    field_order: List[str] = field(default_factory=list)


def is_spreadsheet(path: Path, extensions: Sequence[str]) -> bool:
    return path.suffix.lower().lstrip(".") in extensions


def parse_workbook(data: bytes, source: str = "", skip_sheets: Sequence[str] = ()) -> ParsedWorkbook:
    """
    Parse workbook bytes (xlsx or xls) into header-mapped sheets.

    The first sheet that is not skipped is the primary sheet and must have a
    header row; other sheets without one are left out. The file's field order
    is the union of all sheet headers in first-seen order.
    """
    try:
        book = pd.ExcelFile(io.BytesIO(data))
    except Exception as e:
        raise ParseError(f"Not a recognizable spreadsheet: {source} ({e})", path=source) from e

    parsed = ParsedWorkbook()
    with book:
        sheet_names = [name for name in book.sheet_names if name not in skip_sheets]
        if not sheet_names:
            raise ParseError(f"Workbook has no sheets: {source}", path=source)

        for position, sheet_name in enumerate(sheet_names):
            try:
                # na_filter off keeps literal "NA"/"null" text as text
                frame = book.parse(sheet_name, header=None, dtype=object, na_filter=False)
            except Exception as e:
                raise ParseError(f"Cannot read sheet {sheet_name!r} of {source}: {e}", path=source) from e

            sheet = SheetRows(str(sheet_name), frame)
            if not sheet.has_header:
                if position == 0:
                    raise ParseError(f"Primary sheet {sheet_name!r} has no header row: {source}", path=source)
                logger.info("Skipping empty sheet %s in %s", sheet_name, source)
                continue

            parsed.sheets.append(sheet)
            for name in sheet.header:
                if name not in parsed.field_order:
                    parsed.field_order.append(name)

    return parsed
