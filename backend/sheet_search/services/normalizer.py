"""
Record normalization service - converts parsed sheet rows to stored records.
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence

from sheet_search.services.file_parser import CellValue, SheetRows

SEARCH_DELIMITER = " "


@dataclass
class NormalizedRecord:
    sheet_name: str
    row_number: int
    data: Dict[str, str]
    search_text: str


def normalize_search_value(value: str) -> str:
    """Case-fold and collapse whitespace runs to a single space."""
    return SEARCH_DELIMITER.join(value.split()).casefold()


def build_search_text(values: Iterable[str]) -> str:
    """
    Concatenate non-empty values, in the order given, into the search string.

    No stemming or stop-word removal; applying this to its own output returns
    the output unchanged.
    """
    parts = []
    for value in values:
        normalized = normalize_search_value(value or "")
        if normalized:
            parts.append(normalized)
    return SEARCH_DELIMITER.join(parts)


def normalize_row(
    cells: Sequence[CellValue],
    field_order: Sequence[str],
    sheet_name: str,
    row_number: int,
) -> NormalizedRecord:
    """
    Normalize one parsed row onto its sheet's field order.

    Every field is present in the result; missing and empty cells become "".
    """
    data: Dict[str, str] = {}
    for idx, name in enumerate(field_order):
        cell = cells[idx] if idx < len(cells) else None
        data[name] = cell.as_text() if cell is not None else ""

    return NormalizedRecord(
        sheet_name=sheet_name,
        row_number=row_number,
        data=data,
        search_text=build_search_text(data[name] for name in field_order),
    )


def normalize_sheet(sheet: SheetRows) -> Iterator[NormalizedRecord]:
    """Yield records for every non-blank data row, numbered from 1."""
    for row_number, cells in enumerate(sheet, start=1):
        yield normalize_row(cells, sheet.header, sheet.name, row_number)


def ordered_data(data: Mapping[str, Any], field_order: Optional[List[str]]) -> Dict[str, Any]:
    """
    Reorder a stored field map by the file's field order.

    JSONB does not keep key order, so display order always comes from the
    separately stored field list; unknown keys keep their stored order at the end.
    """
    result: Dict[str, Any] = {}
    for name in field_order or []:
        if name in data:
            result[name] = data[name]
    for name, value in data.items():
        if name not in result:
            result[name] = value
    return result
