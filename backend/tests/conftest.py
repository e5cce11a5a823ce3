"""
Shared fixtures: a file-backed SQLite database per test, a workbook factory
and a scheduler wired to that database.
"""
import io
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest
from openpyxl import Workbook

from sheet_search.db.database import init_db, make_engine, make_session_factory
from sheet_search.services.ingest_scheduler import IngestScheduler

EMP_ROWS = [
    ["Name", "Age"],
    ["Zhang San", "30"],
    ["Li Si", "25"],
]


def workbook_bytes(sheets: Dict[str, List[Sequence]]) -> bytes:
    """Serialize {sheet name: rows} to xlsx bytes; sheet order is kept."""
    wb = Workbook()
    wb.remove(wb.active)
    for title, rows in sheets.items():
        ws = wb.create_sheet(title)
        for row in rows:
            ws.append(list(row))
            for cell in ws[ws.max_row]:
                if isinstance(cell.value, str) and cell.value.startswith("="):
                    cell.data_type = "s"
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def db_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'test.sqlite'}"


@pytest.fixture
def engine(db_url):
    engine = make_engine(db_url)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def excel_dir(tmp_path) -> Path:
    folder = tmp_path / "excel"
    folder.mkdir()
    return folder


@pytest.fixture
def make_workbook(excel_dir):
    """Write a workbook under excel_dir and return its resolved path as a string."""

    def _make(name: str, rows: Optional[List[Sequence]] = None, sheets: Optional[Dict[str, List[Sequence]]] = None) -> str:
        path = excel_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(workbook_bytes(sheets if sheets is not None else {"Sheet1": rows or []}))
        return str(path.resolve())

    return _make


@pytest.fixture
def scheduler(session_factory):
    return IngestScheduler(
        session_factory,
        max_workers=2,
        max_retries=2,
        retry_backoff=0,
        scan_config={},
    )


@pytest.fixture
def xlsx_bytes():
    return workbook_bytes


@pytest.fixture
def emp_rows():
    return [list(row) for row in EMP_ROWS]
