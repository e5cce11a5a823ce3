"""
Ingest scheduler - imports a set of spreadsheet files with bounded concurrency.

Each file runs hash -> detect -> parse -> normalize -> persist sequentially on
one worker. Workers only coordinate through a per-path lock and the database
connection pool; a failing file is recorded and never stops the others.
"""
import enum
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from sqlalchemy.orm import Session, sessionmaker

from sheet_search.config.scan_config import get_skipped_sheets, load_scan_config
from sheet_search.services.change_detector import ImportAction, decide
from sheet_search.services.discovery import discover_spreadsheets
from sheet_search.services.errors import IngestError
from sheet_search.services.file_parser import parse_workbook
from sheet_search.services.hashing import compute_digest, read_file_bytes
from sheet_search.services.normalizer import NormalizedRecord, normalize_sheet
from sheet_search.services.store import (
    FileMetadata,
    delete_file,
    find_missing_files,
    get_file,
    get_file_by_path,
    replace_records,
    run_in_transaction,
    upsert_file,
)

logger = logging.getLogger(__name__)


class FileOutcome(str, enum.Enum):
    IMPORTED = "imported"
    SKIPPED = "skipped"
    REIMPORTED = "reimported"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class FileResult:
    path: str
    outcome: FileOutcome
    records: int = 0
    sheets: int = 0
    reason: Optional[str] = None


@dataclass
class IngestSummary:
    imported: int = 0
    skipped: int = 0
    reimported: int = 0
    failed: int = 0
    cancelled: int = 0
    pruned: int = 0
    failures: List[Dict[str, str]] = field(default_factory=list)
    duration: float = 0.0

    @property
    def total(self) -> int:
        return self.imported + self.skipped + self.reimported + self.failed + self.cancelled

    def add(self, result: FileResult) -> None:
        if result.outcome is FileOutcome.IMPORTED:
            self.imported += 1
        elif result.outcome is FileOutcome.SKIPPED:
            self.skipped += 1
        elif result.outcome is FileOutcome.REIMPORTED:
            self.reimported += 1
        elif result.outcome is FileOutcome.CANCELLED:
            self.cancelled += 1
        else:
            self.failed += 1
            self.failures.append({"path": result.path, "reason": result.reason or "unknown error"})

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["total"] = self.total
        return data


@dataclass
class _PathLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


def _stored_hash(db: Session, path: str) -> Optional[str]:
    file = get_file_by_path(db, path)
    return file.hash if file else None


class IngestScheduler:
    """
    Bounded worker pool over candidate file paths.

    One instance should be shared by every caller that can start a pass, so
    its per-path locks keep two passes from importing the same file at once.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        max_workers: int = 4,
        max_retries: int = 3,
        retry_backoff: float = 0.5,
        scan_config: Optional[Dict[str, Any]] = None,
        on_commit: Optional[Callable[[], None]] = None,
    ):
        self.session_factory = session_factory
        self.max_workers = max(1, max_workers)
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self.scan_config = scan_config if scan_config is not None else load_scan_config()
        self.on_commit = on_commit
        self._path_locks: Dict[str, _PathLock] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_settings(cls, session_factory: sessionmaker, settings, on_commit=None) -> "IngestScheduler":
        return cls(
            session_factory,
            max_workers=settings.max_concurrent_files,
            max_retries=settings.db_max_retries,
            retry_backoff=settings.db_retry_backoff,
            scan_config=load_scan_config(settings.scan_config_path),
            on_commit=on_commit,
        )

    @contextmanager
    def _locked_path(self, path: str) -> Iterator[None]:
        """Hold the exclusion lock for path; the entry is dropped once nobody holds or waits on it."""
        with self._locks_guard:
            entry = self._path_locks.get(path)
            if entry is None:
                entry = self._path_locks[path] = _PathLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._path_locks[path]

    def _notify_commit(self) -> None:
        if self.on_commit is not None:
            self.on_commit()

    def process_file(self, path: str, force_reimport: bool = False) -> FileResult:
        """Run the full pipeline for one path while holding its exclusion lock."""
        with self._locked_path(path):
            return self._run_pipeline(path, force_reimport)

    def _run_pipeline(self, path: str, force_reimport: bool) -> FileResult:
        timings: Dict[str, float] = {}
        total_start = time.perf_counter()

        read_start = time.perf_counter()
        data = read_file_bytes(path)
        digest = compute_digest(data)
        timings["read_hash"] = round(time.perf_counter() - read_start, 3)

        stored_hash = run_in_transaction(
            self.session_factory,
            lambda db: _stored_hash(db, path),
            max_retries=self.max_retries,
            backoff=self.retry_backoff,
            label=path,
        )
        action = decide(stored_hash, digest, force_reimport)
        if action is ImportAction.SKIP:
            logger.info("Skipping unchanged file %s", path)
            return FileResult(path=path, outcome=FileOutcome.SKIPPED)

        name = Path(path).name
        parse_start = time.perf_counter()
        parsed = parse_workbook(data, source=path, skip_sheets=get_skipped_sheets(name, self.scan_config))
        records: List[NormalizedRecord] = [
            record for sheet in parsed.sheets for record in normalize_sheet(sheet)
        ]
        timings["parse_normalize"] = round(time.perf_counter() - parse_start, 3)

        metadata = FileMetadata(path=path, name=name, size=len(data), hash=digest)

        def write_generation(db: Session) -> int:
            file_id = upsert_file(db, metadata, parsed.field_order)
            return replace_records(db, file_id, records)

        persist_start = time.perf_counter()
        inserted = run_in_transaction(
            self.session_factory,
            write_generation,
            max_retries=self.max_retries,
            backoff=self.retry_backoff,
            label=path,
        )
        timings["persist"] = round(time.perf_counter() - persist_start, 3)
        timings["total"] = round(time.perf_counter() - total_start, 3)
        self._notify_commit()

        outcome = FileOutcome.IMPORTED if action is ImportAction.IMPORT else FileOutcome.REIMPORTED
        logger.info(
            "%s file %s (%d sheet(s), %d rows) timings=%s",
            outcome.value.capitalize(),
            path,
            len(parsed.sheets),
            inserted,
            timings,
        )
        return FileResult(path=path, outcome=outcome, records=inserted, sheets=len(parsed.sheets))

    def _process_safely(
        self,
        path: str,
        force_reimport: bool,
        cancel_event: Optional[threading.Event],
    ) -> FileResult:
        if cancel_event is not None and cancel_event.is_set():
            return FileResult(path=path, outcome=FileOutcome.CANCELLED)
        try:
            return self.process_file(path, force_reimport)
        except IngestError as e:
            logger.error("Failed to import %s: %s", path, e)
            return FileResult(path=path, outcome=FileOutcome.FAILED, reason=str(e))
        except Exception as e:
            logger.exception("Unexpected error importing %s", path)
            return FileResult(path=path, outcome=FileOutcome.FAILED, reason=f"{type(e).__name__}: {e}")

    def run(
        self,
        paths: Iterable[str],
        force_reimport: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> IngestSummary:
        """
        Process paths on the worker pool and return the aggregated summary.

        At most twice the worker count is queued at a time. Once cancel_event
        is set, files not yet started are reported as cancelled; files already
        running finish (commit or roll back) normally.
        """
        unique_paths = list(dict.fromkeys(paths))
        summary = IngestSummary()
        start = time.perf_counter()

        slots = threading.BoundedSemaphore(self.max_workers * 2)
        futures = []
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="ingest") as executor:
            for path in unique_paths:
                slots.acquire()
                if cancel_event is not None and cancel_event.is_set():
                    slots.release()
                    summary.add(FileResult(path=path, outcome=FileOutcome.CANCELLED))
                    continue
                future = executor.submit(self._process_safely, path, force_reimport, cancel_event)
                future.add_done_callback(lambda _future: slots.release())
                futures.append(future)

            for future in as_completed(futures):
                summary.add(future.result())

        summary.duration = round(time.perf_counter() - start, 3)
        return summary

    def remove_file(self, file_id: int) -> Optional[str]:
        """Delete a tracked file under its path lock; returns its path, or None if unknown."""
        path = run_in_transaction(
            self.session_factory,
            lambda db: getattr(get_file(db, file_id), "path", None),
            max_retries=self.max_retries,
            backoff=self.retry_backoff,
            label=f"file {file_id}",
        )
        if path is None:
            return None

        with self._locked_path(path):
            removed = run_in_transaction(
                self.session_factory,
                lambda db: delete_file(db, file_id),
                max_retries=self.max_retries,
                backoff=self.retry_backoff,
                label=path,
            )
        if not removed:
            return None
        self._notify_commit()
        return path

    def prune_missing(self, folder: str, present_paths: Iterable[str]) -> List[str]:
        """Delete tracked files under folder that the latest scan no longer found."""
        root = str(Path(folder).resolve())
        present = list(present_paths)

        def prune(db: Session) -> List[str]:
            removed = []
            for file in find_missing_files(db, root, present):
                delete_file(db, file.id)
                removed.append(file.path)
            return removed

        removed = run_in_transaction(
            self.session_factory,
            prune,
            max_retries=self.max_retries,
            backoff=self.retry_backoff,
            label=root,
        )
        if removed:
            self._notify_commit()
            logger.info("Removed %d file(s) no longer present under %s", len(removed), root)
        return removed

    def scan_folder(
        self,
        folder: str,
        force_reimport: bool = False,
        cancel_event: Optional[threading.Event] = None,
        prune_missing: bool = False,
    ) -> IngestSummary:
        """Discover spreadsheets under folder and import them in one pass."""
        logger.info("Scanning %s (force_reimport=%s)", folder, force_reimport)
        paths = discover_spreadsheets(folder, self.scan_config)
        summary = self.run(paths, force_reimport=force_reimport, cancel_event=cancel_event)

        if prune_missing and not (cancel_event is not None and cancel_event.is_set()):
            summary.pruned = len(self.prune_missing(folder, paths))

        logger.info(
            "Scan of %s finished - imported: %d, reimported: %d, skipped: %d, failed: %d, "
            "cancelled: %d, pruned: %d in %.2fs",
            folder,
            summary.imported,
            summary.reimported,
            summary.skipped,
            summary.failed,
            summary.cancelled,
            summary.pruned,
            summary.duration,
        )
        return summary
