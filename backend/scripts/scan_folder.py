"""
Script to run one import pass over a folder of spreadsheets.
Uses DATABASE_URL and the other settings from the environment / .env.
"""
import argparse
import logging
import sys

from sheet_search.db.database import SessionLocal, engine, init_db, settings
from sheet_search.services.errors import FileAccessError
from sheet_search.services.ingest_scheduler import IngestScheduler


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Import spreadsheets from a folder into the search database.")
    parser.add_argument("folder", nargs="?", default=settings.excel_folder_path,
                        help="Folder to scan (default: EXCEL_FOLDER_PATH)")
    parser.add_argument("--force", action=argparse.BooleanOptionalAction, default=settings.force_reimport,
                        help="Reimport every file regardless of its content hash")
    parser.add_argument("--workers", type=int, default=settings.max_concurrent_files,
                        help="Maximum number of files processed concurrently")
    parser.add_argument("--prune", action=argparse.BooleanOptionalAction, default=settings.prune_missing_files,
                        help="Remove tracked files that no longer exist in the folder")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    args = parse_args(argv)
    init_db(engine)
    scheduler = IngestScheduler.from_settings(
        SessionLocal,
        settings.with_overrides(max_concurrent_files=max(1, args.workers)),
    )

    try:
        summary = scheduler.scan_folder(args.folder, force_reimport=args.force, prune_missing=args.prune)
    except FileAccessError as e:
        print(f"✗ {e}")
        return 2

    print("=" * 50)
    print("Import Summary:")
    print("=" * 50)
    print(f"Imported:   {summary.imported}")
    print(f"Reimported: {summary.reimported}")
    print(f"Skipped:    {summary.skipped}")
    print(f"Failed:     {summary.failed}")
    print(f"Pruned:     {summary.pruned}")
    for failure in summary.failures:
        print(f"✗ {failure['path']}: {failure['reason']}")
    print(f"Finished in {summary.duration:.2f}s")
    return 1 if summary.failed else 0


if __name__ == "__main__":
    sys.exit(main())
