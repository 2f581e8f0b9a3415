"""Command line entry point: process flagged spreadsheet rows once or on an interval."""

import argparse
import sys
import time
from typing import Any, Optional

from reelbatch.core.config import Settings, settings
from reelbatch.core.exceptions import CacheIOError, RowSourceError
from reelbatch.core.logging_config import get_logger, setup_logging
from reelbatch.models.schemas import BatchOptions, BatchResult
from reelbatch.services.batch_runner import BatchRunner, build_batch_runner


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Sheet Video Batch - render flagged spreadsheet rows into videos",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--spreadsheet-id",
        type=str,
        default=None,
        help="Spreadsheet to read rows from (default: SPREADSHEET_ID)",
    )
    parser.add_argument(
        "--sheet-name",
        type=str,
        default=None,
        help="Sheet (tab) name (default: SHEET_NAME, or the first sheet)",
    )
    parser.add_argument(
        "--range",
        dest="sheet_range",
        type=str,
        default=None,
        help="Column range read through the Sheets API (default: A:L)",
    )
    parser.add_argument(
        "--drive-folder-id",
        type=str,
        default=None,
        help="Drive folder receiving uploads (default: DRIVE_FOLDER_ID)",
    )
    parser.add_argument(
        "--watch",
        action="store_true",
        help="Keep running and process new rows every --interval-minutes",
    )
    parser.add_argument(
        "--interval-minutes",
        type=int,
        default=None,
        help="Watch interval in minutes (default: SCHEDULE_INTERVAL_MINUTES)",
    )
    parser.add_argument(
        "--cleanup-expired-cache",
        action="store_true",
        help="Remove expired cache entries before processing",
    )
    return parser


def run_once(runner: BatchRunner, options: BatchOptions, logger: Any) -> Optional[BatchResult]:
    """
    Run one batch, logging instead of raising for unreadable rows.

    CacheIOError still propagates.
    """
    try:
        return runner.run_once(options)
    except RowSourceError as e:
        logger.error(f"Could not read rows: {e}")
        return None


def watch(runner: BatchRunner, options: BatchOptions, interval_minutes: int, logger: Any) -> None:
    """Run batches forever, sleeping ``interval_minutes`` between them."""
    logger.info(f"Watch mode: checking for flagged rows every {interval_minutes} minutes")
    while True:
        run_once(runner, options, logger)
        logger.info(f"Next check in {interval_minutes} minutes")
        time.sleep(interval_minutes * 60)


def main(argv: Optional[list[str]] = None, app_settings: Optional[Settings] = None) -> int:
    """Main entrypoint for the batch CLI."""
    args = build_parser().parse_args(argv)
    app_settings = app_settings or settings

    if args.interval_minutes is not None and args.interval_minutes < 1:
        build_parser().error("--interval-minutes must be at least 1")

    setup_logging(log_level=app_settings.log_level, log_file=app_settings.log_file)
    logger = get_logger(__name__, spreadsheet_id=args.spreadsheet_id or app_settings.spreadsheet_id)

    logger.info("=" * 60)
    logger.info(f"{app_settings.app_name} v{app_settings.app_version}")
    logger.info(f"Row source: {app_settings.row_source_mode}, publisher: {app_settings.publisher_mode}")
    logger.info("=" * 60)

    try:
        app_settings.ensure_directories()
        runner = build_batch_runner(app_settings, logger)

        if args.cleanup_expired_cache:
            removed = runner.cache.cleanup_expired()
            logger.info(f"Expired cache entries removed: {removed}")

        options = BatchOptions(
            source_id=args.spreadsheet_id,
            sheet_name=args.sheet_name,
            sheet_range=args.sheet_range,
            drive_folder_id=args.drive_folder_id,
        )

        if args.watch:
            watch(runner, options, args.interval_minutes or app_settings.schedule_interval_minutes, logger)
            return 0

        result = run_once(runner, options, logger)
        if result is None:
            return 1
        return 0 if result.failed == 0 else 2

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 1
    except CacheIOError as e:
        logger.error(f"Asset cache failure, aborting: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Batch failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
