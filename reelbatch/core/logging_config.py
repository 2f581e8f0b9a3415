"""Logging configuration (loguru) with spreadsheet and row context."""

import sys
from pathlib import Path
from typing import Any, Optional, Union

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan>{row} | <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message} | {extra}"


def _console_format(record: dict) -> str:
    """Console format; rows bound with ``row_index`` get a ``[row N]`` tag."""
    row_index = record["extra"].get("row_index")
    row = f" <magenta>[row {row_index}]</magenta>" if row_index is not None else ""
    return CONSOLE_FORMAT.replace("{row}", row) + "\n{exception}"


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[Union[str, Path]] = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> None:
    """
    Replace loguru's handlers with a console sink and an optional file sink.

    Safe to call more than once (the CLI and the API both call it).

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional log file path; rotated and zipped
        rotation: Log rotation size
        retention: Log retention period
    """
    logger.remove()

    logger.add(sys.stderr, format=_console_format, level=log_level, colorize=True)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        # {extra} keeps spreadsheet_id and row_index in the file output
        logger.add(
            log_path,
            format=FILE_FORMAT,
            level=log_level,
            rotation=rotation,
            retention=retention,
            compression="zip",
        )


def get_logger(name: str, **context: Any) -> Any:
    """
    Return the loguru logger bound to ``name`` and any context fields.

    Context values that are None are dropped, so callers can pass optional
    ids (``spreadsheet_id=settings.spreadsheet_id``) unconditionally.
    """
    bound = {key: value for key, value in context.items() if value is not None}
    return logger.bind(name=name, **bound)


setup_logging()
