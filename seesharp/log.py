"""
Logging configuration.

Console sink for the running app, plus an optional rotating file sink that
also records the worker thread (tiles may be enhanced on a pool).
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger


CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{module}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {thread.name} | {module}:{line} | {message}"


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None) -> List[int]:
    """
    Replace loguru's sinks with the pipeline's console and file sinks.

    Args:
        log_level: Console level
        log_file: Optional file path (DEBUG, rotated at 10 MB, kept 7 days)

    Returns:
        Ids of the sinks added, for remove_logging()
    """
    logger.remove()  # Remove default handler

    handler_ids = [
        logger.add(sys.stderr, level=log_level, format=CONSOLE_FORMAT, colorize=True)
    ]

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handler_ids.append(
            logger.add(
                log_file,
                level="DEBUG",
                format=FILE_FORMAT,
                rotation="10 MB",
                retention="7 days",
            )
        )
    return handler_ids


def remove_logging(handler_ids: List[int]) -> None:
    """Remove sinks added by setup_logging(), leaving any others in place."""
    for handler_id in handler_ids:
        try:
            logger.remove(handler_id)
        except ValueError:
            pass  # already removed by a later setup_logging()
