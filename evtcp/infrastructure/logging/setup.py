"""
Logging setup and configuration utilities.

This module configures loguru sinks for console and rotating file output.
"""

import sys
from pathlib import Path
from typing import List

from loguru import logger

from ..config.models import LoggingConfig

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
    "{name}:{function}:{line} - {message}"
)


def setup_logging(config: LoggingConfig) -> List[int]:
    """
    Setup logging with the given configuration.

    Args:
        config: Logging configuration

    Returns:
        Ids of the sinks that were added
    """
    level = config.level.upper()
    logger.remove()
    sink_ids: List[int] = []

    if config.console_enabled:
        sink_ids.append(logger.add(
            sys.stderr,
            format=CONSOLE_FORMAT,
            level=level,
            colorize=True,
            backtrace=True,
            diagnose=False
        ))

    if config.file_enabled:
        log_dir = Path(config.log_directory)
        log_dir.mkdir(parents=True, exist_ok=True)
        sink_ids.append(logger.add(
            log_dir / config.log_file,
            format=FILE_FORMAT,
            level=level,
            rotation=config.max_file_size,
            retention=config.backup_count,
            compression="zip",
            backtrace=True,
            diagnose=False
        ))

    logger.debug(f"Logging configured: level={level} sinks={len(sink_ids)}")
    return sink_ids
