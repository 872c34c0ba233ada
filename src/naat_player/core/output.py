"""
Unified output system using Loguru.
User-facing messages go to stdout and the log file; everything else only to the log.
"""

import sys
from pathlib import Path

from loguru import logger

from .config import Config, get_data_dir

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} | {message}"


def get_log_file_path(config: Config) -> Path:
    """Get the path to the log file."""
    if config.logging.log_file:
        return Path(config.logging.log_file).expanduser()
    return get_data_dir(config) / "naat-player.log"


def setup_loguru(config: Config) -> Path:
    """
    Configure loguru: rotating file sink, plus stderr when console_output is set.

    Args:
        config: Loaded configuration

    Returns:
        Path of the log file
    """
    log_file = get_log_file_path(config)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    level = config.logging.level.upper()

    # Remove default handler
    logger.remove()

    logger.add(
        log_file,
        rotation=f"{config.logging.max_file_size_mb} MB",
        retention=config.logging.backup_count,
        level=level,
        format=LOG_FORMAT,
        encoding="utf-8",
        enqueue=False,
    )

    if config.logging.console_output:
        logger.add(sys.stderr, level=level, format="{level}: {message}")

    logger.info(f"Loguru initialized: {log_file} (level={level})")
    return log_file


def log(message: str, level: str = "info") -> None:
    """
    Write a user-facing message to the log file and the terminal.

    Errors and warnings go to stderr, everything else to stdout.

    Args:
        message: User-facing message
        level: Log level (debug, info, warning, error)
    """
    getattr(logger, level)(message)
    stream = sys.stderr if level in ("warning", "error") else sys.stdout
    print(message, file=stream)
