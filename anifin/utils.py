"""
Utility functions for the AniFin downloader
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Union

from .constants import LOG_BACKUP_COUNT, LOG_MAX_BYTES


def get_log_dir() -> Path:
    """Return the log directory from ANIFIN_LOG_DIR or ``<project>/logs``."""
    override = os.environ.get("ANIFIN_LOG_DIR")
    if override:
        return Path(override)
    return Path(__file__).parent.parent / "logs"


def setup_logger(name: str, log_file: str, level=None, debug: bool = False) -> logging.Logger:
    """
    Setup a logger with file and console output

    Args:
        name: Logger name
        log_file: Log file name (created under the log directory)
        level: Logging level (overrides debug flag if provided)
        debug: If True, set level to DEBUG

    Returns:
        Configured logger
    """
    if level is None:
        level = logging.DEBUG if debug else logging.INFO

    log_path = get_log_dir() / log_file
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Prevent duplicate handlers
    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUP_COUNT,
    )
    file_handler.setLevel(level)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)

    # Formatter: include function name in debug mode
    if debug:
        fmt = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
    else:
        fmt = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    formatter = logging.Formatter(fmt, datefmt="%Y-%m-%d %H:%M:%S")
    file_handler.setFormatter(formatter)
    console_handler.setFormatter(formatter)

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    return logger


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename by removing invalid characters

    Args:
        filename: Original filename

    Returns:
        Sanitized filename
    """
    invalid_chars = '<>:"/\\|?*'
    for char in invalid_chars:
        filename = filename.replace(char, "_")

    # Remove leading/trailing spaces and dots
    return filename.strip(". ")


def ensure_directory(path: Union[str, Path]) -> Path:
    """
    Ensure directory exists, create if it doesn't

    Args:
        path: Directory path

    Returns:
        Path object
    """
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


def to_posix(path: str) -> str:
    """Convert Windows separators to forward slashes for remote paths."""
    return path.replace("\\", "/")
