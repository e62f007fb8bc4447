#!/usr/bin/env python3
"""
Logging configuration for the wiki client.

Sets up the "wikibot" logger (and so every module logger below it) to write
to a rotating file and, optionally, the console.

Usage:
    from wikibot.logging_config import setup_logging

    logger = setup_logging(
        site_id="examplewiki",
        log_dir="/var/log",  # Optional, defaults to ./logs
        quiet=True,          # Console shows warnings and errors only
    )
    logger.info("Starting...")
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def parse_level(level: Union[int, str]) -> int:
    """Accept logging levels as numbers or names ("debug", "INFO")."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown logging level: {level!r}")
    return value


def get_log_dir(default: str = "./logs") -> Path:
    """
    Get the log directory from environment or default.

    Checks LOG_DIR environment variable first.
    """
    return Path(os.environ.get("LOG_DIR", default))


def setup_logging(
    name: str = "wikibot",
    site_id: Optional[str] = None,
    log_dir: Optional[str] = None,
    level: Union[int, str] = logging.INFO,
    max_bytes: int = 10 * 1024 * 1024,  # 10 MB
    backup_count: int = 5,
    console: bool = True,
    quiet: bool = False,
) -> logging.Logger:
    """
    Set up logging to a rotating file and the console.

    Args:
        name: Logger name (used in log filename)
        site_id: Wiki identifier for log filename (e.g., "examplewiki")
        log_dir: Directory for log files (default: LOG_DIR env var or ./logs)
        level: Logging level for the file (and console unless quiet)
        max_bytes: Max log file size before rotation
        backup_count: Number of rotated log files to keep
        console: Whether to also log to stdout
        quiet: Only show warnings and errors on the console

    Returns:
        Configured logger instance

    Log files are named: {site_id}-{name}.log (e.g., examplewiki-wikibot.log)
    """
    level = parse_level(level)
    log_path = Path(log_dir) if log_dir is not None else get_log_dir()
    log_path.mkdir(parents=True, exist_ok=True)
    log_file = log_path / (f"{site_id}-{name}.log" if site_id else f"{name}.log")

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Re-initialization replaces the previous handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(max(level, logging.WARNING) if quiet else level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    logger.info(f"Logging initialized: {log_file}")
    return logger
