"""Logging configuration for SpeechCast."""

import logging
import sys
from logging.handlers import RotatingFileHandler

from speechcast.core.constants import LOGS_DIR


def setup_logging(
    level: str = "INFO",
    log_file: str = "speechcast.log",
    max_bytes: int = 1_048_576,
    backup_count: int = 3,
) -> logging.Logger:
    """Configure logging with console and file handlers."""
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    log_path = LOGS_DIR / log_file

    root_logger = logging.getLogger("speechcast")
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers.clear()

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)-7s] %(threadName)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Console goes to stderr so event output on stdout stays clean
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    root_logger.addHandler(console)

    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    return root_logger
