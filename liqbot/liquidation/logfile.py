"""
Durable, size-rotated log of liquidation activity.

Kept separate from the leveled `liquidation_bot` logger so the record of
attempts and receipts survives restarts and console noise.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List

LOG_FILE_DIR = os.environ.get("LOG_FILE_DIR", "logs")
MAX_LOG_SIZE = 10 * 1024 * 1024  # 10 MB
MAX_LOG_FILES = 10

_LOGGER_NAME = "liqbot.logfile"


def get_log_file_path(logs_dir: str = LOG_FILE_DIR) -> Path:
    return Path(logs_dir) / "output.log"


def _rotating_handlers(logger: logging.Logger) -> List[RotatingFileHandler]:
    return [handler for handler in logger.handlers if isinstance(handler, RotatingFileHandler)]


def setup_log_file(
    logs_dir: str = LOG_FILE_DIR, max_bytes: int = MAX_LOG_SIZE, max_files: int = MAX_LOG_FILES
) -> logging.Logger:
    """
    Attach a rotating file handler to the durable log.

    The current file is rolled over once it would grow past `max_bytes`; at most
    `max_files` files (the current one included) are retained and the oldest is
    deleted first. Calling again with a different directory replaces the rotating
    handler; other handlers on the logger are left alone.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    log_file_path = get_log_file_path(logs_dir)

    for handler in _rotating_handlers(logger):
        if handler.baseFilename == os.path.abspath(log_file_path):
            return logger
        logger.removeHandler(handler)
        handler.close()

    log_file_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        str(log_file_path), maxBytes=max_bytes, backupCount=max(max_files - 1, 1), encoding="utf-8"
    )
    handler.setFormatter(logging.Formatter("[%(asctime)s] - %(message)s"))

    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    return logger


def write_to_log_file(message: str) -> None:
    logger = logging.getLogger(_LOGGER_NAME)
    if not _rotating_handlers(logger):
        setup_log_file()
    logger.info(message)


def log_startup() -> None:
    write_to_log_file("Liqbot was started!")


def log_shutdown() -> None:
    write_to_log_file("Liqbot was terminated!")
