"""
Logging configuration for the liquidation bot.
"""

import asyncio
import logging
import os
import signal
import sys
import traceback
from pathlib import Path
from typing import Any, Dict

from .logfile import log_shutdown, write_to_log_file

LOGS_PATH = os.environ.get("LOGS_PATH", "logs/liquidation_bot.log")

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")


class DetailedExceptionFormatter(logging.Formatter):
    """Formatter that adds the call site and full traceback for ERROR and above."""

    def __init__(self) -> None:
        super().__init__()
        self._detailed = logging.Formatter(
            "%(asctime)s - %(levelname)s - [%(module)s:%(funcName)s:%(lineno)d] - %(message)s"
        )
        self._standard = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno >= logging.ERROR:
            return self._detailed.format(record)
        return self._standard.format(record)


def setup_logger() -> logging.Logger:
    """
    Set up and configure the liquidation bot logger.

    Returns:
        Configured logger instance with console and file handlers.
    """
    logger = logging.getLogger("liquidation_bot")

    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler()
    Path(LOGS_PATH).parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(LOGS_PATH, mode="a")

    formatter = DetailedExceptionFormatter()
    console_handler.setFormatter(formatter)
    file_handler.setFormatter(formatter)

    logger.addHandler(console_handler)
    logger.addHandler(file_handler)

    return logger


def global_exception_handler(exctype: type, value: BaseException, tb: Any) -> None:
    """
    Global exception handler to log uncaught exceptions.

    Args:
        exctype: The type of the exception.
        value: The exception instance.
        tb: A traceback object encapsulating the call stack.
    """
    logger = logging.getLogger("liquidation_bot")
    trace_str = "".join(traceback.format_exception(exctype, value, tb))
    logger.critical("Uncaught exception:\n %s", trace_str)
    write_to_log_file(f"Uncaught exception:\n{trace_str}")


def asyncio_exception_handler(loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
    """Record failures of tasks nobody awaited instead of letting them vanish."""
    logger = logging.getLogger("liquidation_bot")
    exception = context.get("exception")
    message = context.get("message", "Unhandled exception in event loop")

    if exception is not None:
        trace_str = "".join(traceback.format_exception(type(exception), exception, exception.__traceback__))
    else:
        trace_str = ""

    logger.error("Unhandled asynchronous failure: %s\n%s", message, trace_str)
    write_to_log_file(f"Unhandled asynchronous failure: {message}\n{trace_str}")


def _handle_termination(signum: int, frame: Any) -> None:
    logging.getLogger("liquidation_bot").info("Received signal %s, shutting down.", signal.Signals(signum).name)
    log_shutdown()
    sys.exit(0)


def install_signal_handlers() -> None:
    """Write a shutdown entry to the log file on SIGINT/SIGTERM. Must be called from the main thread."""
    sys.excepthook = global_exception_handler
    signal.signal(signal.SIGINT, _handle_termination)
    signal.signal(signal.SIGTERM, _handle_termination)
