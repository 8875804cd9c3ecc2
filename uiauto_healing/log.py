"""
Standard logging configuration for the package.
Provides console and optional file logging with a compact formatter.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

ROOT_LOGGER_NAME = "uiauto_healing"

# Module-level logger cache
_loggers: dict = {}
_initialized: bool = False


class HealingLogFormatter(logging.Formatter):
    """Formatter with millisecond timestamps and optional thread names."""

    def __init__(self, include_thread: bool = True):
        self.include_thread = include_thread
        super().__init__()

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        level = record.levelname.ljust(8)
        name = record.name

        if self.include_thread:
            thread = record.threadName[:12].ljust(12)
            prefix = f"[{timestamp}] [{level}] [{thread}] {name}: "
        else:
            prefix = f"[{timestamp}] [{level}] {name}: "

        message = record.getMessage()

        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)

        return prefix + message


def setup_logging(
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    log_file: Optional[Path] = None
) -> None:
    """
    Attach console (and optionally file) handlers to the package logger.

    Library code only calls get_logger(); handlers are the embedding
    application's choice, so nothing is attached until this is called.

    Args:
        console_level: Logging level for console output
        file_level: Logging level for file output
        log_file: Path to log file (no file handler if None)
    """
    global _initialized

    if _initialized:
        return

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(HealingLogFormatter(include_thread=False))
    root_logger.addHandler(console_handler)

    if log_file is not None:
        log_file = Path(log_file)
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
            file_handler.setLevel(file_level)
            file_handler.setFormatter(HealingLogFormatter(include_thread=True))
            root_logger.addHandler(file_handler)
        except OSError as e:
            root_logger.warning(f"Could not create log file: {e}")

    _initialized = True
    root_logger.debug(f"Logging initialized. Log file: {log_file}")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger under the package root
    """
    if name not in _loggers:
        if name.startswith(ROOT_LOGGER_NAME):
            _loggers[name] = logging.getLogger(name)
        else:
            _loggers[name] = logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")

    return _loggers[name]


logging.getLogger(ROOT_LOGGER_NAME).addHandler(logging.NullHandler())
