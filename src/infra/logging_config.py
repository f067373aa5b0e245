"""
Logging configuration module.

One console handler and one daily-rotating file handler are shared by the
``fixture_sync`` application logger and the ``src`` package logger, so every
``logging.getLogger(__name__)`` in the package ends up in the same file:

    logs/fixture_sync_YYYYMMDD_<START_HHMMSS>.log
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

APP_LOGGER_NAME = "fixture_sync"
LOGGER_NAMES = (APP_LOGGER_NAME, "src")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Fixed for the life of the process; only the date part of the file name rolls
_PROCESS_START_TIME: Optional[str] = None


def _today() -> str:
    return datetime.now().strftime("%Y%m%d")


def _process_start() -> str:
    global _PROCESS_START_TIME
    if _PROCESS_START_TIME is None:
        _PROCESS_START_TIME = datetime.now().strftime("%H%M%S")
    return _PROCESS_START_TIME


def log_file_name(day: str, start_hhmmss: str) -> str:
    return f"{APP_LOGGER_NAME}_{day}_{start_hhmmss}.log"


class DailyRotatingFileHandler(logging.FileHandler):
    """
    File handler that switches to a new file when the calendar day changes.

    The first record emitted on a new day closes the old stream and opens
    ``fixture_sync_<new day>_<process start>.log`` in the same directory.
    """

    def __init__(self, log_dir: str = "logs", encoding: str = "utf-8"):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self._start_hhmmss = _process_start()
        self._current_date = _today()

        super().__init__(self._path_for(self._current_date), mode="a", encoding=encoding)

    def _path_for(self, day: str) -> str:
        return str(self.log_dir / log_file_name(day, self._start_hhmmss))

    def emit(self, record: logging.LogRecord) -> None:
        day = _today()
        if day != self._current_date:
            self.close()
            self.baseFilename = self._path_for(day)
            self._current_date = day
            self.stream = self._open()

        super().emit(record)


def _configure_logger(name: str, level: int, handlers: Iterable[logging.Handler]) -> logging.Logger:
    """Replace a logger's handlers; it stops propagating to the root logger."""
    configured = logging.getLogger(name)
    configured.setLevel(level)
    configured.propagate = False

    for old in list(configured.handlers):
        configured.removeHandler(old)
        old.close()
    for handler in handlers:
        configured.addHandler(handler)
    return configured


def setup_logging(log_level: str = "INFO", log_dir: str = "logs") -> logging.Logger:
    """
    Configure logging and return the application logger.

    Calling it again replaces the handlers instead of stacking new ones.

    Args:
        log_level: Logging level name; unknown names fall back to INFO
        log_dir: Directory for log files (created if missing)

    Returns:
        logging.Logger: The ``fixture_sync`` logger
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)

    handlers = [logging.StreamHandler(), DailyRotatingFileHandler(log_dir=log_dir)]
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    for name in LOGGER_NAMES:
        _configure_logger(name, level, handlers)

    logger = logging.getLogger(APP_LOGGER_NAME)
    logger.info(
        f"Logging started - level: {logging.getLevelName(level)}, "
        f"log file: {handlers[1].baseFilename}"
    )
    return logger
