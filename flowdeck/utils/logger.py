# flowdeck/utils/logger.py
from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Iterator, List


LOGGER_NAME = "flowdeck"

_COLORS = {
    logging.ERROR: "\033[91m",    # red
    logging.WARNING: "\033[93m",  # yellow
    logging.INFO: "\033[92m",     # green
}


def _env_level(default: str = "INFO") -> int:
    """Read LOG_LEVEL from env, fallback to default."""
    lvl = logging.getLevelName(os.getenv("LOG_LEVEL", default).upper())
    return lvl if isinstance(lvl, int) else logging.INFO


class _ColorFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        msg = super().format(record)
        if not sys.stdout.isatty():
            return msg
        for level, color in _COLORS.items():
            if record.levelno >= level:
                return f"{color}{msg}\033[0m"
        return msg


class _ListHandler(logging.Handler):
    def __init__(self, sink: List[str], level: int):
        super().__init__(level)
        self.sink = sink

    def emit(self, record: logging.LogRecord) -> None:
        self.sink.append(record.getMessage())


def init_logger(
    name: str = LOGGER_NAME,
    level: int | None = None,
    log_dir: str | Path | None = None,
    file_name: str = "flowdeck.log",
    file_max_mb: int = 5,
    file_backup: int = 3,
) -> logging.Logger:
    """
    Initialize the project logger:
      - colored stream handler to stdout
      - rotating file handler when log_dir (or FLOWDECK_LOG_DIR) is set,
        useful to keep deployment and agent history across runs
    """
    logger = logging.getLogger(name)
    logger.handlers.clear()
    logger.propagate = False
    logger.setLevel(level if level is not None else _env_level("INFO"))

    fmt = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d - %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"

    sh = logging.StreamHandler(sys.stdout)
    sh.setLevel(logger.level)
    sh.setFormatter(_ColorFormatter(fmt=fmt, datefmt=datefmt))
    logger.addHandler(sh)

    log_dir = log_dir or os.getenv("FLOWDECK_LOG_DIR")
    if log_dir:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = RotatingFileHandler(
            filename=str(log_dir / file_name),
            maxBytes=file_max_mb * 1024 * 1024,
            backupCount=file_backup,
            encoding="utf-8",
        )
        fh.setLevel(logger.level)
        fh.setFormatter(logging.Formatter(fmt=fmt, datefmt=datefmt))
        logger.addHandler(fh)

    return logger


# Convenience default logger
log = init_logger()


def get_logger(child: str) -> logging.Logger:
    """Create/get a child logger under the root project logger."""
    return logging.getLogger(LOGGER_NAME).getChild(child)


@contextmanager
def capture_messages(logger: logging.Logger, level: int = logging.INFO) -> Iterator[List[str]]:
    """
    Collect the plain messages `logger` emits at `level` or above while the
    block runs, regardless of the configured LOG_LEVEL. Console and file
    handlers keep their own thresholds.
    """
    messages: List[str] = []
    handler = _ListHandler(messages, level)
    previous = logger.level
    if logger.getEffectiveLevel() > level:
        logger.setLevel(level)
    logger.addHandler(handler)
    try:
        yield messages
    finally:
        logger.removeHandler(handler)
        logger.setLevel(previous)
