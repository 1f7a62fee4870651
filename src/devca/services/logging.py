"""Logging setup for the command line; library modules only create loggers."""

from __future__ import annotations

import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

__all__ = ["setup_logging", "JsonFormatter", "level_for"]

ROOT_LOGGER = "devca"


def _json_payload(record: logging.LogRecord) -> str:
    base = {
        "time": logging.Formatter().formatTime(record),
        "level": record.levelname,
        "logger": record.name,
        "msg": record.getMessage(),
    }
    if record.exc_info:
        base["exc"] = logging.Formatter().formatException(record.exc_info)
    return json.dumps(base, ensure_ascii=False)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # pragma: no cover - trivial wrapper
        return _json_payload(record)


def level_for(verbosity: int, base: str = "WARNING") -> int:
    """Each verbosity step moves one level (10) away from ``base``."""

    start = logging.getLevelName(base.upper())
    if not isinstance(start, int):
        start = logging.WARNING
    return max(logging.DEBUG, min(logging.CRITICAL, start - 10 * verbosity))


def setup_logging(
    verbosity: int = 0,
    *,
    base_level: str = "WARNING",
    log_file: Optional[Path] = None,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
) -> logging.Logger:
    logger = logging.getLogger(ROOT_LOGGER)
    level = level_for(verbosity, base_level)
    logger.setLevel(level)
    logger.handlers.clear()
    logger.propagate = False

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    logger.addHandler(console)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
        handler.setLevel(level)
        handler.setFormatter(JsonFormatter())
        logger.addHandler(handler)

    return logger
