"""Logging setup shared by every module (``logger = setup_logger(__name__)``)."""

import logging
import os
import sys
from enum import Enum
from typing import Optional


# Attributes present on every LogRecord; anything else came in through ``extra``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime", "taskName"}

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class RUNTIME(str, Enum):
    STARTUP = "startup"
    SHUTDOWN = "shutdown"
    HEALTH = "health"

    def __str__(self) -> str:
        return self.value


class ExtraFormatter(logging.Formatter):
    """Appends the ``extra={...}`` fields of a record as ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        extras = {
            key: value
            for key, value in vars(record).items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        }
        if not extras:
            return message
        detail = ", ".join(f"{key}={value}" for key, value in extras.items())
        return f"{message} | {detail}"


def _resolve_level(level: Optional[str]) -> int:
    name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    return getattr(logging, name, logging.INFO)


def setup_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Get a module logger with the package handler attached.

    The handler lives on the ``hiring_scraper`` root logger so it is installed
    once; module loggers propagate to it.
    """
    root = logging.getLogger("hiring_scraper")
    if not any(getattr(h, "_hiring_scraper", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(ExtraFormatter(LOG_FORMAT))
        handler._hiring_scraper = True
        root.addHandler(handler)
        root.setLevel(_resolve_level(level))

    logger = logging.getLogger(name)
    if level:
        logger.setLevel(_resolve_level(level))
    return logger
