"""
Logging setup
=============
One stream handler on the root logger; level comes from LOG_LEVEL.
ContextLogger renders its bound fields in front of each message, e.g.

    2026-10-15 09:00:00 | INFO     | cost_insight.services.cost_collector | [source=aws] Collected ...
"""
from __future__ import annotations

import logging
import sys
from typing import Any, Optional, TextIO

from cost_insight.core.config import get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are too chatty at INFO
_QUIET = ("uvicorn.access", "botocore", "boto3", "urllib3", "httpx", "httpcore")


def configure_logging(stream: Optional[TextIO] = None, level: Optional[str] = None) -> None:
    """Replace root handlers with a single stream handler (stdout unless given)."""
    log_level = getattr(logging, (level or get_settings().log_level).upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(handler)

    for name in _QUIET:
        logging.getLogger(name).setLevel(logging.WARNING)


class ContextLogger:
    """Logger bound to a few key=value fields, shown as a prefix on every message."""

    def __init__(self, name: str, **context: Any) -> None:
        self._logger = logging.getLogger(name)
        self._context = context
        self._prefix = "[" + " ".join(f"{k}={v}" for k, v in context.items()) + "] " if context else ""

    def bind(self, **context: Any) -> "ContextLogger":
        return ContextLogger(self._logger.name, **{**self._context, **context})

    def _log(self, level: int, message: str) -> None:
        if self._logger.isEnabledFor(level):
            self._logger.log(level, self._prefix + message)

    def debug(self, message: str) -> None:
        self._log(logging.DEBUG, message)

    def info(self, message: str) -> None:
        self._log(logging.INFO, message)

    def warning(self, message: str) -> None:
        self._log(logging.WARNING, message)

    def error(self, message: str) -> None:
        self._log(logging.ERROR, message)
