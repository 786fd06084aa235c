"""Logging setup shared by every TriageDesk module."""

from __future__ import annotations

import logging
import sys

from triagedesk.config import settings

_ROOT = "triagedesk"
_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"


def setup_logging(level: str | None = None) -> None:
    """Attach a single stream handler to the package logger.

    Safe to call more than once (the app lifespan and the test suite both do).
    """
    logger = logging.getLogger(_ROOT)
    logger.setLevel((level or settings.LOG_LEVEL).upper())
    if not any(getattr(h, "_triagedesk", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._triagedesk = True  # type: ignore[attr-defined]
        logger.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{_ROOT}.{name}")
