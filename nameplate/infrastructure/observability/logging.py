"""Logging utilities for the nameplate pipeline.

Centralised logging configuration plus a context helper so that every line
emitted while processing an image carries the image id and method.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator

_log_context: ContextVar[dict[str, Any]] = ContextVar(
    "log_context", default={})

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ContextualFormatter(logging.Formatter):
    """Formatter that appends context fields to log messages."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        ctx = _log_context.get()
        if ctx:
            ctx_str = " ".join(f"{k}={v}" for k, v in ctx.items())
            message = f"{message} [{ctx_str}]"
        return message


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Temporarily add context fields to all log messages.

    Usage::

        with log_context(image_id="abc", method="hybrid"):
            logger.info("Starting extraction")

    Fields are merged with any existing context and restored on exit. The
    context is a ContextVar, so concurrent asyncio tasks keep their own.
    """
    merged = {**_log_context.get(), **fields}
    token = _log_context.set(merged)
    try:
        yield
    finally:
        _log_context.reset(token)


def current_log_context() -> dict[str, Any]:
    return dict(_log_context.get())


_configured = False


def configure_logging(
    level: int = logging.INFO,
    third_party_level: int = logging.WARNING,
) -> None:
    """Configure application-wide logging.

    Call once at startup (CLI entry point, FastAPI lifespan).

    Args:
        level: Log level for application loggers.
        third_party_level: Log level for HTTP client and server libraries.
    """
    global _configured
    if _configured:
        return
    _configured = True

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ContextualFormatter(LOG_FORMAT))
    root.addHandler(handler)

    for name in ("httpx", "httpcore", "asyncio", "uvicorn.access"):
        logging.getLogger(name).setLevel(third_party_level)


def get_logger(name: str) -> logging.Logger:
    """Return a logger for the given name.

    If configure_logging() has not been called, a basic handler is attached
    so the logger is usable from scripts and tests.
    """
    logger = logging.getLogger(name)
    if not _configured and not logger.handlers and not logging.getLogger().handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(ContextualFormatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger


def log_exception(
    logger: logging.Logger,
    message: str,
    exc: BaseException,
    **context: Any,
) -> None:
    """Log an exception with its traceback and extra context fields."""
    with log_context(**context):
        logger.exception("%s: %s", message, exc)
