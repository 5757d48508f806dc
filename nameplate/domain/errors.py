"""Exception hierarchy for the extraction pipeline."""

from __future__ import annotations

import re


class NameplateError(Exception):
    """Base class for all errors raised by the nameplate package."""


class ExtractionError(NameplateError):
    """Raised when an extractor cannot produce a result for an image."""


class RateLimitError(ExtractionError):
    """Raised when the remote vision model reports that its rate limit was hit."""


class ExtractionTimeoutError(ExtractionError):
    """Raised when a remote extraction call exceeds its timeout."""


class ImageTooLargeError(ExtractionError):
    """Raised when an image exceeds the configured size limit."""

    def __init__(self, size_bytes: int, limit_bytes: int) -> None:
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes
        super().__init__(
            f"Image file size ({size_bytes / 1024:.1f} KB) exceeds the maximum "
            f"limit of {limit_bytes / 1024:.0f} KB"
        )


class StorageError(NameplateError):
    """Raised when the blob store rejects an operation."""


class RecordNotFoundError(NameplateError):
    """Raised when a requested record does not exist."""


class PipelineError(NameplateError):
    """Raised when the pipeline cannot run for an image."""


_RATE_LIMIT_PATTERN = re.compile(
    r"\b(?:rate[ _-]?limit\w*|ratelimit\w*|too many requests|429)\b", re.IGNORECASE)


def is_rate_limit_error(exc: BaseException) -> bool:
    """Return True if the error signals that a remote rate limit was hit.

    Errors raised by this package are trusted by type alone: only
    :class:`RateLimitError` counts. Foreign exceptions are checked for a 429
    response status, then for a word-bounded rate-limit marker in the message.
    """
    if isinstance(exc, RateLimitError):
        return True
    if isinstance(exc, NameplateError):
        return False
    response = getattr(exc, "response", None)
    if getattr(response, "status_code", None) == 429:
        return True
    return _RATE_LIMIT_PATTERN.search(str(exc)) is not None


__all__ = [
    "ExtractionError",
    "ExtractionTimeoutError",
    "ImageTooLargeError",
    "NameplateError",
    "PipelineError",
    "RateLimitError",
    "RecordNotFoundError",
    "StorageError",
    "is_rate_limit_error",
]
