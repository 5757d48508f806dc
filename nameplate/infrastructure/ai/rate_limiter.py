"""Sliding-window throttle for calls to the vision model.

The remote endpoint enforces both a requests-per-minute and a
tokens-per-minute quota. :class:`RequestThrottle` keeps two windows of
admission timestamps over the trailing minute and suspends callers until both
are below their caps. Token usage is approximated with a fixed estimate per
call, so the token cap becomes a number of call slots.

One instance is created by the composition root and injected into the
extractor; there is no module-level state.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import Awaitable, Callable

from nameplate.infrastructure.observability import get_logger, record_throttle_wait

logger = get_logger(__name__)

DEFAULT_MAX_REQUESTS_PER_MINUTE = 450
DEFAULT_MAX_TOKENS_PER_MINUTE = 180_000
DEFAULT_ESTIMATED_TOKENS_PER_REQUEST = 1_500

WINDOW_SECONDS = 60.0
SAFETY_MARGIN_SECONDS = 1.0

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]


class RequestThrottle:
    """Caps admissions per minute by request count and estimated tokens."""

    def __init__(
        self,
        max_requests_per_minute: int = DEFAULT_MAX_REQUESTS_PER_MINUTE,
        max_tokens_per_minute: int = DEFAULT_MAX_TOKENS_PER_MINUTE,
        estimated_tokens_per_request: int = DEFAULT_ESTIMATED_TOKENS_PER_REQUEST,
        *,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        if max_requests_per_minute < 1:
            raise ValueError("max_requests_per_minute must be at least 1")
        if estimated_tokens_per_request < 1:
            raise ValueError("estimated_tokens_per_request must be at least 1")
        self.max_requests_per_minute = max_requests_per_minute
        self.max_tokens_per_minute = max_tokens_per_minute
        self.estimated_tokens_per_request = estimated_tokens_per_request
        self.token_slots = max(
            1, max_tokens_per_minute // estimated_tokens_per_request)
        self._clock = clock
        self._sleep = sleep
        self._request_times: deque[float] = deque()
        self._token_times: deque[float] = deque()
        self._lock = asyncio.Lock()

    @property
    def requests_in_window(self) -> int:
        return len(self._request_times)

    @property
    def token_slots_in_window(self) -> int:
        return len(self._token_times)

    def _prune(self, now: float) -> None:
        cutoff = now - WINDOW_SECONDS
        for window in (self._request_times, self._token_times):
            while window and window[0] < cutoff:
                window.popleft()

    def _wait_seconds(self, now: float) -> float:
        waits = [0.0]
        if len(self._request_times) >= self.max_requests_per_minute:
            oldest = self._request_times[0]
            waits.append(WINDOW_SECONDS - (now - oldest) + SAFETY_MARGIN_SECONDS)
        if len(self._token_times) >= self.token_slots:
            oldest = self._token_times[0]
            waits.append(WINDOW_SECONDS - (now - oldest) + SAFETY_MARGIN_SECONDS)
        return max(waits)

    async def admit(self) -> None:
        """Wait until both windows have capacity, then record the admission."""
        while True:
            async with self._lock:
                now = self._clock()
                self._prune(now)
                wait = self._wait_seconds(now)
                if wait <= 0:
                    self._request_times.append(now)
                    self._token_times.append(now)
                    return
            logger.info(
                "Rate limit reached (%d requests, %d token slots in window); "
                "waiting %.1fs",
                len(self._request_times),
                len(self._token_times),
                wait,
            )
            record_throttle_wait(wait)
            await self._sleep(wait)


__all__ = [
    "DEFAULT_ESTIMATED_TOKENS_PER_REQUEST",
    "DEFAULT_MAX_REQUESTS_PER_MINUTE",
    "DEFAULT_MAX_TOKENS_PER_MINUTE",
    "RequestThrottle",
]
