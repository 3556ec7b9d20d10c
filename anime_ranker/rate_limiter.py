from __future__ import annotations

import asyncio
import math
import time
from collections import deque
from typing import Awaitable, Callable, Deque, Optional

from loguru import logger

from .config import (
    RATE_LIMIT_MAX_REQUESTS,
    RATE_LIMIT_MIN_DELAY_MS,
    RATE_LIMIT_WINDOW_MS,
    RATE_LIMIT_WINDOW_PADDING_MS,
)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class RateLimiter:
    """
    Gate in front of every AniList request.

    Three guards, checked in this order by :meth:`throttle`:

    1. lockout   - armed by :meth:`notify_throttled` after a 429;
    2. window    - at most ``max_requests`` within the trailing ``window_ms``;
    3. spacing   - at least ``min_delay_ms`` between two requests.

    Callers are suspended, never rejected.  ``clock`` returns seconds and
    ``sleep`` is awaited with seconds; both are injectable so tests can run
    on a fake timeline.
    """

    def __init__(
        self,
        max_requests: int = RATE_LIMIT_MAX_REQUESTS,
        window_ms: int = RATE_LIMIT_WINDOW_MS,
        min_delay_ms: int = RATE_LIMIT_MIN_DELAY_MS,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
        window_padding_ms: int = RATE_LIMIT_WINDOW_PADDING_MS,
    ):
        self.max_requests = max_requests
        self.window = window_ms / 1000.0
        self.min_delay = min_delay_ms / 1000.0
        self.padding = window_padding_ms / 1000.0
        self._clock = clock
        self._sleep = sleep
        self._request_times: Deque[float] = deque()
        self._last_request: Optional[float] = None
        self._locked_until = 0.0
        self._gate = asyncio.Lock()

    @property
    def locked_until(self) -> float:
        return self._locked_until

    @property
    def in_window(self) -> int:
        self._prune(self._clock())
        return len(self._request_times)

    def _prune(self, now: float) -> None:
        while self._request_times and now - self._request_times[0] >= self.window:
            self._request_times.popleft()

    async def throttle(self) -> None:
        # one caller at a time through the guards
        async with self._gate:
            now = self._clock()
            if now < self._locked_until:
                wait = self._locked_until - now
                logger.info("Rate limited, waiting {}s...", math.ceil(wait))
                await self._sleep(wait)
                now = self._clock()

            self._prune(now)
            if len(self._request_times) >= self.max_requests:
                oldest = self._request_times[0]
                wait = self.window - (now - oldest) + self.padding
                logger.info("Request limit reached, waiting {}s...", math.ceil(wait))
                await self._sleep(wait)
                self._prune(self._clock())

            if self._last_request is not None:
                since_last = self._clock() - self._last_request
                if since_last < self.min_delay:
                    await self._sleep(self.min_delay - since_last)

            self._last_request = self._clock()
            self._request_times.append(self._last_request)

    def notify_throttled(self, retry_after_seconds: float) -> None:
        """Arm the lockout after a 429.  The window is wiped, not paused."""
        self._locked_until = self._clock() + float(retry_after_seconds)
        self._request_times.clear()
        logger.warning("429 received; locking out requests for {}s", retry_after_seconds)
