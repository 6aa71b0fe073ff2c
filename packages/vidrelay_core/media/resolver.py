"""Metadata resolution with bounded retry and escalating backoff."""

from __future__ import annotations

from logging import getLogger
from typing import Awaitable, Callable
import asyncio
import random

from .errors import UpstreamError
from .extractor import MediaExtractor
from .formats import VideoInfo


logger = getLogger("vidrelay_core.media.resolver")

MAX_RESOLVE_ATTEMPTS = 2
PRE_FETCH_DELAY_MIN_SECONDS = 0.5
PRE_FETCH_DELAY_MAX_SECONDS = 1.5
THROTTLED_BACKOFF_SECONDS = 5.0
DEFAULT_BACKOFF_SECONDS = 2.0

Sleep = Callable[[float], Awaitable[None]]
Jitter = Callable[[], float]


def retry_delay_seconds(attempt: int, *, throttled: bool) -> float:
    """Backoff to wait after failed attempt number ``attempt`` (1-based)."""
    base = THROTTLED_BACKOFF_SECONDS if throttled else DEFAULT_BACKOFF_SECONDS
    return base * max(1, int(attempt))


def pre_fetch_delay_seconds() -> float:
    return random.uniform(PRE_FETCH_DELAY_MIN_SECONDS, PRE_FETCH_DELAY_MAX_SECONDS)


class MediaResolver:
    """Resolves a video URL to ``VideoInfo`` through a blocking extractor.

    Each attempt is preceded by a random delay so that concurrent callers do not
    hit the upstream in lockstep. The extractor call runs in a worker thread;
    all waits are ``asyncio`` sleeps and never block the event loop.
    """

    def __init__(
        self,
        extractor: MediaExtractor,
        *,
        max_attempts: int = MAX_RESOLVE_ATTEMPTS,
        sleep: Sleep | None = None,
        jitter: Jitter | None = None,
    ) -> None:
        self._extractor = extractor
        self.max_attempts = max(1, int(max_attempts))
        self._sleep = sleep or asyncio.sleep
        self._jitter = jitter or pre_fetch_delay_seconds

    async def resolve(self, url: str) -> VideoInfo:
        attempt = 0
        while True:
            attempt += 1
            await self._sleep(self._jitter())
            try:
                return await asyncio.to_thread(self._extractor.get_info, url)
            except UpstreamError as exc:
                if attempt >= self.max_attempts:
                    logger.warning(
                        "[RESOLVE] Giving up after %d attempt(s) for %s: status=%s",
                        attempt,
                        url,
                        exc.status_code,
                    )
                    raise
                delay = retry_delay_seconds(attempt, throttled=exc.throttled)
                logger.info(
                    "[RESOLVE] Attempt %d failed (%s), waiting %.1fs",
                    attempt,
                    exc.status_code,
                    delay,
                )
                await self._sleep(delay)
