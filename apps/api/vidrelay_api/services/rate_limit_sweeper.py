"""Background sweeper that bounds the rate limiter's memory."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
import threading

from ..middleware.rate_limit import InMemoryRateLimiter


logger = logging.getLogger("vidrelay_api.rate_limit_sweeper")


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class RateLimitSweeper:
    def __init__(self, limiter: InMemoryRateLimiter, *, interval_seconds: float | None = None) -> None:
        self._limiter = limiter
        self.interval_seconds = max(
            0.01, float(interval_seconds if interval_seconds is not None else limiter.window_seconds)
        )
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._state_lock = threading.Lock()
        self._last_sweep_at: str | None = None
        self._last_removed = 0
        self._sweeps = 0
        self._last_error: str | None = None

    def start(self) -> bool:
        with self._state_lock:
            if self._thread and self._thread.is_alive():
                return False
            self._stop_event.clear()
            thread = threading.Thread(
                target=self._run_loop,
                name="vidrelay-rate-limit-sweeper",
                daemon=True,
            )
            thread.start()
            self._thread = thread
            logger.info("[RATE_LIMIT] Sweeper started (interval: %.0fs)", self.interval_seconds)
            return True

    def stop(self, *, join_timeout_seconds: float = 3.0) -> bool:
        with self._state_lock:
            thread = self._thread
            if not thread:
                return False
            self._stop_event.set()
        thread.join(timeout=max(0.1, float(join_timeout_seconds)))
        with self._state_lock:
            if self._thread is thread:
                self._thread = None
        logger.info("[RATE_LIMIT] Sweeper stopped")
        return True

    def status(self) -> dict[str, object]:
        with self._state_lock:
            running = bool(self._thread and self._thread.is_alive())
        return {
            "running": running,
            "interval_seconds": self.interval_seconds,
            "sweeps": self._sweeps,
            "last_sweep_at": self._last_sweep_at,
            "last_removed": self._last_removed,
            "last_error": self._last_error,
            "tracked_clients": self._limiter.tracked_clients(),
        }

    def sweep_once(self) -> int:
        removed = self._limiter.sweep()
        self._sweeps += 1
        self._last_removed = removed
        self._last_sweep_at = _utc_now_iso()
        if removed:
            logger.debug("[RATE_LIMIT] Swept %d idle client(s)", removed)
        return removed

    def _run_loop(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            try:
                self.sweep_once()
            except Exception as exc:
                self._last_error = f"{exc.__class__.__name__}: {exc}"
                logger.exception("[RATE_LIMIT] Sweep failed: %s", exc)
