#!/usr/bin/env python3

from __future__ import annotations

import unittest

from apps.api.vidrelay_api.middleware.rate_limit import InMemoryRateLimiter

from apps.api.tests.relay_fakes import FakeClock


class InMemoryRateLimiterTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.limiter = InMemoryRateLimiter(max_requests=5, window_seconds=60, clock=self.clock)

    def test_fifth_request_allowed_sixth_rejected(self) -> None:
        for _ in range(5):
            self.assertTrue(self.limiter.check("1.2.3.4"))
            self.clock.advance(1)
        self.assertFalse(self.limiter.check("1.2.3.4"))

    def test_window_slides(self) -> None:
        for _ in range(5):
            self.assertTrue(self.limiter.check("1.2.3.4"))
        self.assertFalse(self.limiter.check("1.2.3.4"))
        self.clock.advance(59.9)
        self.assertFalse(self.limiter.check("1.2.3.4"))
        self.clock.advance(1.1)
        self.assertTrue(self.limiter.check("1.2.3.4"))

    def test_rejected_requests_do_not_extend_the_window(self) -> None:
        for _ in range(5):
            self.limiter.check("1.2.3.4")
        for _ in range(10):
            self.clock.advance(5)
            self.assertFalse(self.limiter.check("1.2.3.4"))
        self.clock.advance(11)
        self.assertTrue(self.limiter.check("1.2.3.4"))

    def test_clients_are_independent(self) -> None:
        for _ in range(5):
            self.limiter.check("1.2.3.4")
        self.assertFalse(self.limiter.check("1.2.3.4"))
        self.assertTrue(self.limiter.check("5.6.7.8"))

    def test_retry_after(self) -> None:
        self.assertEqual(self.limiter.retry_after("1.2.3.4"), 0)
        for _ in range(5):
            self.limiter.check("1.2.3.4")
            self.clock.advance(10)
        # Oldest request was 50s ago.
        self.assertEqual(self.limiter.retry_after("1.2.3.4"), 10)
        self.clock.advance(9.5)
        self.assertEqual(self.limiter.retry_after("1.2.3.4"), 1)

    def test_acquire_reports_wait_from_the_same_snapshot(self) -> None:
        for _ in range(5):
            self.assertEqual(self.limiter.acquire("1.2.3.4"), (True, 0))
            self.clock.advance(2)

        self.assertEqual(self.limiter.acquire("1.2.3.4"), (False, 50))
        self.clock.advance(50)
        self.assertEqual(self.limiter.acquire("1.2.3.4"), (True, 0))

    def test_sweep_drops_idle_clients(self) -> None:
        self.limiter.check("idle")
        self.clock.advance(30)
        self.limiter.check("active")
        self.clock.advance(31)

        removed = self.limiter.sweep()

        self.assertEqual(removed, 1)
        self.assertEqual(self.limiter.tracked_clients(), 1)
        self.assertTrue(self.limiter.check("active"))

    def test_reset_clears_everything(self) -> None:
        for _ in range(5):
            self.limiter.check("1.2.3.4")
        self.limiter.reset()
        self.assertEqual(self.limiter.tracked_clients(), 0)
        self.assertTrue(self.limiter.check("1.2.3.4"))


if __name__ == "__main__":
    unittest.main()
