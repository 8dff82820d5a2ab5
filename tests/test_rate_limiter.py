"""
Storefront Gateway — Rate Limiter Unit Tests
==============================================

What we test:
    ✅ Exactly `limit` requests pass per window; the next one is rejected
    ✅ The window resets once it elapses
    ✅ Rejected calls still count against the window
    ✅ Keys are independent
    ✅ release() gives back one request (skip-successful mode)
    ✅ Decision headers
"""

import pytest

from gateway.security.rate_limiter import RateLimiter
from tests.conftest import FakeClock


class TestRateLimiter:
    def setup_method(self):
        self.clock = FakeClock()
        self.limiter = RateLimiter(limit=3, window_seconds=60, name="test", clock=self.clock)

    def test_limit_plus_one_is_rejected(self):
        decisions = [self.limiter.check("ip:1") for _ in range(4)]
        assert [d.allowed for d in decisions] == [True, True, True, False]
        assert [d.remaining for d in decisions] == [2, 1, 0, 0]

    def test_window_reset_allows_again(self):
        for _ in range(4):
            self.limiter.check("ip:1")
        self.clock.advance(60)
        decision = self.limiter.check("ip:1")
        assert decision.allowed
        assert decision.remaining == 2

    def test_rejected_calls_still_count(self):
        for _ in range(5):
            self.limiter.check("ip:1")
        assert self.limiter.peek("ip:1").count == 5

    def test_not_reset_before_window_elapses(self):
        for _ in range(3):
            self.limiter.check("ip:1")
        self.clock.advance(59.5)
        assert not self.limiter.check("ip:1").allowed

    def test_keys_are_independent(self):
        for _ in range(3):
            self.limiter.check("ip:1")
        assert self.limiter.check("ip:2").allowed
        assert not self.limiter.check("ip:1").allowed

    def test_release_gives_back_one_request(self):
        for _ in range(3):
            self.limiter.check("ip:1")
            self.limiter.release("ip:1")
        assert self.limiter.peek("ip:1").count == 0
        assert self.limiter.check("ip:1").allowed

    def test_release_of_unknown_key_is_noop(self):
        self.limiter.release("nobody")
        assert self.limiter.peek("nobody") is None

    def test_retry_after_and_headers(self):
        for _ in range(3):
            self.limiter.check("ip:1")
        self.clock.advance(20.5)
        decision = self.limiter.check("ip:1")

        assert decision.retry_after == 40
        assert decision.headers() == {
            "x-ratelimit-limit": "3",
            "x-ratelimit-remaining": "0",
            "x-ratelimit-reset": "40",
        }

    def test_allowed_decision_has_no_retry_after(self):
        assert self.limiter.check("ip:1").retry_after == 0

    def test_reset(self):
        self.limiter.check("ip:1")
        self.limiter.check("ip:2")
        self.limiter.reset("ip:1")
        assert len(self.limiter) == 1
        self.limiter.reset()
        assert len(self.limiter) == 0

    def test_invalid_configuration(self):
        with pytest.raises(ValueError):
            RateLimiter(limit=0, window_seconds=60)
        with pytest.raises(ValueError):
            RateLimiter(limit=10, window_seconds=0)
