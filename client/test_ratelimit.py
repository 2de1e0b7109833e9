"""
Tests for the 429 cooldown and the outbound frame limiter.

Run with: pytest test_ratelimit.py -v
"""

import pytest

from errors import RateLimitedError
from services.ratelimit import OutboundMessageLimiter, RetryCooldown


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestRetryCooldown:

    def test_inactive_by_default(self):
        cooldown = RetryCooldown(FakeClock())
        assert not cooldown.active
        assert cooldown.remaining() == 0
        cooldown.check()

    def test_refuses_until_deadline(self):
        clock = FakeClock()
        cooldown = RetryCooldown(clock)
        cooldown.start(30)

        with pytest.raises(RateLimitedError) as exc_info:
            cooldown.check()
        assert exc_info.value.retry_after == 30
        assert exc_info.value.message == "Too many requests. Wait for 30s"

        clock.advance(29.5)
        with pytest.raises(RateLimitedError) as exc_info:
            cooldown.check()
        assert exc_info.value.message == "Too many requests. Wait for 1s"

        clock.advance(0.5)
        cooldown.check()
        assert not cooldown.active
        assert cooldown.deadline is None

    def test_reset(self):
        cooldown = RetryCooldown(FakeClock())
        cooldown.start(30)
        cooldown.reset()
        assert not cooldown.active


class TestOutboundMessageLimiter:

    def test_allows_up_to_limit(self):
        clock = FakeClock()
        limiter = OutboundMessageLimiter(max_messages=20, window_seconds=1.0, clock=clock)

        assert all(limiter.check() for _ in range(20))
        assert limiter.check() is False

    def test_window_slides(self):
        clock = FakeClock()
        limiter = OutboundMessageLimiter(max_messages=2, window_seconds=1.0, clock=clock)

        assert limiter.check()
        clock.advance(0.5)
        assert limiter.check()
        assert not limiter.check()

        clock.advance(0.5)
        assert limiter.check()
        assert not limiter.check()

    def test_reset(self):
        limiter = OutboundMessageLimiter(max_messages=1, clock=FakeClock())
        assert limiter.check()
        assert not limiter.check()
        limiter.reset()
        assert limiter.check()
