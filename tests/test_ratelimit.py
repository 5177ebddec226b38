"""
Tests for MockBird Rate Limiting
"""

from mockbird.execution.ratelimit import FixedWindowRateLimiter


class FakeClock:
    """Manually advanced clock."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestFixedWindowRateLimiter:
    """Test FixedWindowRateLimiter."""

    def test_allows_up_to_limit(self):
        """Test requests within the budget are allowed."""
        limiter = FixedWindowRateLimiter(max_requests=3, window_seconds=60, clock=FakeClock())

        remaining = [limiter.check('ip:acme').remaining for _ in range(3)]

        assert remaining == [2, 1, 0]

    def test_blocks_over_limit(self):
        """Test the request after the budget is refused with a retry hint."""
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(max_requests=2, window_seconds=60, clock=clock)
        limiter.check('ip:acme')
        limiter.check('ip:acme')
        clock.now += 15

        decision = limiter.check('ip:acme')

        assert decision.allowed is False
        assert decision.remaining == 0
        assert decision.retry_after_seconds == 45

    def test_window_resets(self):
        """Test a new window starts once the previous one ends."""
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=60, clock=clock)
        limiter.check('ip:acme')
        assert limiter.check('ip:acme').allowed is False

        clock.now += 60

        assert limiter.check('ip:acme').allowed is True

    def test_keys_are_independent(self):
        """Test separate keys have separate budgets."""
        limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
        limiter.check('ip:acme')

        assert limiter.check('ip:other').allowed is True
        assert limiter.check('other-ip:acme').allowed is True

    def test_expired_windows_evicted(self):
        """Test ended windows are dropped once many keys are tracked."""
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=60, clock=clock)
        for i in range(10000):
            limiter.check(f'ip{i}:acme')

        clock.now += 61
        limiter.check('fresh:acme')

        assert list(limiter.windows) == ['fresh:acme']

    def test_reset(self):
        """Test reset clears every window."""
        limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
        limiter.check('ip:acme')

        limiter.reset()

        assert limiter.check('ip:acme').allowed is True
