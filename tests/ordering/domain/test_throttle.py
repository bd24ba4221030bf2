"""Tests for guest verification throttling."""

import pytest
from ordering.guest.throttle import InMemoryThrottle, check_verification_attempt, set_throttle
from ordering.shared.errors import RateLimitedError


class _Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestInMemoryThrottle:
    def test_counts_per_key(self):
        throttle = InMemoryThrottle(window_seconds=60, clock=_Clock())
        assert throttle.hit("a") == 1
        assert throttle.hit("a") == 2
        assert throttle.hit("b") == 1

    def test_window_resets(self):
        clock = _Clock()
        throttle = InMemoryThrottle(window_seconds=60, clock=clock)
        throttle.hit("a")
        throttle.hit("a")
        clock.now = 61.0
        assert throttle.hit("a") == 1

    def test_reset(self):
        throttle = InMemoryThrottle(window_seconds=60, clock=_Clock())
        throttle.hit("a")
        throttle.reset("a")
        assert throttle.hit("a") == 1


class TestCheckVerificationAttempt:
    def test_sixth_attempt_is_limited(self):
        set_throttle(InMemoryThrottle(window_seconds=900, clock=_Clock()))
        for _ in range(5):
            check_verification_attempt("Guest@Example.com")
        with pytest.raises(RateLimitedError):
            check_verification_attempt("guest@example.com ")
