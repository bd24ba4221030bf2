"""Attempt throttling for guest order verification.

Guessing an order id for a known email address is the cheapest way to
obtain a guest token, so verification attempts are counted per key in a
fixed window. The in-memory counter suits a single process; a shared
deployment swaps in an implementation backed by a shared store via
``set_throttle``.
"""

import time
from abc import ABC, abstractmethod
from threading import Lock

from ordering.config import get_settings
from ordering.shared.errors import RateLimitedError


class VerificationThrottle(ABC):
    @abstractmethod
    def hit(self, key: str) -> int:
        """Count one attempt for ``key`` and return the attempts in the current window."""
        ...

    @abstractmethod
    def reset(self, key: str | None = None) -> None: ...


class InMemoryThrottle(VerificationThrottle):
    def __init__(self, window_seconds: int, clock=time.monotonic) -> None:
        self.window_seconds = window_seconds
        self.clock = clock
        self._windows: dict[str, tuple[float, int]] = {}
        self._lock = Lock()

    def hit(self, key: str) -> int:
        now = self.clock()
        with self._lock:
            started, count = self._windows.get(key, (now, 0))
            if now - started >= self.window_seconds:
                started, count = now, 0
            count += 1
            self._windows[key] = (started, count)
        return count

    def reset(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)


_current_throttle: VerificationThrottle | None = None


def get_throttle() -> VerificationThrottle:
    global _current_throttle
    if _current_throttle is None:
        _current_throttle = InMemoryThrottle(get_settings().guest_verify_window_seconds)
    return _current_throttle


def set_throttle(throttle: VerificationThrottle) -> None:
    global _current_throttle
    _current_throttle = throttle


def reset_throttle() -> None:
    global _current_throttle
    _current_throttle = None


def check_verification_attempt(key: str) -> None:
    """Count an attempt for ``key``; raise ``RateLimitedError`` past the limit."""
    attempts = get_throttle().hit(key.strip().lower())
    if attempts > get_settings().guest_verify_max_attempts:
        raise RateLimitedError("Too many verification attempts, try again later", key=key)
