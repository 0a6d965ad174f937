"""In-process circuit breaker guarding the AI provider.

  - opens after N consecutive failures
  - stays open for a cooldown period
  - half-opens for a single trial request; success closes it, failure re-opens
"""
from __future__ import annotations

import threading
import time
from typing import Callable

CLOSED = "closed"
OPEN = "open"
HALF_OPEN = "half_open"


class CircuitBreaker:
    def __init__(self, failure_threshold: int = 5, cooldown_s: float = 60.0,
                 clock: Callable[[], float] = time.monotonic):
        self.failure_threshold = max(1, int(failure_threshold))
        self.cooldown_s = float(cooldown_s)
        self.clock = clock
        self._lock = threading.Lock()
        self._state = CLOSED
        self._failures = 0
        self._opened_at = 0.0
        self._trial_in_flight = False

    @property
    def state(self) -> str:
        with self._lock:
            if self._state == OPEN and self.clock() - self._opened_at >= self.cooldown_s:
                return HALF_OPEN
            return self._state

    @property
    def failures(self) -> int:
        return self._failures

    def allow(self) -> bool:
        with self._lock:
            if self._state == CLOSED:
                return True
            if self._state == OPEN:
                if self.clock() - self._opened_at < self.cooldown_s:
                    return False
                self._state = HALF_OPEN
                self._trial_in_flight = True
                return True
            # half open: exactly one trial at a time
            if self._trial_in_flight:
                return False
            self._trial_in_flight = True
            return True

    def on_success(self) -> None:
        with self._lock:
            self._state = CLOSED
            self._failures = 0
            self._opened_at = 0.0
            self._trial_in_flight = False

    def on_failure(self) -> None:
        with self._lock:
            self._failures += 1
            self._trial_in_flight = False
            if self._state == HALF_OPEN or self._failures >= self.failure_threshold:
                self._state = OPEN
                self._opened_at = self.clock()

    def release_trial(self) -> None:
        """Give up a half-open trial that ended without an outcome (e.g. cancelled)"""
        with self._lock:
            self._trial_in_flight = False

    def reset(self) -> None:
        self.on_success()
