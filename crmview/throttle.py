"""Minimum-interval pacing for sequential backend calls."""

from __future__ import annotations

import time


class Pacer:
    """Enforce a minimum gap of `delay` seconds between successive calls.

    The first call to `wait()` never blocks.
    """

    def __init__(self, delay: float) -> None:
        self.delay = max(0.0, delay)
        self.last_call: float | None = None

    @classmethod
    def from_millis(cls, millis: int) -> Pacer:
        return cls(millis / 1000.0)

    def wait(self) -> None:
        """Block until `delay` has elapsed since the previous call."""
        now = time.monotonic()
        if self.last_call is not None:
            remaining = self.delay - (now - self.last_call)
            if remaining > 0:
                time.sleep(remaining)
                now = time.monotonic()
        self.last_call = now
