import time
import random
from typing import Callable


class SimpleRateLimiter:
    """Keeps at least 1/requests_per_sec seconds between two `wait()` returns."""

    def __init__(
        self,
        requests_per_sec: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if requests_per_sec <= 0:
            raise ValueError("requests_per_sec must be > 0")
        self._min_interval = 1.0 / requests_per_sec
        self._clock = clock
        self._sleep = sleep
        self._last_ts = None

    def wait(self) -> None:
        if self._last_ts is not None:
            sleep_for = self._min_interval - (self._clock() - self._last_ts)
            if sleep_for > 0:
                self._sleep(sleep_for)
        self._last_ts = self._clock()


def backoff_delay(attempt: int, base: float = 0.5, cap: float = 8.0) -> float:
    """Exponential delay for a 0-based attempt, capped, with +-30% jitter."""
    t = min(cap, base * (2 ** attempt))
    return t * (0.7 + random.random() * 0.6)
