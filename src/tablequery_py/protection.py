from __future__ import annotations

import threading
import time
from collections.abc import Callable


class CapacityLimiter:
    """Token bucket measured in capacity units rather than requests.

    A page that consumed more units than the bucket holds is admitted once the bucket is
    full and leaves it in debt, so the following pages wait proportionally longer.
    """

    def __init__(
        self,
        units_per_second: float,
        burst: float | None = None,
        *,
        now: Callable[[], float] | None = None,
    ) -> None:
        if not isinstance(units_per_second, (int, float)) or units_per_second <= 0:
            raise ValueError("units_per_second must be > 0")
        if burst is None:
            burst = float(units_per_second)
        if not isinstance(burst, (int, float)) or burst <= 0:
            raise ValueError("burst must be > 0")

        self._now = now or time.monotonic
        self._rate = float(units_per_second)
        self._max_tokens = float(burst)
        self._tokens = float(burst)
        self._last_refill = self._now()
        self._lock = threading.Lock()

    @property
    def units_per_second(self) -> float:
        return self._rate

    def allow(self, units: float = 1.0) -> bool:
        if units <= 0:
            return True

        with self._lock:
            now = self._now()
            elapsed = now - self._last_refill
            if elapsed > 0:
                self._tokens = min(self._max_tokens, self._tokens + elapsed * self._rate)
                self._last_refill = now

            if self._tokens >= min(units, self._max_tokens):
                self._tokens -= units
                return True

            return False
