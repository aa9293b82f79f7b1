from __future__ import annotations

import threading

from .mocks import ANY, FakeDynamoDBClient, SegmentedScanClient


def no_sleep(_: float) -> None:
    return None


class FakeClock:
    """Manual clock: ``sleep`` advances ``now`` instead of blocking."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._lock = threading.Lock()
        self.sleeps: list[float] = []

    def now(self) -> float:
        with self._lock:
            return self._now

    def sleep(self, seconds: float) -> None:
        with self._lock:
            self.sleeps.append(seconds)
            self._now += seconds

    def advance(self, seconds: float) -> None:
        with self._lock:
            self._now += seconds


__all__ = [
    "ANY",
    "FakeClock",
    "FakeDynamoDBClient",
    "SegmentedScanClient",
    "no_sleep",
]
