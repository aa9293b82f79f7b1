from __future__ import annotations

import pytest

from tablequery_py import CapacityLimiter


def test_capacity_limiter_refills_units() -> None:
    now = 0.0

    def clock() -> float:
        return now

    limiter = CapacityLimiter(10, 2, now=clock)  # 10 units/s, burst 2
    assert limiter.allow() is True
    assert limiter.allow() is True
    assert limiter.allow() is False

    now += 0.1  # 1 unit per 0.1s
    assert limiter.allow() is True
    assert limiter.allow() is False


def test_capacity_limiter_admits_large_pages_into_debt() -> None:
    now = 0.0

    def clock() -> float:
        return now

    limiter = CapacityLimiter(5, now=clock)
    assert limiter.allow(12) is True
    assert limiter.allow(1) is False

    now += 3.0  # -7 + 15, capped at the burst of 5
    assert limiter.allow(5) is True
    assert limiter.allow(0) is True
    assert limiter.units_per_second == 5.0


def test_capacity_limiter_rejects_invalid_rates() -> None:
    with pytest.raises(ValueError):
        CapacityLimiter(0)
    with pytest.raises(ValueError):
        CapacityLimiter(1, 0)
