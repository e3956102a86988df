"""Tests for stakepool/core/rewards/math.py: checked integer arithmetic."""

import pytest

from stakepool.core.rewards.errors import DivideByZero, Overflow
from stakepool.core.rewards.math import (
    MAX_TIMESTAMP,
    MAX_UINT128,
    checked_add,
    checked_mul,
    checked_sub,
    elapsed_seconds,
    release_rate,
    require_uint,
    stream_end_time,
)


# ---------------------------------------------------------------------------
# require_uint
# ---------------------------------------------------------------------------

class TestRequireUint:
    def test_accepts_bounds(self):
        assert require_uint(0, name="x") == 0
        assert require_uint(MAX_UINT128, name="x") == MAX_UINT128

    def test_rejects_negative(self):
        with pytest.raises(Overflow):
            require_uint(-1, name="x")

    def test_rejects_above_bound(self):
        with pytest.raises(Overflow):
            require_uint(MAX_TIMESTAMP + 1, name="t", max_value=MAX_TIMESTAMP)

    def test_rejects_bool(self):
        with pytest.raises(TypeError):
            require_uint(True, name="x")

    def test_rejects_float(self):
        with pytest.raises(TypeError):
            require_uint(1.0, name="x")


# ---------------------------------------------------------------------------
# checked arithmetic
# ---------------------------------------------------------------------------

class TestChecked:
    def test_add(self):
        assert checked_add(2, 3) == 5

    def test_add_overflow(self):
        with pytest.raises(Overflow):
            checked_add(MAX_UINT128, 1)

    def test_sub_underflow(self):
        with pytest.raises(Overflow):
            checked_sub(1, 2)

    def test_sub_to_zero(self):
        assert checked_sub(7, 7) == 0

    def test_mul_overflow(self):
        with pytest.raises(Overflow, match="debt"):
            checked_mul(2**64, 2**64, name="debt")


# ---------------------------------------------------------------------------
# Streams
# ---------------------------------------------------------------------------

class TestReleaseRate:
    def test_truncates(self):
        assert release_rate(1000, 3) == 333

    def test_smaller_than_duration_is_zero(self):
        assert release_rate(5, 10) == 0

    def test_zero_duration(self):
        with pytest.raises(DivideByZero):
            release_rate(100, 0)


class TestStreamEndTime:
    def test_basic(self):
        assert stream_end_time(1_000, 500) == 1_500

    def test_past_timestamp_range(self):
        with pytest.raises(Overflow):
            stream_end_time(MAX_TIMESTAMP, 1)


class TestElapsedSeconds:
    def test_from_start_when_never_accrued(self):
        assert elapsed_seconds(now=150, start_time=100, end_time=200, last_accrual_time=50) == 50

    def test_from_last_accrual(self):
        assert elapsed_seconds(now=150, start_time=100, end_time=200, last_accrual_time=120) == 30

    def test_capped_at_end(self):
        assert elapsed_seconds(now=500, start_time=100, end_time=200, last_accrual_time=150) == 50

    def test_saturates_at_zero(self):
        assert elapsed_seconds(now=300, start_time=100, end_time=200, last_accrual_time=250) == 0

    def test_same_instant(self):
        assert elapsed_seconds(now=150, start_time=100, end_time=200, last_accrual_time=150) == 0
