"""Checked integer arithmetic for the reward engine.

Every function operates on plain Python ints and enforces the unsigned domains
used by persisted records: 128-bit for amounts, accumulators and debts, 64-bit
for timestamps. Division truncates (``//`` on non-negative operands), and the
truncated remainder is never carried forward.
"""

from __future__ import annotations

from .errors import DivideByZero, Overflow

MAX_UINT128: int = 2**128 - 1
MAX_TIMESTAMP: int = 2**64 - 1


def require_uint(value: int, *, name: str, max_value: int = MAX_UINT128) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0 or value > max_value:
        raise Overflow(f"{name} out of range: {value}")
    return int(value)


def checked_add(a: int, b: int, *, name: str = "sum") -> int:
    return require_uint(a + b, name=name)


def checked_sub(a: int, b: int, *, name: str = "difference") -> int:
    return require_uint(a - b, name=name)


def checked_mul(a: int, b: int, *, name: str = "product") -> int:
    return require_uint(a * b, name=name)


def release_rate(amount: int, duration: int) -> int:
    """Amount released per second, truncated."""
    if duration == 0:
        raise DivideByZero("release_duration must be non-zero")
    return amount // duration


def stream_end_time(now: int, duration: int) -> int:
    return require_uint(now + duration, name="end_time", max_value=MAX_TIMESTAMP)


def elapsed_seconds(now: int, start_time: int, end_time: int, last_accrual_time: int) -> int:
    """Seconds of a stream not yet credited, saturating at zero.

    The window runs from the later of the stream start and the ledger's last
    accrual to the earlier of ``now`` and the stream end.
    """
    window_end = min(now, end_time)
    window_start = max(start_time, last_accrual_time)
    return max(window_end - window_start, 0)
