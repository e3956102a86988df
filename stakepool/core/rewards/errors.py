"""Exception types for the reward pool.

Every handler failure is a ``PoolError`` subclass carrying a stable ``code``.
``execute()`` in ``stakepool.integration.handlers`` turns these into a failed
``Response``; ``execute_or_raise()`` lets them propagate.
"""

from __future__ import annotations


class PoolError(Exception):
    """Base class for all rejections."""

    code = "pool_error"


class Unauthorized(PoolError):
    """Caller lacks the manager role."""

    code = "unauthorized"


class NotFound(PoolError):
    code = "not_found"


class AssetNotFound(NotFound):
    """Reward asset is not registered."""

    code = "asset_not_found"


class NoAccount(NotFound):
    """No account exists for this address."""

    code = "no_account"


class DuplicateAsset(PoolError):
    code = "duplicate_asset"


class InsufficientStake(PoolError):
    code = "insufficient_stake"


class EmptyPool(PoolError):
    """Nothing is staked, so a reward stream has nobody to pay."""

    code = "empty_pool"


class DivideByZero(PoolError):
    """Reward stream funded with a zero release duration."""

    code = "divide_by_zero"


class WrongAsset(PoolError):
    """Inbound transfer came from an unexpected asset."""

    code = "wrong_asset"


class NothingStaked(PoolError):
    code = "nothing_staked"


class NotInitialized(PoolError):
    code = "not_initialized"


class AlreadyInitialized(PoolError):
    code = "already_initialized"


class Overflow(PoolError):
    """An amount left the unsigned 128-bit (or 64-bit timestamp) domain."""

    code = "overflow"


class InvalidTimestamp(PoolError):
    """Supplied time is earlier than a ledger's last accrual time."""

    code = "invalid_timestamp"


class InvalidMessage(PoolError):
    """Malformed command, query or inbound payload."""

    code = "invalid_message"


class CorruptRecord(PoolError):
    """A stored record could not be decoded."""

    code = "corrupt_record"


class LimitExceeded(PoolError):
    code = "limit_exceeded"


class InvariantViolation(PoolError):
    """Raised when a post-state violates one or more invariants."""

    code = "invariant_violation"

    def __init__(self, violations: list[str]) -> None:
        self.violations = violations
        super().__init__(f"invariant violations: {', '.join(violations)}")
