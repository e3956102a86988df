"""`rewards`: integer-only reward-per-share accounting for a staking pool.

- deterministic, integer-only transitions with truncating division,
- immutable records (frozen dataclasses),
- guards raise typed errors before anything changes,
- invariant checks on every post-state.

Public API:
- `advance(pool, user, now) -> (pool, user)`
- `accrue_pool(pool, now) -> pool`
- `sync_debts(pool, user) -> user`
- `take_payouts(pool, user, recipient) -> (user, transfers)`
"""

from .accrual import (
    accrue_ledger,
    accrue_pool,
    advance,
    pending_rewards,
    settle_position,
    sync_debts,
    take_payouts,
)
from .errors import (
    AlreadyInitialized,
    AssetNotFound,
    CorruptRecord,
    DivideByZero,
    DuplicateAsset,
    EmptyPool,
    InsufficientStake,
    InvalidMessage,
    InvalidTimestamp,
    InvariantViolation,
    LimitExceeded,
    NoAccount,
    NotFound,
    NothingStaked,
    NotInitialized,
    Overflow,
    PoolError,
    Unauthorized,
    WrongAsset,
)
from .state import (
    account_from_dict,
    account_to_dict,
    initial_pool,
    pool_from_dict,
    pool_to_dict,
)
from .types import (
    Action,
    Event,
    Instruction,
    PoolState,
    RegisterReceiverInstruction,
    RewardLedger,
    RewardStream,
    TransferInstruction,
    UserAccount,
    UserRewardPosition,
)

__all__ = [
    "accrue_ledger",
    "accrue_pool",
    "advance",
    "pending_rewards",
    "settle_position",
    "sync_debts",
    "take_payouts",
    "account_from_dict",
    "account_to_dict",
    "initial_pool",
    "pool_from_dict",
    "pool_to_dict",
    "Action",
    "Event",
    "Instruction",
    "PoolState",
    "RegisterReceiverInstruction",
    "RewardLedger",
    "RewardStream",
    "TransferInstruction",
    "UserAccount",
    "UserRewardPosition",
    "PoolError",
    "Unauthorized",
    "NotFound",
    "AssetNotFound",
    "NoAccount",
    "DuplicateAsset",
    "InsufficientStake",
    "EmptyPool",
    "DivideByZero",
    "WrongAsset",
    "NothingStaked",
    "NotInitialized",
    "AlreadyInitialized",
    "Overflow",
    "InvalidTimestamp",
    "InvalidMessage",
    "CorruptRecord",
    "LimitExceeded",
    "InvariantViolation",
]
