"""Guard functions for the reward pool.

One function per operation, evaluated against the PRE-state. Each returns
nothing when the operation is allowed and raises the matching ``PoolError``
otherwise, so handlers can call them before touching any record.
"""

from __future__ import annotations

from .errors import (
    AssetNotFound,
    DivideByZero,
    DuplicateAsset,
    EmptyPool,
    InsufficientStake,
    InvalidMessage,
    LimitExceeded,
    NoAccount,
    NothingStaked,
    Unauthorized,
    WrongAsset,
)
from .types import PoolState, RewardLedger, UserAccount


def guard_manager(pool: PoolState, caller: str) -> None:
    if caller != pool.manager:
        raise Unauthorized(f"{caller} is not the pool manager")


def guard_register_reward_asset(
    pool: PoolState, caller: str, asset: str, *, max_reward_assets: int,
) -> None:
    guard_manager(pool, caller)
    if pool.find_ledger(asset) is not None:
        raise DuplicateAsset(f"reward asset {asset} already registered")
    if len(pool.reward_ledgers) >= max_reward_assets:
        raise LimitExceeded(f"too many reward assets: {max_reward_assets}")


def guard_update_reward_asset_endpoint(pool: PoolState, caller: str, asset: str) -> RewardLedger:
    guard_manager(pool, caller)
    ledger = pool.find_ledger(asset)
    if ledger is None:
        raise AssetNotFound(f"reward asset {asset} not registered")
    return ledger


def guard_deposit(pool: PoolState, source_asset: str, amount: int) -> None:
    if source_asset != pool.stake_asset:
        raise WrongAsset(f"deposits must come from {pool.stake_asset}, got {source_asset}")
    if amount <= 0:
        raise InvalidMessage("deposit amount must be positive")


def guard_fund_reward_stream(
    pool: PoolState,
    source_asset: str,
    amount: int,
    release_duration: int,
    *,
    now: int,
    max_streams_per_asset: int,
) -> RewardLedger:
    if pool.total_staked == 0:
        raise EmptyPool("no staked tokens to distribute rewards")
    ledger = pool.find_ledger(source_asset)
    if ledger is None:
        raise AssetNotFound(f"reward asset {source_asset} not registered")
    if release_duration == 0:
        raise DivideByZero("release_duration must be non-zero")
    if amount <= 0:
        raise InvalidMessage("reward amount must be positive")
    # Finished streams are still stored until the next accrual drops them.
    open_streams = sum(1 for stream in ledger.streams if now < stream.end_time)
    if open_streams >= max_streams_per_asset:
        raise LimitExceeded(f"too many open streams for {source_asset}: {max_streams_per_asset}")
    return ledger


def guard_withdraw(user: UserAccount | None, address: str, amount: int) -> UserAccount:
    if user is None:
        raise NoAccount(f"no deposit found for {address}")
    if amount > user.staked:
        raise InsufficientStake(f"cannot withdraw {amount}, only {user.staked} staked")
    return user


def guard_claim(user: UserAccount | None, address: str) -> UserAccount:
    if user is None:
        raise NoAccount(f"no deposit found for {address}")
    if user.staked == 0:
        raise NothingStaked("cannot claim rewards without a deposit")
    return user
