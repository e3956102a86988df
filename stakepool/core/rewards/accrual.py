"""Reward accrual engine.

Pure reward-per-share accounting across every reward ledger of a pool. Nothing
here reads or writes the store: callers pass records in and persist whatever
comes back.

For each ledger, ``accrue_ledger`` credits the seconds of every stream that
have not been credited yet (from the later of the stream start and the
ledger's ``last_accrual_time``, to the earlier of ``now`` and the stream end),
divides the released amount by ``total_staked`` into ``accumulator`` and drops
finished streams. ``settle_position`` then moves
``staked * accumulator - debt`` into the user's ``pending``.

Truncation dust from ``released // total_staked`` is never redistributed.

Two choices differ from a literal reward-per-share recipe. With nothing
staked the ledger clock still moves to ``now``, so those seconds are
forfeited rather than paid to the next depositor in one lump. A position
missing for a ledger starts at ``debt = 0`` rather than
``staked * accumulator``, because ``sync_debts`` opens positions at every
stake change and a later-registered ledger has credited this stake since zero.
"""

from __future__ import annotations

from dataclasses import replace

from .errors import AssetNotFound, InvalidTimestamp
from .math import (
    MAX_TIMESTAMP,
    checked_add,
    checked_mul,
    checked_sub,
    elapsed_seconds,
    require_uint,
)
from .types import (
    PoolState,
    RewardLedger,
    TransferInstruction,
    UserAccount,
    UserRewardPosition,
)


def accrue_ledger(ledger: RewardLedger, total_staked: int, now: int) -> RewardLedger:
    """Advance one ledger's accumulator to ``now``."""
    require_uint(now, name="now", max_value=MAX_TIMESTAMP)
    if now < ledger.last_accrual_time:
        raise InvalidTimestamp(
            f"time moved backwards for {ledger.asset}: {now} < {ledger.last_accrual_time}"
        )

    if total_staked == 0:
        # Nobody to credit: the uncredited seconds are forfeited.
        return replace(
            ledger,
            last_accrual_time=now,
            streams=tuple(stream for stream in ledger.streams if now < stream.end_time),
        )

    total_released = 0
    remaining = []
    for stream in ledger.streams:
        elapsed = elapsed_seconds(now, stream.start_time, stream.end_time, ledger.last_accrual_time)
        released = checked_mul(stream.release_rate, elapsed, name="released")
        total_released = checked_add(total_released, released, name="total_released")
        if now < stream.end_time:
            remaining.append(stream)

    return replace(
        ledger,
        accumulator=checked_add(
            ledger.accumulator, total_released // total_staked, name="accumulator"
        ),
        last_accrual_time=now,
        streams=tuple(remaining),
    )


def accrue_pool(pool: PoolState, now: int) -> PoolState:
    """Advance every ledger of ``pool`` without settling any user."""
    return replace(
        pool,
        reward_ledgers=tuple(
            accrue_ledger(ledger, pool.total_staked, now) for ledger in pool.reward_ledgers
        ),
    )


def settle_position(ledger: RewardLedger, user: UserAccount) -> UserAccount:
    """Fold everything owed to ``user`` for ``ledger`` into its pending balance.

    ``sync_debts`` gives every account a position for each ledger whenever its
    stake changes, so a missing position belongs to a ledger registered since
    then. That ledger started at a zero accumulator while the stake stayed
    put, so the position starts at zero debt.
    """
    entitled = checked_mul(user.staked, ledger.accumulator, name="debt")
    position = user.reward_positions.get(ledger.asset)
    if position is None:
        position = UserRewardPosition(asset=ledger.asset)

    owed = checked_sub(entitled, position.debt, name="owed")
    settled = replace(
        position,
        debt=entitled,
        pending=checked_add(position.pending, owed, name="pending"),
    )
    positions = dict(user.reward_positions)
    positions[ledger.asset] = settled
    return replace(user, reward_positions=positions)


def advance(pool: PoolState, user: UserAccount, now: int) -> tuple[PoolState, UserAccount]:
    """Accrue every ledger to ``now`` and settle ``user`` against each of them.

    With an empty pool the ledgers only move their clocks forward and the
    user is returned untouched. Calling this twice with the same ``now`` is
    the same as calling it once.
    """
    pool = accrue_pool(pool, now)
    if pool.total_staked == 0:
        return pool, user
    for ledger in pool.reward_ledgers:
        user = settle_position(ledger, user)
    return pool, user


def sync_debts(pool: PoolState, user: UserAccount) -> UserAccount:
    """Re-base every position's debt after ``user.staked`` changed.

    Opens a position for every ledger the account does not track yet, so a new
    stake never collects rewards credited before it. Must run right after a
    settling ``advance`` so nothing owed is lost.
    """
    positions = dict(user.reward_positions)
    for ledger in pool.reward_ledgers:
        position = positions.get(ledger.asset, UserRewardPosition(asset=ledger.asset))
        positions[ledger.asset] = replace(
            position, debt=checked_mul(user.staked, ledger.accumulator, name="debt")
        )
    return replace(user, reward_positions=positions)


def pending_rewards(user: UserAccount) -> list[tuple[str, int]]:
    """``(asset, pending)`` pairs in position order."""
    return [(asset, position.pending) for asset, position in user.reward_positions.items()]


def take_payouts(
    pool: PoolState, user: UserAccount, recipient: str,
) -> tuple[UserAccount, list[TransferInstruction]]:
    """Zero every nonzero pending balance and build the matching transfers.

    Transfers follow position order and carry the endpoint currently
    registered for the asset.
    """
    positions = dict(user.reward_positions)
    transfers: list[TransferInstruction] = []
    for asset, position in user.reward_positions.items():
        if position.pending == 0:
            continue
        ledger = pool.find_ledger(asset)
        if ledger is None:
            raise AssetNotFound(f"no reward ledger for position asset {asset!r}")
        transfers.append(
            TransferInstruction(
                asset=asset,
                endpoint=ledger.endpoint,
                recipient=recipient,
                amount=position.pending,
            )
        )
        positions[asset] = replace(position, pending=0)
    return replace(user, reward_positions=positions), transfers
