"""Invariant checkers for the reward pool.

Each ``inv_*`` function returns True when the invariant holds. ``check_all()``
returns the violated invariant IDs for a post-state (empty = all pass) and
``check_transition()`` adds the checks that compare a post-state with its
pre-state.

Pool-wide stake conservation needs every account and lives in
``stakepool.state.store.verify_conservation``.
"""

from __future__ import annotations

from typing import Callable

from .math import MAX_TIMESTAMP, MAX_UINT128
from .types import PoolState, UserAccount


def _uint(value: int, bound: int = MAX_UINT128) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= bound


def inv_unique_reward_assets(s: PoolState) -> bool:
    assets = [ledger.asset for ledger in s.reward_ledgers]
    return len(assets) == len(set(assets))


def inv_amounts_in_range(s: PoolState) -> bool:
    if not _uint(s.total_staked):
        return False
    for ledger in s.reward_ledgers:
        if not _uint(ledger.accumulator) or not _uint(ledger.last_accrual_time, MAX_TIMESTAMP):
            return False
    return True


def inv_streams_well_formed(s: PoolState) -> bool:
    for ledger in s.reward_ledgers:
        for stream in ledger.streams:
            if stream.end_time <= stream.start_time:
                return False
            duration = stream.end_time - stream.start_time
            if stream.release_rate != stream.total_amount // duration:
                return False
    return True


def inv_streams_not_from_future(s: PoolState) -> bool:
    return all(
        stream.start_time <= ledger.last_accrual_time
        for ledger in s.reward_ledgers
        for stream in ledger.streams
    )


def inv_streams_unexpired(s: PoolState) -> bool:
    # A listed stream must still have time left after the last accrual.
    return all(
        ledger.last_accrual_time < stream.end_time
        for ledger in s.reward_ledgers
        for stream in ledger.streams
    )


INVARIANT_REGISTRY: dict[str, Callable[[PoolState], bool]] = {
    "inv_unique_reward_assets": inv_unique_reward_assets,
    "inv_amounts_in_range": inv_amounts_in_range,
    "inv_streams_well_formed": inv_streams_well_formed,
    "inv_streams_not_from_future": inv_streams_not_from_future,
    "inv_streams_unexpired": inv_streams_unexpired,
}


def check_all(state: PoolState) -> list[str]:
    """Return list of violated invariant IDs (empty = all pass)."""
    return [
        inv_id
        for inv_id, check_fn in INVARIANT_REGISTRY.items()
        if not check_fn(state)
    ]


def check_account(pool: PoolState, user: UserAccount) -> list[str]:
    """Violations for one account checked against the pool it belongs to."""
    violations = []
    if not _uint(user.staked) or user.staked > pool.total_staked:
        violations.append("inv_account_stake_bounded")
    for asset, position in user.reward_positions.items():
        if position.asset != asset or pool.find_ledger(asset) is None:
            violations.append("inv_position_has_ledger")
            break
        if not _uint(position.debt) or not _uint(position.pending):
            violations.append("inv_position_in_range")
            break
    return violations


def check_transition(pre: PoolState, post: PoolState) -> list[str]:
    """Violations that need both states: monotone accumulators and clocks."""
    violations = check_all(post)
    if post.manager != pre.manager or post.stake_asset != pre.stake_asset:
        violations.append("inv_identity_fixed")
    before = {ledger.asset: ledger for ledger in pre.reward_ledgers}
    for ledger in post.reward_ledgers:
        old = before.pop(ledger.asset, None)
        if old is None:
            continue
        if ledger.accumulator < old.accumulator:
            violations.append("inv_accumulator_monotone")
        if ledger.last_accrual_time < old.last_accrual_time:
            violations.append("inv_accrual_time_monotone")
    if before:
        violations.append("inv_ledgers_never_removed")
    return violations
