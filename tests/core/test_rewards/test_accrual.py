"""Tests for stakepool/core/rewards/accrual.py: the reward-per-share engine.

Covers the worked scenarios (single depositor, proportional split, full
stream release) plus the edge cases around empty pools, truncation and
repeated advances.
"""

from dataclasses import replace

import pytest

from stakepool.core.rewards import (
    AssetNotFound,
    InvalidTimestamp,
    PoolState,
    RewardLedger,
    RewardStream,
    TransferInstruction,
    UserAccount,
    UserRewardPosition,
    accrue_ledger,
    accrue_pool,
    advance,
    pending_rewards,
    settle_position,
    sync_debts,
    take_payouts,
)


def _stream(total: int, duration: int, start: int = 0) -> RewardStream:
    return RewardStream(
        total_amount=total,
        release_rate=total // duration,
        start_time=start,
        end_time=start + duration,
    )


def _pool(total_staked: int, *ledgers: RewardLedger) -> PoolState:
    return PoolState(
        stake_asset="LP",
        stake_endpoint="lp-hash",
        manager="admin",
        total_staked=total_staked,
        reward_ledgers=ledgers,
    )


def _ledger(asset: str = "RWD", *streams: RewardStream, accumulator: int = 0, last: int = 0) -> RewardLedger:
    return RewardLedger(
        asset=asset,
        endpoint=f"{asset.lower()}-hash",
        accumulator=accumulator,
        last_accrual_time=last,
        streams=streams,
    )


def _user(staked: int, *assets: str) -> UserAccount:
    """Account that already tracks `assets` with zero debt."""
    return UserAccount(
        staked=staked,
        reward_positions={a: UserRewardPosition(asset=a) for a in assets},
    )


# ---------------------------------------------------------------------------
# accrue_ledger
# ---------------------------------------------------------------------------

class TestAccrueLedger:
    def test_partial_release(self):
        ledger = accrue_ledger(_ledger("RWD", _stream(1000, 100)), total_staked=100, now=50)
        assert ledger.accumulator == 5
        assert ledger.last_accrual_time == 50
        assert len(ledger.streams) == 1

    def test_stream_dropped_at_end(self):
        ledger = accrue_ledger(_ledger("RWD", _stream(800, 80)), total_staked=400, now=80)
        assert ledger.accumulator == 2
        assert ledger.streams == ()

    def test_streams_summed(self):
        ledger = accrue_ledger(
            _ledger("RWD", _stream(1000, 100), _stream(500, 50)),
            total_staked=10,
            now=20,
        )
        # 10*20 + 10*20 = 400 released
        assert ledger.accumulator == 40

    def test_truncation_dust_lost(self):
        ledger = accrue_ledger(_ledger("RWD", _stream(10, 1)), total_staked=3, now=1)
        assert ledger.accumulator == 3

    def test_split_accrual_matches_single(self):
        once = accrue_ledger(_ledger("RWD", _stream(1000, 1000)), total_staked=100, now=1000)
        first = accrue_ledger(_ledger("RWD", _stream(1000, 1000)), total_staked=100, now=400)
        twice = accrue_ledger(first, total_staked=100, now=1000)
        assert once == twice
        assert twice.accumulator == 10

    def test_same_instant_is_noop(self):
        ledger = accrue_ledger(_ledger("RWD", _stream(1000, 100)), total_staked=100, now=50)
        assert accrue_ledger(ledger, total_staked=100, now=50) == ledger

    def test_empty_pool_forfeits_elapsed_seconds(self):
        idle = accrue_ledger(_ledger("RWD", _stream(1000, 100)), total_staked=0, now=50)
        assert idle.accumulator == 0
        assert idle.last_accrual_time == 50
        assert len(idle.streams) == 1

        later = accrue_ledger(idle, total_staked=100, now=100)
        # Only the second half of the stream is ever credited.
        assert later.accumulator == 5
        assert later.streams == ()

    def test_empty_pool_drops_finished_streams(self):
        idle = accrue_ledger(_ledger("RWD", _stream(1000, 100)), total_staked=0, now=150)
        assert idle.streams == ()
        assert idle.accumulator == 0

    def test_time_moving_backwards(self):
        with pytest.raises(InvalidTimestamp):
            accrue_ledger(_ledger("RWD", last=100), total_staked=1, now=99)

    def test_stream_not_started_contributes_nothing(self):
        ledger = accrue_ledger(_ledger("RWD", _stream(100, 10, start=50), last=0), total_staked=1, now=40)
        assert ledger.accumulator == 0
        assert len(ledger.streams) == 1


class TestAccruePool:
    def test_every_ledger_advanced(self):
        pool = _pool(100, _ledger("A", _stream(1000, 100)), _ledger("B", _stream(200, 100)))
        out = accrue_pool(pool, 100)
        assert [l.accumulator for l in out.reward_ledgers] == [10, 2]
        assert all(l.last_accrual_time == 100 for l in out.reward_ledgers)
        assert out.total_staked == 100


# ---------------------------------------------------------------------------
# advance / settle_position
# ---------------------------------------------------------------------------

class TestAdvance:
    def test_single_depositor_halfway(self):
        pool = _pool(100, _ledger("RWD", _stream(1000, 100)))
        _pool_after, user = advance(pool, _user(100, "RWD"), 50)
        assert user.reward_positions["RWD"].pending == 500
        assert user.reward_positions["RWD"].debt == 500

    def test_proportional_split(self):
        pool = _pool(400, _ledger("RWD", _stream(800, 80)))
        _, alice = advance(pool, _user(100, "RWD"), 80)
        _, bob = advance(pool, _user(300, "RWD"), 80)
        assert alice.reward_positions["RWD"].pending == 200
        assert bob.reward_positions["RWD"].pending == 600

    def test_full_stream_release(self):
        pool = _pool(100, _ledger("RWD", _stream(1000, 1000)))
        pool, user = advance(pool, _user(100, "RWD"), 1000)
        assert user.reward_positions["RWD"].pending == 1000
        assert pool.reward_ledgers[0].streams == ()

    def test_idempotent_at_same_time(self):
        pool = _pool(100, _ledger("A", _stream(1000, 100)), _ledger("B", _stream(300, 30)))
        pool1, user1 = advance(pool, _user(100, "A"), 20)
        pool2, user2 = advance(pool1, user1, 20)
        assert pool1 == pool2
        assert user1 == user2

    def test_ledger_added_after_stake_pays_from_registration(self):
        # The account staked before "NEW" existed, so it earns all of it.
        pool = _pool(100, _ledger("RWD"), _ledger("NEW", accumulator=7, last=10))
        _, user = advance(pool, _user(100, "RWD"), 10)
        position = user.reward_positions["NEW"]
        assert position.debt == 700
        assert position.pending == 700

    def test_empty_pool_leaves_user_untouched(self):
        pool = _pool(0, _ledger("RWD", _stream(1000, 100)))
        user = UserAccount()
        pool_after, user_after = advance(pool, user, 30)
        assert user_after is user
        assert pool_after.reward_ledgers[0].last_accrual_time == 30

    def test_positions_follow_ledger_order(self):
        pool = _pool(10, _ledger("B"), _ledger("A"))
        _, user = advance(pool, UserAccount(staked=10), 0)
        assert list(user.reward_positions) == ["B", "A"]

    def test_settle_keeps_existing_pending(self):
        ledger = _ledger("RWD", accumulator=3)
        user = UserAccount(
            staked=10,
            reward_positions={"RWD": UserRewardPosition(asset="RWD", debt=10, pending=4)},
        )
        settled = settle_position(ledger, user)
        assert settled.reward_positions["RWD"] == UserRewardPosition(asset="RWD", debt=30, pending=24)
        # input untouched
        assert user.reward_positions["RWD"].pending == 4


class TestNoRetroactiveRewards:
    def test_late_depositor_gets_nothing_from_the_past(self):
        pool = accrue_pool(_pool(100, _ledger("RWD", _stream(2000, 100))), 50)
        assert pool.reward_ledgers[0].accumulator == 10

        pool, late = advance(pool, UserAccount(), 50)
        late = replace(late, staked=100)
        pool = replace(pool, total_staked=200)
        late = sync_debts(pool, late)
        assert late.reward_positions["RWD"].debt == 1000

        _, same = advance(pool, late, 50)
        assert same.reward_positions["RWD"].pending == 0

        # The remaining 1000 is split over 200 staked from here on.
        _, late = advance(pool, late, 100)
        assert late.reward_positions["RWD"].pending == 500


# ---------------------------------------------------------------------------
# sync_debts / pending_rewards / take_payouts
# ---------------------------------------------------------------------------

class TestSyncDebts:
    def test_rebases_to_new_stake(self):
        pool = _pool(200, _ledger("RWD", accumulator=5))
        user = UserAccount(
            staked=200,
            reward_positions={"RWD": UserRewardPosition(asset="RWD", debt=500, pending=500)},
        )
        synced = sync_debts(pool, user)
        assert synced.reward_positions["RWD"] == UserRewardPosition(asset="RWD", debt=1000, pending=500)

    def test_opens_missing_positions_at_current_accumulator(self):
        pool = _pool(10, _ledger("A", accumulator=5), _ledger("B", accumulator=2))
        synced = sync_debts(pool, UserAccount(staked=10))
        assert synced.reward_positions == {
            "A": UserRewardPosition(asset="A", debt=50, pending=0),
            "B": UserRewardPosition(asset="B", debt=20, pending=0),
        }


class TestPayouts:
    def _setup(self):
        pool = _pool(10, _ledger("A"), _ledger("B"), _ledger("C"))
        user = UserAccount(
            staked=10,
            reward_positions={
                "A": UserRewardPosition(asset="A", pending=5),
                "B": UserRewardPosition(asset="B", pending=0),
                "C": UserRewardPosition(asset="C", pending=7),
            },
        )
        return pool, user

    def test_pending_rewards_in_position_order(self):
        _, user = self._setup()
        assert pending_rewards(user) == [("A", 5), ("B", 0), ("C", 7)]

    def test_only_nonzero_balances_paid(self):
        pool, user = self._setup()
        user, transfers = take_payouts(pool, user, "alice")
        assert transfers == [
            TransferInstruction(asset="A", endpoint="a-hash", recipient="alice", amount=5),
            TransferInstruction(asset="C", endpoint="c-hash", recipient="alice", amount=7),
        ]
        assert pending_rewards(user) == [("A", 0), ("B", 0), ("C", 0)]

    def test_nothing_owed(self):
        pool = _pool(10, _ledger("A"))
        user, transfers = take_payouts(pool, _user(10, "A"), "alice")
        assert transfers == []
        assert pending_rewards(user) == [("A", 0)]

    def test_missing_ledger(self):
        pool = _pool(10, _ledger("A"))
        user = UserAccount(staked=10, reward_positions={"Z": UserRewardPosition(asset="Z", pending=1)})
        with pytest.raises(AssetNotFound):
            take_payouts(pool, user, "alice")
