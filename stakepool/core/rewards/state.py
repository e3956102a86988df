"""Record construction and serialization for the reward pool.

`initial_pool()` builds the pool record written at instantiation.

Round-trip property (tested): `pool_from_dict(pool_to_dict(p)) == p` and the
same for accounts. Decoding validates every field and raises `CorruptRecord`
on anything malformed.
"""

from __future__ import annotations

from typing import Any, Mapping

from .errors import CorruptRecord
from .math import MAX_TIMESTAMP, MAX_UINT128
from .types import (
    PoolState,
    RewardLedger,
    RewardStream,
    UserAccount,
    UserRewardPosition,
)


def initial_pool(
    *,
    stake_asset: str,
    stake_endpoint: str,
    manager: str,
    now: int,
    reward_asset: str | None = None,
    reward_endpoint: str | None = None,
) -> PoolState:
    ledgers: tuple[RewardLedger, ...] = ()
    if reward_asset is not None:
        ledgers = (
            RewardLedger(asset=reward_asset, endpoint=reward_endpoint or "", last_accrual_time=now),
        )
    return PoolState(
        stake_asset=stake_asset,
        stake_endpoint=stake_endpoint,
        manager=manager,
        total_staked=0,
        reward_ledgers=ledgers,
    )


def _require_str(value: Any, *, name: str, non_empty: bool = True) -> str:
    if not isinstance(value, str):
        raise CorruptRecord(f"{name} must be a string")
    if non_empty and not value:
        raise CorruptRecord(f"{name} must be non-empty")
    return value


def _require_int(value: Any, *, name: str, max_value: int = MAX_UINT128) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise CorruptRecord(f"{name} must be an int")
    if value < 0 or value > max_value:
        raise CorruptRecord(f"{name} out of range")
    return int(value)


def _require_mapping(value: Any, *, name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise CorruptRecord(f"{name} must be an object")
    return value


def _require_list(value: Any, *, name: str) -> list[Any]:
    if not isinstance(value, list):
        raise CorruptRecord(f"{name} must be a list")
    return value


def stream_to_dict(stream: RewardStream) -> dict[str, int]:
    return {
        "total_amount": stream.total_amount,
        "release_rate": stream.release_rate,
        "start_time": stream.start_time,
        "end_time": stream.end_time,
    }


def ledger_to_dict(ledger: RewardLedger) -> dict[str, Any]:
    return {
        "asset": ledger.asset,
        "endpoint": ledger.endpoint,
        "accumulator": ledger.accumulator,
        "last_accrual_time": ledger.last_accrual_time,
        "streams": [stream_to_dict(s) for s in ledger.streams],
    }


def pool_to_dict(pool: PoolState) -> dict[str, Any]:
    """Serialize a PoolState to a plain JSON-compatible dict."""
    return {
        "stake_asset": pool.stake_asset,
        "stake_endpoint": pool.stake_endpoint,
        "manager": pool.manager,
        "total_staked": pool.total_staked,
        "reward_ledgers": [ledger_to_dict(ledger) for ledger in pool.reward_ledgers],
    }


def account_to_dict(user: UserAccount) -> dict[str, Any]:
    """Serialize a UserAccount; positions become an ordered list."""
    return {
        "staked": user.staked,
        "reward_positions": [
            {"asset": p.asset, "debt": p.debt, "pending": p.pending}
            for p in user.reward_positions.values()
        ],
    }


def _stream_from_dict(d: Any, *, name: str) -> RewardStream:
    d = _require_mapping(d, name=name)
    return RewardStream(
        total_amount=_require_int(d.get("total_amount"), name=f"{name}.total_amount"),
        release_rate=_require_int(d.get("release_rate"), name=f"{name}.release_rate"),
        start_time=_require_int(d.get("start_time"), name=f"{name}.start_time", max_value=MAX_TIMESTAMP),
        end_time=_require_int(d.get("end_time"), name=f"{name}.end_time", max_value=MAX_TIMESTAMP),
    )


def _ledger_from_dict(d: Any, *, name: str) -> RewardLedger:
    d = _require_mapping(d, name=name)
    streams = _require_list(d.get("streams"), name=f"{name}.streams")
    return RewardLedger(
        asset=_require_str(d.get("asset"), name=f"{name}.asset"),
        endpoint=_require_str(d.get("endpoint"), name=f"{name}.endpoint", non_empty=False),
        accumulator=_require_int(d.get("accumulator"), name=f"{name}.accumulator"),
        last_accrual_time=_require_int(
            d.get("last_accrual_time"), name=f"{name}.last_accrual_time", max_value=MAX_TIMESTAMP
        ),
        streams=tuple(
            _stream_from_dict(s, name=f"{name}.streams[{i}]") for i, s in enumerate(streams)
        ),
    )


def pool_from_dict(d: Any) -> PoolState:
    """Deserialize a pool record. Raises CorruptRecord on malformed input."""
    d = _require_mapping(d, name="pool")
    ledgers_raw = _require_list(d.get("reward_ledgers"), name="pool.reward_ledgers")
    ledgers = tuple(
        _ledger_from_dict(entry, name=f"pool.reward_ledgers[{i}]")
        for i, entry in enumerate(ledgers_raw)
    )
    if len({ledger.asset for ledger in ledgers}) != len(ledgers):
        raise CorruptRecord("duplicate reward ledger asset")
    return PoolState(
        stake_asset=_require_str(d.get("stake_asset"), name="pool.stake_asset"),
        stake_endpoint=_require_str(d.get("stake_endpoint"), name="pool.stake_endpoint", non_empty=False),
        manager=_require_str(d.get("manager"), name="pool.manager"),
        total_staked=_require_int(d.get("total_staked"), name="pool.total_staked"),
        reward_ledgers=ledgers,
    )


def account_from_dict(d: Any) -> UserAccount:
    """Deserialize an account record. Raises CorruptRecord on malformed input."""
    d = _require_mapping(d, name="account")
    positions: dict[str, UserRewardPosition] = {}
    for i, entry in enumerate(_require_list(d.get("reward_positions"), name="account.reward_positions")):
        entry = _require_mapping(entry, name=f"account.reward_positions[{i}]")
        asset = _require_str(entry.get("asset"), name=f"account.reward_positions[{i}].asset")
        if asset in positions:
            raise CorruptRecord(f"duplicate reward position for {asset}")
        positions[asset] = UserRewardPosition(
            asset=asset,
            debt=_require_int(entry.get("debt"), name=f"account.reward_positions[{i}].debt"),
            pending=_require_int(entry.get("pending"), name=f"account.reward_positions[{i}].pending"),
        )
    return UserAccount(
        staked=_require_int(d.get("staked"), name="account.staked"),
        reward_positions=positions,
    )
