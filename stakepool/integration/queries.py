"""
Read-only queries against a pool store.

Queries never write: `GetPendingRewards` runs the accrual engine on loaded
copies and discards the result.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Tuple, Union

from ..core.rewards.accrual import advance, pending_rewards
from ..core.rewards.errors import InvalidMessage, NoAccount
from ..core.rewards.state import account_to_dict, pool_to_dict
from ..core.rewards.types import PoolState, UserAccount
from ..state.store import MemoryStore
from .operations import GetPendingRewards, GetPoolState, GetUserAccount, Query, parse_query_msg

QueryResult = Union[PoolState, UserAccount, List[Tuple[str, int]]]


def _load_account(store: MemoryStore, address: str) -> UserAccount:
    user = store.get_user(address)
    if user is None:
        raise NoAccount(f"no deposit found for {address}")
    return user


def query(store: MemoryStore, now: int, msg: Union[Query, Mapping[str, Any]]) -> QueryResult:
    """
    Answer one query.

    Returns:
        - GetPoolState: the stored `PoolState`
        - GetPendingRewards: `[(asset, pending)]` as of `now`, in position order
        - GetUserAccount: the stored `UserAccount`
    """
    if not isinstance(msg, (GetPoolState, GetPendingRewards, GetUserAccount)):
        msg = parse_query_msg(msg)

    if isinstance(msg, GetPoolState):
        return store.load()
    if isinstance(msg, GetPendingRewards):
        user = _load_account(store, msg.user)
        _pool, user = advance(store.load(), user, now)
        return pending_rewards(user)
    if isinstance(msg, GetUserAccount):
        return _load_account(store, msg.user)
    raise InvalidMessage(f"unknown query: {type(msg).__name__}")


def query_json(store: MemoryStore, now: int, msg: Union[Query, Mapping[str, Any]]) -> Dict[str, Any]:
    """Like `query()` but returns a JSON-compatible dict."""
    result = query(store, now, msg)
    if isinstance(result, PoolState):
        return {"pool": pool_to_dict(result)}
    if isinstance(result, UserAccount):
        return {"account": account_to_dict(result)}
    return {"rewards": [{"asset": asset, "amount": str(amount)} for asset, amount in result]}
