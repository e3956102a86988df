"""
Command and query messages for the staking pool.

Messages arrive as JSON-style objects with a single snake_case key naming the
operation, e.g.:

    {"withdraw": {"amount": 5}}
    {"claim": {}}
    {"receive": {"sender": "alice", "from": "alice", "amount": 100, "msg": {"deposit": {}}}}
    {"query_pending_rewards": {"user": "alice"}}

An inbound transfer's `msg` payload may be a mapping, JSON text, or
base64-encoded JSON bytes (the form token contracts forward). Any structural
problem raises `InvalidMessage`.
"""

from __future__ import annotations

import base64
import binascii
import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from ..core.rewards.errors import InvalidMessage
from ..core.rewards.math import MAX_TIMESTAMP, MAX_UINT128


def _require_str(value: Any, *, name: str, non_empty: bool = True, max_len: int = 4096) -> str:
    if not isinstance(value, str):
        raise InvalidMessage(f"{name} must be a string")
    if non_empty and not value:
        raise InvalidMessage(f"{name} must be non-empty")
    if max_len > 0 and len(value) > max_len:
        raise InvalidMessage(f"{name} too large")
    if any(0xD800 <= ord(ch) <= 0xDFFF for ch in value):
        raise InvalidMessage(f"{name} must not contain surrogate code points")
    return value


def _optional_str(value: Any, *, name: str) -> Optional[str]:
    if value is None:
        return None
    return _require_str(value, name=name)


def _require_int(value: Any, *, name: str, max_value: int = MAX_UINT128) -> int:
    # Token contracts send 128-bit amounts as decimal strings.
    if isinstance(value, str) and value.isascii() and value.isdigit():
        value = int(value)
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidMessage(f"{name} must be an int")
    if value < 0 or value > max_value:
        raise InvalidMessage(f"{name} out of range")
    return int(value)


def _require_dict_str_keys(value: Any, *, name: str) -> Dict[str, Any]:
    if not isinstance(value, Mapping):
        raise InvalidMessage(f"{name} must be an object")
    for k in value.keys():
        if not isinstance(k, str):
            raise InvalidMessage(f"{name} keys must be strings")
    return dict(value)


def _single_entry(msg: Any, *, name: str) -> tuple[str, Dict[str, Any]]:
    msg = _require_dict_str_keys(msg, name=name)
    if len(msg) != 1:
        raise InvalidMessage(f"{name} must have exactly one key")
    (kind, body), = msg.items()
    if body is None:
        body = {}
    return kind, _require_dict_str_keys(body, name=f"{name}.{kind}")


# -- Inbound transfer payloads --------------------------------------------


@dataclass(frozen=True)
class Deposit:
    """Stake the transferred amount."""


@dataclass(frozen=True)
class FundRewardStream:
    """Release the transferred reward amount over `release_duration` seconds."""

    release_duration: int


Payload = Union[Deposit, FundRewardStream]


@dataclass(frozen=True)
class InboundTransfer:
    """
    Tokens received from an asset contract.

    `source_asset` is the asset contract that delivered the tokens (the
    caller of `receive`); `sender` is the account the tokens came from and the
    one credited for a deposit.
    """

    source_asset: str
    sender: str
    amount: int
    payload: Payload


# -- Commands -------------------------------------------------------------


@dataclass(frozen=True)
class Instantiate:
    stake_asset: str
    stake_endpoint: str
    reward_asset: Optional[str] = None
    reward_endpoint: Optional[str] = None


@dataclass(frozen=True)
class RegisterRewardAsset:
    asset: str
    endpoint: str


@dataclass(frozen=True)
class UpdateRewardAssetEndpoint:
    asset: str
    endpoint: str


@dataclass(frozen=True)
class Withdraw:
    amount: int


@dataclass(frozen=True)
class Claim:
    pass


@dataclass(frozen=True)
class Receive:
    transfer: InboundTransfer


Command = Union[Instantiate, RegisterRewardAsset, UpdateRewardAssetEndpoint, Withdraw, Claim, Receive]


# -- Queries --------------------------------------------------------------


@dataclass(frozen=True)
class GetPoolState:
    pass


@dataclass(frozen=True)
class GetPendingRewards:
    user: str


@dataclass(frozen=True)
class GetUserAccount:
    user: str


Query = Union[GetPoolState, GetPendingRewards, GetUserAccount]


@dataclass(frozen=True)
class Context:
    """
    Host-supplied call context.

    `caller` is the authenticated caller, `now` the host time in seconds and
    `self_endpoint` the endpoint asset contracts should notify on transfers.
    """

    caller: str
    now: int
    self_endpoint: str = ""


# -- Parsing --------------------------------------------------------------


def decode_payload_bytes(raw: Any) -> Any:
    """Turn a `msg` payload in any accepted encoding into a plain object."""
    if isinstance(raw, Mapping):
        return raw
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = base64.b64decode(bytes(raw), validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise InvalidMessage(f"msg is not base64-encoded JSON: {exc}") from exc
    if not isinstance(raw, str):
        raise InvalidMessage("msg must be an object, JSON text or base64 bytes")
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise InvalidMessage(f"msg is not valid JSON: {exc}") from exc


def parse_payload(raw: Any) -> Payload:
    kind, body = _single_entry(decode_payload_bytes(raw), name="msg")
    if kind == "deposit":
        return Deposit()
    if kind == "fund_reward_stream":
        return FundRewardStream(
            release_duration=_require_int(
                body.get("release_duration"), name="release_duration", max_value=MAX_TIMESTAMP
            )
        )
    raise InvalidMessage(f"unknown receive payload: {kind}")


def parse_execute_msg(msg: Any, *, caller: str) -> Command:
    """
    Parse one command object.

    `caller` becomes the `source_asset` of a `receive`, since only the asset
    contract itself can deliver tokens.
    """
    caller = _require_str(caller, name="caller")
    kind, body = _single_entry(msg, name="execute_msg")

    if kind == "instantiate":
        return Instantiate(
            stake_asset=_require_str(body.get("stake_asset"), name="stake_asset"),
            stake_endpoint=_require_str(body.get("stake_endpoint", ""), name="stake_endpoint", non_empty=False),
            reward_asset=_optional_str(body.get("reward_asset"), name="reward_asset"),
            reward_endpoint=_optional_str(body.get("reward_endpoint"), name="reward_endpoint"),
        )
    if kind == "register_reward_asset":
        return RegisterRewardAsset(
            asset=_require_str(body.get("asset"), name="asset"),
            endpoint=_require_str(body.get("endpoint", ""), name="endpoint", non_empty=False),
        )
    if kind == "update_reward_asset_endpoint":
        return UpdateRewardAssetEndpoint(
            asset=_require_str(body.get("asset"), name="asset"),
            endpoint=_require_str(body.get("endpoint"), name="endpoint", non_empty=False),
        )
    if kind == "withdraw":
        return Withdraw(amount=_require_int(body.get("amount"), name="amount"))
    if kind == "claim":
        return Claim()
    if kind == "receive":
        sender = body.get("from", body.get("sender"))
        return Receive(
            transfer=InboundTransfer(
                source_asset=caller,
                sender=_require_str(sender, name="from"),
                amount=_require_int(body.get("amount"), name="amount"),
                payload=parse_payload(body.get("msg")),
            )
        )
    raise InvalidMessage(f"unknown command: {kind}")


def parse_query_msg(msg: Any) -> Query:
    kind, body = _single_entry(msg, name="query_msg")
    if kind == "query_pool_state":
        return GetPoolState()
    if kind == "query_pending_rewards":
        return GetPendingRewards(user=_require_str(body.get("user"), name="user"))
    if kind == "query_user_account":
        return GetUserAccount(user=_require_str(body.get("user"), name="user"))
    raise InvalidMessage(f"unknown query: {kind}")


def validate_command(cmd: Command, *, caller: str) -> Command:
    """
    Check a command built in code with the same rules `parse_execute_msg` applies.

    Returns the command with decimal-string amounts normalized to ints. A
    `receive` must come from its own source asset.
    """
    caller = _require_str(caller, name="caller")
    if isinstance(cmd, Instantiate):
        return parse_execute_msg(
            {
                "instantiate": {
                    "stake_asset": cmd.stake_asset,
                    "stake_endpoint": cmd.stake_endpoint,
                    "reward_asset": cmd.reward_asset,
                    "reward_endpoint": cmd.reward_endpoint,
                }
            },
            caller=caller,
        )
    if isinstance(cmd, RegisterRewardAsset):
        return parse_execute_msg({"register_reward_asset": {"asset": cmd.asset, "endpoint": cmd.endpoint}}, caller=caller)
    if isinstance(cmd, UpdateRewardAssetEndpoint):
        return parse_execute_msg(
            {"update_reward_asset_endpoint": {"asset": cmd.asset, "endpoint": cmd.endpoint}}, caller=caller
        )
    if isinstance(cmd, Withdraw):
        return Withdraw(amount=_require_int(cmd.amount, name="amount"))
    if isinstance(cmd, Claim):
        return cmd
    if isinstance(cmd, Receive):
        transfer = cmd.transfer
        if not isinstance(transfer, InboundTransfer):
            raise InvalidMessage("receive.transfer must be an InboundTransfer")
        if transfer.source_asset != caller:
            raise InvalidMessage(f"transfer of {transfer.source_asset!r} must be delivered by that asset")
        payload = transfer.payload
        if isinstance(payload, FundRewardStream):
            payload = FundRewardStream(
                release_duration=_require_int(payload.release_duration, name="release_duration", max_value=MAX_TIMESTAMP)
            )
        elif not isinstance(payload, Deposit):
            raise InvalidMessage(f"unknown receive payload: {type(payload).__name__}")
        return Receive(
            transfer=InboundTransfer(
                source_asset=_require_str(transfer.source_asset, name="caller"),
                sender=_require_str(transfer.sender, name="from"),
                amount=_require_int(transfer.amount, name="amount"),
                payload=payload,
            )
        )
    raise InvalidMessage(f"unknown command: {type(cmd).__name__}")
