"""Data types for the reward pool.

All records are frozen dataclasses. Engine and handler code never mutates a
record in place; it builds a new one with ``dataclasses.replace()``.

Units/conventions:
- amounts, ``accumulator``, ``debt`` and ``pending`` are unsigned 128-bit ints,
- times are unsigned 64-bit seconds supplied by the host,
- ``accumulator`` is reward per staked unit with a precision factor of 1.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, unique
from typing import Mapping, Optional


@unique
class Action(Enum):
    """One member per state-changing operation."""
    INSTANTIATE = "instantiate"
    REGISTER_REWARD_ASSET = "register_reward_asset"
    UPDATE_REWARD_ASSET_ENDPOINT = "update_reward_asset_endpoint"
    DEPOSIT = "deposit"
    FUND_REWARD_STREAM = "fund_reward_stream"
    WITHDRAW = "withdraw"
    CLAIM = "claim"


@unique
class Event(Enum):
    """Event name attached to a successful operation outcome."""
    INSTANTIATED = "Instantiated"
    REWARD_ASSET_REGISTERED = "RewardAssetRegistered"
    REWARD_ASSET_ENDPOINT_UPDATED = "RewardAssetEndpointUpdated"
    DEPOSITED = "Deposited"
    REWARD_STREAM_FUNDED = "RewardStreamFunded"
    WITHDRAWN = "Withdrawn"
    CLAIMED = "Claimed"


@dataclass(frozen=True)
class RewardStream:
    """Constant-rate release of ``total_amount`` between start and end time."""

    total_amount: int
    release_rate: int
    start_time: int
    end_time: int


@dataclass(frozen=True)
class RewardLedger:
    """Accrual state of one reward asset."""

    asset: str
    endpoint: str
    accumulator: int = 0
    last_accrual_time: int = 0
    streams: tuple[RewardStream, ...] = ()


@dataclass(frozen=True)
class PoolState:
    """The single process-wide pool record."""

    stake_asset: str
    stake_endpoint: str
    manager: str
    total_staked: int = 0
    reward_ledgers: tuple[RewardLedger, ...] = ()

    def find_ledger(self, asset: str) -> Optional[RewardLedger]:
        for ledger in self.reward_ledgers:
            if ledger.asset == asset:
                return ledger
        return None


@dataclass(frozen=True)
class UserRewardPosition:
    asset: str
    debt: int = 0
    pending: int = 0


@dataclass(frozen=True)
class UserAccount:
    """Stake and per-asset reward positions of one depositor.

    ``reward_positions`` is keyed by reward asset and keeps insertion order,
    which is also the order of outbound reward transfers.
    """

    staked: int = 0
    reward_positions: Mapping[str, UserRewardPosition] = field(default_factory=dict)


@dataclass(frozen=True)
class TransferInstruction:
    """Outbound token transfer for the host to deliver."""

    asset: str
    endpoint: str
    recipient: str
    amount: int


@dataclass(frozen=True)
class RegisterReceiverInstruction:
    """Ask ``asset`` to notify ``receiver_endpoint`` of inbound transfers."""

    asset: str
    endpoint: str
    receiver_endpoint: str


Instruction = TransferInstruction | RegisterReceiverInstruction
