"""Dispatch-table handlers for the staking pool.

``execute(store, ctx, msg)`` is the single entry point for state changes. It:

1. Parses ``msg`` (a command object or its JSON-style mapping).
2. Dispatches to the handler for the command inside ``store.transaction()``.
3. Optionally checks invariants on the post-state (``PoolConfig.check_invariants``).
4. Returns a ``Response`` (accepted, or rejected with the error code).

A rejected command leaves the store exactly as it was.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Mapping, Optional

from ..core.rewards.accrual import accrue_pool, advance, sync_debts, take_payouts
from ..core.rewards.errors import (
    AlreadyInitialized,
    InvalidMessage,
    InvalidTimestamp,
    InvariantViolation,
    PoolError,
)
from ..core.rewards.guards import (
    guard_claim,
    guard_deposit,
    guard_fund_reward_stream,
    guard_register_reward_asset,
    guard_update_reward_asset_endpoint,
    guard_withdraw,
)
from ..core.rewards.invariants import check_account, check_all, check_transition
from ..core.rewards.math import MAX_TIMESTAMP, checked_add, checked_sub, release_rate, stream_end_time
from ..core.rewards.state import initial_pool
from ..core.rewards.types import (
    Action,
    Event,
    Instruction,
    PoolState,
    RegisterReceiverInstruction,
    RewardLedger,
    RewardStream,
    TransferInstruction,
    UserAccount,
)
from ..state.store import MemoryStore, StoreTransaction
from .config import DEFAULT_CONFIG, PoolConfig
from .operations import (
    Claim,
    Command,
    Context,
    Deposit,
    FundRewardStream,
    InboundTransfer,
    Instantiate,
    Receive,
    RegisterRewardAsset,
    UpdateRewardAssetEndpoint,
    Withdraw,
    parse_execute_msg,
    validate_command,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Response:
    """Outcome of one command."""

    ok: bool
    event: Optional[Event] = None
    messages: tuple[Instruction, ...] = ()
    attributes: Mapping[str, str] = field(default_factory=dict)
    error: Optional[str] = None
    detail: Optional[str] = None


HandlerFn = Callable[[StoreTransaction, Context, Any, PoolConfig], Response]


def _verify(config: PoolConfig, pre: Optional[PoolState], post: PoolState, *users: UserAccount) -> None:
    if not config.check_invariants:
        return
    violations = check_all(post) if pre is None else check_transition(pre, post)
    for user in users:
        violations.extend(check_account(post, user))
    if violations:
        raise InvariantViolation(list(dict.fromkeys(violations)))


def _replace_ledger(pool: PoolState, ledger: RewardLedger) -> PoolState:
    return replace(
        pool,
        reward_ledgers=tuple(
            ledger if existing.asset == ledger.asset else existing
            for existing in pool.reward_ledgers
        ),
    )


# -- Manager commands -----------------------------------------------------


def handle_instantiate(tx: StoreTransaction, ctx: Context, cmd: Instantiate, config: PoolConfig) -> Response:
    if tx.is_initialized():
        raise AlreadyInitialized("pool already instantiated")
    pool = initial_pool(
        stake_asset=cmd.stake_asset,
        stake_endpoint=cmd.stake_endpoint,
        manager=ctx.caller,
        now=ctx.now,
        reward_asset=cmd.reward_asset,
        reward_endpoint=cmd.reward_endpoint,
    )
    _verify(config, None, pool)
    tx.save(pool)

    messages: list[Instruction] = [
        RegisterReceiverInstruction(
            asset=cmd.stake_asset, endpoint=cmd.stake_endpoint, receiver_endpoint=ctx.self_endpoint
        )
    ]
    if cmd.reward_asset is not None:
        messages.append(
            RegisterReceiverInstruction(
                asset=cmd.reward_asset,
                endpoint=cmd.reward_endpoint or "",
                receiver_endpoint=ctx.self_endpoint,
            )
        )
    return Response(
        ok=True,
        event=Event.INSTANTIATED,
        messages=tuple(messages),
        attributes={"action": Action.INSTANTIATE.value, "manager": ctx.caller},
    )


def handle_register_reward_asset(
    tx: StoreTransaction, ctx: Context, cmd: RegisterRewardAsset, config: PoolConfig,
) -> Response:
    pool = tx.load()
    guard_register_reward_asset(pool, ctx.caller, cmd.asset, max_reward_assets=config.max_reward_assets)

    ledger = RewardLedger(asset=cmd.asset, endpoint=cmd.endpoint, last_accrual_time=ctx.now)
    post = replace(pool, reward_ledgers=pool.reward_ledgers + (ledger,))
    _verify(config, pool, post)
    tx.save(post)

    return Response(
        ok=True,
        event=Event.REWARD_ASSET_REGISTERED,
        messages=(
            RegisterReceiverInstruction(
                asset=cmd.asset, endpoint=cmd.endpoint, receiver_endpoint=ctx.self_endpoint
            ),
        ),
        attributes={"action": Action.REGISTER_REWARD_ASSET.value, "asset": cmd.asset},
    )


def handle_update_reward_asset_endpoint(
    tx: StoreTransaction, ctx: Context, cmd: UpdateRewardAssetEndpoint, config: PoolConfig,
) -> Response:
    pool = tx.load()
    ledger = guard_update_reward_asset_endpoint(pool, ctx.caller, cmd.asset)

    post = _replace_ledger(pool, replace(ledger, endpoint=cmd.endpoint))
    _verify(config, pool, post)
    tx.save(post)

    return Response(
        ok=True,
        event=Event.REWARD_ASSET_ENDPOINT_UPDATED,
        attributes={
            "action": Action.UPDATE_REWARD_ASSET_ENDPOINT.value,
            "asset": cmd.asset,
            "endpoint": cmd.endpoint,
        },
    )


# -- Depositor commands ---------------------------------------------------


def handle_withdraw(tx: StoreTransaction, ctx: Context, cmd: Withdraw, config: PoolConfig) -> Response:
    pool = tx.load()
    user = guard_withdraw(tx.get_user(ctx.caller), ctx.caller, cmd.amount)

    post, user = advance(pool, user, ctx.now)
    user, transfers = take_payouts(post, user, ctx.caller)
    user = replace(user, staked=checked_sub(user.staked, cmd.amount, name="staked"))
    post = replace(post, total_staked=checked_sub(post.total_staked, cmd.amount, name="total_staked"))
    user = sync_debts(post, user)
    _verify(config, pool, post, user)
    tx.save(post)
    tx.put_user(ctx.caller, user)

    messages: list[Instruction] = list(transfers)
    if cmd.amount > 0:
        messages.append(
            TransferInstruction(
                asset=pool.stake_asset,
                endpoint=pool.stake_endpoint,
                recipient=ctx.caller,
                amount=cmd.amount,
            )
        )
    return Response(
        ok=True,
        event=Event.WITHDRAWN,
        messages=tuple(messages),
        attributes={"action": Action.WITHDRAW.value, "amount": str(cmd.amount)},
    )


def handle_claim(tx: StoreTransaction, ctx: Context, cmd: Claim, config: PoolConfig) -> Response:
    pool = tx.load()
    user = guard_claim(tx.get_user(ctx.caller), ctx.caller)

    post, user = advance(pool, user, ctx.now)
    user, transfers = take_payouts(post, user, ctx.caller)
    _verify(config, pool, post, user)
    tx.save(post)
    tx.put_user(ctx.caller, user)

    return Response(
        ok=True,
        event=Event.CLAIMED,
        messages=tuple(transfers),
        attributes={"action": Action.CLAIM.value},
    )


# -- Inbound transfers ----------------------------------------------------


def _receive_deposit(
    tx: StoreTransaction, ctx: Context, transfer: InboundTransfer, config: PoolConfig,
) -> Response:
    pool = tx.load()
    guard_deposit(pool, transfer.source_asset, transfer.amount)
    user = tx.get_user(transfer.sender) or UserAccount()

    post, user = advance(pool, user, ctx.now)
    user = replace(user, staked=checked_add(user.staked, transfer.amount, name="staked"))
    post = replace(post, total_staked=checked_add(post.total_staked, transfer.amount, name="total_staked"))
    user = sync_debts(post, user)
    _verify(config, pool, post, user)
    tx.save(post)
    tx.put_user(transfer.sender, user)

    return Response(
        ok=True,
        event=Event.DEPOSITED,
        attributes={
            "action": Action.DEPOSIT.value,
            "amount": str(transfer.amount),
            "from": transfer.sender,
        },
    )


def _receive_fund_reward_stream(
    tx: StoreTransaction, ctx: Context, transfer: InboundTransfer, config: PoolConfig,
) -> Response:
    payload = transfer.payload
    pool = tx.load()
    ledger = guard_fund_reward_stream(
        pool,
        transfer.source_asset,
        transfer.amount,
        payload.release_duration,
        now=ctx.now,
        max_streams_per_asset=config.max_streams_per_asset,
    )

    # Credit the open streams up to now before the new one starts.
    post = accrue_pool(pool, ctx.now)
    ledger = post.find_ledger(ledger.asset)
    stream = RewardStream(
        total_amount=transfer.amount,
        release_rate=release_rate(transfer.amount, payload.release_duration),
        start_time=ctx.now,
        end_time=stream_end_time(ctx.now, payload.release_duration),
    )
    post = _replace_ledger(post, replace(ledger, streams=ledger.streams + (stream,)))
    _verify(config, pool, post)
    tx.save(post)

    return Response(
        ok=True,
        event=Event.REWARD_STREAM_FUNDED,
        attributes={
            "action": Action.FUND_REWARD_STREAM.value,
            "asset": transfer.source_asset,
            "amount": str(transfer.amount),
            "release_duration": str(payload.release_duration),
        },
    )


_RECEIVE_DISPATCH: dict[type, HandlerFn] = {
    Deposit: _receive_deposit,
    FundRewardStream: _receive_fund_reward_stream,
}


def handle_receive(tx: StoreTransaction, ctx: Context, cmd: Receive, config: PoolConfig) -> Response:
    handler = _RECEIVE_DISPATCH.get(type(cmd.transfer.payload))
    if handler is None:
        raise InvalidMessage(f"unknown receive payload: {type(cmd.transfer.payload).__name__}")
    return handler(tx, ctx, cmd.transfer, config)


_DISPATCH: dict[type, HandlerFn] = {
    Instantiate: handle_instantiate,
    RegisterRewardAsset: handle_register_reward_asset,
    UpdateRewardAssetEndpoint: handle_update_reward_asset_endpoint,
    Withdraw: handle_withdraw,
    Claim: handle_claim,
    Receive: handle_receive,
}


def _command_name(msg: Any) -> str:
    if isinstance(msg, Mapping) and len(msg) == 1:
        return str(next(iter(msg)))
    return type(msg).__name__


def execute_or_raise(
    store: MemoryStore, ctx: Context, msg: Command | Mapping[str, Any], *, config: PoolConfig = DEFAULT_CONFIG,
) -> Response:
    """Like ``execute()`` but raises on rejection instead of returning a result.

    Raises:
        PoolError: any rejection; the store is left unchanged.
    """
    if not isinstance(ctx.now, int) or isinstance(ctx.now, bool) or not 0 <= ctx.now <= MAX_TIMESTAMP:
        raise InvalidTimestamp(f"now out of range: {ctx.now!r}")
    if type(msg) in _DISPATCH:
        command = validate_command(msg, caller=ctx.caller)
    else:
        command = parse_execute_msg(msg, caller=ctx.caller)
    handler = _DISPATCH[type(command)]

    with store.transaction() as tx:
        response = handler(tx, ctx, command, config)
    logger.debug("accepted %s from %s at %d", response.event.value, ctx.caller, ctx.now)
    return response


def execute(
    store: MemoryStore, ctx: Context, msg: Command | Mapping[str, Any], *, config: PoolConfig = DEFAULT_CONFIG,
) -> Response:
    """Execute one command against ``store``.

    Returns ``Response`` with ``ok=True`` on success, or ``ok=False`` with the
    rejecting error's ``code`` in ``error`` and its message in ``detail``.
    """
    try:
        return execute_or_raise(store, ctx, msg, config=config)
    except PoolError as exc:
        logger.info("rejected %s from %s: %s (%s)", _command_name(msg), ctx.caller, exc.code, exc)
        return Response(ok=False, error=exc.code, detail=str(exc))
