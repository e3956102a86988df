"""
Pool store snapshot encoding.

Goals:
- Deterministic JSON serialization for persistence and hashing.
- Round-trippable into store records (pool record + one record per account).
- Explicit versioning for future formats.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from ..core.rewards.errors import CorruptRecord
from ..core.rewards.state import account_from_dict, pool_from_dict
from .canonical import canonical_json_bytes, domain_sep_bytes, sha256_hex


POOL_SNAPSHOT_VERSION = 1

Records = Tuple[Optional[Dict[str, Any]], Dict[str, Dict[str, Any]]]


@dataclass(frozen=True)
class PoolSnapshot:
    """
    Deterministic, versioned snapshot of a store.

    The commitment is *not* included inside `data` to avoid self-reference.
    """

    version: int
    data: Dict[str, Any]

    def canonical_bytes(self) -> bytes:
        return canonical_json_bytes(self.data)

    def commitment_bytes(self) -> bytes:
        payload = domain_sep_bytes("pool_snapshot", version=self.version) + self.canonical_bytes()
        return hashlib.sha256(payload).digest()

    def commitment_hex(self) -> str:
        payload = domain_sep_bytes("pool_snapshot", version=self.version) + self.canonical_bytes()
        return sha256_hex(payload)


def snapshot_from_records(
    pool_record: Optional[Mapping[str, Any]],
    user_records: Mapping[str, Mapping[str, Any]],
    *,
    version: int = POOL_SNAPSHOT_VERSION,
) -> PoolSnapshot:
    if not isinstance(version, int) or isinstance(version, bool) or version <= 0:
        raise ValueError("version must be a positive int")

    accounts = [
        {"address": address, "account": dict(record)}
        for address, record in user_records.items()
    ]
    accounts.sort(key=lambda e: e["address"])

    data: Dict[str, Any] = {
        "version": int(version),
        "pool": dict(pool_record) if pool_record is not None else None,
        "accounts": accounts,
    }
    return PoolSnapshot(version=version, data=data)


def records_from_snapshot(snapshot: Mapping[str, Any], *, max_accounts: int = 1_000_000) -> Records:
    """
    Validate a snapshot mapping and split it back into store records.

    Every record is decoded once so a malformed snapshot fails here rather than
    on a later `load()`.
    """
    if not isinstance(snapshot, Mapping):
        raise CorruptRecord("snapshot must be a mapping")

    version = snapshot.get("version", POOL_SNAPSHOT_VERSION)
    if not isinstance(version, int) or isinstance(version, bool) or version <= 0:
        raise CorruptRecord("snapshot.version must be a positive int")
    if version != POOL_SNAPSHOT_VERSION:
        raise CorruptRecord(f"unsupported snapshot version: {version}")

    pool_record = snapshot.get("pool")
    if pool_record is not None:
        pool_from_dict(pool_record)
        pool_record = dict(pool_record)

    entries = snapshot.get("accounts")
    if entries is None:
        entries = []
    if not isinstance(entries, list):
        raise CorruptRecord("snapshot.accounts must be a list")
    if len(entries) > max_accounts:
        raise CorruptRecord(f"too many accounts: {len(entries)} > {max_accounts}")
    if entries and pool_record is None:
        raise CorruptRecord("snapshot has accounts but no pool")

    user_records: Dict[str, Dict[str, Any]] = {}
    for entry in entries:
        if not isinstance(entry, Mapping):
            raise CorruptRecord("snapshot.accounts entries must be objects")
        address = entry.get("address")
        if not isinstance(address, str) or not address:
            raise CorruptRecord("account address must be a non-empty string")
        if address in user_records:
            raise CorruptRecord(f"duplicate account entry: {address}")
        record = entry.get("account")
        account_from_dict(record)
        user_records[address] = dict(record)

    return pool_record, user_records
