"""
Ledger store: one pool record plus one account record per depositor.

Records are kept in serialized (dict) form and decoded on every read, so
callers always get fresh values and a malformed record fails loudly with
`CorruptRecord`.

Writes made through `transaction()` are staged and only become visible when
the block exits cleanly; any exception discards all of them.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

from ..core.rewards.errors import CorruptRecord, NotInitialized
from ..core.rewards.state import account_from_dict, account_to_dict, pool_from_dict, pool_to_dict
from ..core.rewards.types import PoolState, UserAccount
from .canonical import canonical_json_bytes
from .snapshot import PoolSnapshot, records_from_snapshot, snapshot_from_records

logger = logging.getLogger(__name__)

Address = str


class MemoryStore:
    """
    In-process store.

    Not thread-safe; the host runs one operation at a time.
    """

    def __init__(self) -> None:
        self._pool: Optional[Dict[str, Any]] = None
        self._users: Dict[Address, Dict[str, Any]] = {}
        self._in_transaction = False

    @classmethod
    def from_snapshot(cls, snapshot: Mapping[str, Any]) -> "MemoryStore":
        store = cls()
        store._pool, store._users = records_from_snapshot(snapshot)
        return store

    # -- reads -------------------------------------------------------------

    def is_initialized(self) -> bool:
        return self._pool is not None

    def load(self) -> PoolState:
        if self._pool is None:
            raise NotInitialized("pool has not been instantiated")
        return pool_from_dict(self._pool)

    def get_user(self, address: Address) -> Optional[UserAccount]:
        record = self._users.get(address)
        if record is None:
            return None
        return account_from_dict(record)

    def iter_users(self) -> Iterator[Tuple[Address, UserAccount]]:
        """Yield every account in address order."""
        for address in sorted(self._users):
            yield address, account_from_dict(self._users[address])

    def snapshot(self) -> PoolSnapshot:
        return snapshot_from_records(self._pool, self._users)

    # -- writes ------------------------------------------------------------

    def save(self, pool: PoolState) -> None:
        self._commit(pool_to_dict(pool), {})

    def put_user(self, address: Address, user: UserAccount) -> None:
        self._commit(None, {address: account_to_dict(user)})

    @contextmanager
    def transaction(self) -> Iterator["StoreTransaction"]:
        """Stage writes; commit them only if the block completes."""
        if self._in_transaction:
            raise RuntimeError("a store transaction is already open")
        self._in_transaction = True
        tx = StoreTransaction(self)
        try:
            yield tx
        except BaseException:
            logger.debug("store transaction rolled back (%d staged writes)", tx.staged_writes)
            raise
        else:
            self._commit(tx._pool, tx._users)
            logger.debug("store transaction committed (%d staged writes)", tx.staged_writes)
        finally:
            self._in_transaction = False

    def _commit(self, pool_record: Optional[Dict[str, Any]], user_records: Dict[Address, Dict[str, Any]]) -> None:
        if pool_record is not None:
            self._pool = pool_record
        self._users.update(user_records)


class StoreTransaction:
    """Read-your-writes view over a store with every write held back."""

    def __init__(self, store: MemoryStore) -> None:
        self._store = store
        self._pool: Optional[Dict[str, Any]] = None
        self._users: Dict[Address, Dict[str, Any]] = {}

    @property
    def staged_writes(self) -> int:
        return len(self._users) + (1 if self._pool is not None else 0)

    def is_initialized(self) -> bool:
        return self._pool is not None or self._store.is_initialized()

    def load(self) -> PoolState:
        if self._pool is not None:
            return pool_from_dict(self._pool)
        return self._store.load()

    def save(self, pool: PoolState) -> None:
        self._pool = pool_to_dict(pool)

    def get_user(self, address: Address) -> Optional[UserAccount]:
        record = self._users.get(address)
        if record is not None:
            return account_from_dict(record)
        return self._store.get_user(address)

    def put_user(self, address: Address, user: UserAccount) -> None:
        self._users[address] = account_to_dict(user)


class JsonFileStore(MemoryStore):
    """
    Store persisted as a single canonical-JSON snapshot file.

    Each commit rewrites the whole file through a temporary sibling and
    `os.replace`, so readers see either the old or the new snapshot.
    """

    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self.path = Path(path)
        if self.path.exists():
            try:
                raw = json.loads(self.path.read_text(encoding="utf-8"))
            except ValueError as exc:
                raise CorruptRecord(f"invalid snapshot file {self.path}: {exc}") from exc
            self._pool, self._users = records_from_snapshot(raw)

    def _commit(self, pool_record: Optional[Dict[str, Any]], user_records: Dict[Address, Dict[str, Any]]) -> None:
        next_pool = pool_record if pool_record is not None else self._pool
        next_users = {**self._users, **user_records}
        self._write(snapshot_from_records(next_pool, next_users))
        super()._commit(pool_record, user_records)

    def _write(self, snapshot: PoolSnapshot) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=self.path.name + ".", dir=self.path.parent)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(canonical_json_bytes(snapshot.data))
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise


def verify_conservation(store: MemoryStore) -> Dict[str, Any]:
    """
    Check that `total_staked` equals the sum of every account's stake.

    Returns:
        Dict with keys:
        - 'valid': bool
        - 'total_staked': int - the pool's recorded total
        - 'sum_staked': int - sum over all accounts
        - 'accounts': int - number of account records
    """
    pool = store.load()
    sum_staked = 0
    accounts = 0
    for _address, user in store.iter_users():
        sum_staked += user.staked
        accounts += 1
    return {
        "valid": sum_staked == pool.total_staked,
        "total_staked": pool.total_staked,
        "sum_staked": sum_staked,
        "accounts": accounts,
    }
