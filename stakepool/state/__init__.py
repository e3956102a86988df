"""
Persistence for the staking pool
"""

from .snapshot import PoolSnapshot
from .store import JsonFileStore, MemoryStore, StoreTransaction, verify_conservation

__all__ = [
    "JsonFileStore",
    "MemoryStore",
    "PoolSnapshot",
    "StoreTransaction",
    "verify_conservation",
]
