"""
Runtime configuration for the pool handlers.

Config files are YAML mappings whose keys match `PoolConfig` fields:

    check_invariants: true
    max_reward_assets: 64
    max_streams_per_asset: 256
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml


@dataclass(frozen=True)
class PoolConfig:
    # Re-check pool invariants on every post-state and roll back on violation.
    check_invariants: bool = True

    # DoS limits: every accrual walks all ledgers and all open streams.
    max_reward_assets: int = 64
    max_streams_per_asset: int = 256

    def __post_init__(self) -> None:
        if not isinstance(self.check_invariants, bool):
            raise ValueError("check_invariants must be a bool")
        for name in ("max_reward_assets", "max_streams_per_asset"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ValueError(f"{name} must be a positive int")


DEFAULT_CONFIG = PoolConfig()


def config_from_mapping(data: Optional[Mapping[str, Any]]) -> PoolConfig:
    """Build a `PoolConfig`, rejecting unknown keys."""
    if data is None:
        return DEFAULT_CONFIG
    if not isinstance(data, Mapping):
        raise ValueError("config must be a mapping")
    known = {f.name for f in fields(PoolConfig)}
    unknown = sorted(str(k) for k in data if k not in known)
    if unknown:
        raise ValueError(f"unknown config keys: {', '.join(unknown)}")
    return PoolConfig(**dict(data))


def load_config(path: str | Path) -> PoolConfig:
    with open(path, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    return config_from_mapping(data)
