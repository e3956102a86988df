"""
Host-facing layer: message parsing, command handlers, queries and config.
"""

from .config import PoolConfig, load_config
from .handlers import Response, execute, execute_or_raise
from .operations import Context, parse_execute_msg, parse_query_msg
from .queries import query, query_json

__all__ = [
    "Context",
    "PoolConfig",
    "Response",
    "execute",
    "execute_or_raise",
    "load_config",
    "parse_execute_msg",
    "parse_query_msg",
    "query",
    "query_json",
]
