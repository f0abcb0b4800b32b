"""
Connection acquisition for external databases.

No connection pooling: each call opens a fresh DB-API connection through the vendor's driver.
"""

from .drivers import ConnectionConfig, connect, cursor_to_dicts, execute
from .health import health_check

__all__ = [
    "ConnectionConfig",
    "connect",
    "execute",
    "cursor_to_dicts",
    "health_check",
]
