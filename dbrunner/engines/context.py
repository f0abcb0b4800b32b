"""
Execution context: one live connection, its vendor, a transaction manager
and an error classifier. Owns the connection and closes it exactly once.
"""

import logging
import threading
from typing import Any

from dbrunner.core.connection import ConnectionConfig, connect
from dbrunner.core.error_classifier import ErrorClassifier
from dbrunner.core.errors import ContextClosedError
from dbrunner.engines.transaction import TransactionManager
from dbrunner.vendors.base import VendorCapability
from dbrunner.vendors.registry import VendorRegistry

_log = logging.getLogger(__name__)


class ExecutionContext:
    """
    A logical database session.

    Not safe for concurrent use: one connection runs one statement at a time.
    Every accessor raises ``ContextClosedError`` after ``close()``.
    """

    def __init__(
        self,
        connection: Any,
        vendor: VendorCapability,
        *,
        classifier: ErrorClassifier | None = None,
    ) -> None:
        if connection is None:
            raise ValueError("connection is required")
        self._connection = connection
        self._vendor = vendor
        self._classifier = classifier or ErrorClassifier(vendor.name, vendor.config)
        self._transactions = TransactionManager(connection, vendor, self._classifier)
        self._close_lock = threading.Lock()
        self._closed = False

    def _ensure_open(self) -> None:
        if self._closed:
            raise ContextClosedError(f"Execution context for {self._vendor.name} is closed")

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def connection(self) -> Any:
        self._ensure_open()
        return self._connection

    @property
    def vendor(self) -> VendorCapability:
        self._ensure_open()
        return self._vendor

    @property
    def error_classifier(self) -> ErrorClassifier:
        self._ensure_open()
        return self._classifier

    @property
    def transaction_manager(self) -> TransactionManager:
        self._ensure_open()
        return self._transactions

    @property
    def in_transaction(self) -> bool:
        return self._transactions.active

    def close(self) -> None:
        """Close the connection. Later calls are no-ops; close errors are logged."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        try:
            self._connection.close()
        except Exception as e:
            _log.warning("Error closing %s connection: %s", self._vendor.name, e)

    def __enter__(self) -> "ExecutionContext":
        self._ensure_open()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def open_context(
    config: ConnectionConfig,
    password: str | None,
    registry: VendorRegistry,
) -> ExecutionContext:
    """
    Connect, switch the session to auto-commit, run the vendor's session
    initialization and wrap the connection.

    Raises ``VendorNotFoundError`` for an unregistered vendor and
    ``NormalizedError`` when the connection cannot be opened.
    """
    vendor = registry.require(config.vendor)
    conn = connect(config, password, vendor)
    try:
        vendor.set_autocommit(conn, True)
    except Exception as e:
        _log.warning("Could not enable auto-commit on %s: %s", vendor.name, e)
    vendor.initialize(conn)
    return ExecutionContext(conn, vendor)
