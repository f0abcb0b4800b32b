"""
Explicit transaction boundaries around an operation.

``run_in_transaction(op)`` disables auto-commit, runs ``op(connection)``,
commits or rolls back, and always puts the original auto-commit mode back.
One transaction per manager at a time; nesting raises ``TransactionStateError``.
"""

import logging
import threading
from collections.abc import Callable
from typing import Any, TypeVar

from dbrunner.core.error_classifier import ErrorClassifier
from dbrunner.core.errors import ENGINE_ERRORS, ErrorKind, TransactionStateError
from dbrunner.vendors.base import VendorCapability

_log = logging.getLogger(__name__)

T = TypeVar("T")


class TransactionManager:
    def __init__(
        self,
        connection: Any,
        vendor: VendorCapability,
        classifier: ErrorClassifier,
    ) -> None:
        self._connection = connection
        self._vendor = vendor
        self._classifier = classifier
        self._lock = threading.Lock()
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def run_in_transaction(self, op: Callable[[Any], T]) -> T:
        """
        Run ``op(connection)`` as one transaction and return its result.

        Failures from ``op`` or from commit are re-raised as ``NormalizedError``
        after rollback. Rollback and auto-commit restore failures are logged only.
        """
        with self._lock:
            if self._active:
                raise TransactionStateError(
                    "A transaction is already active on this context; nested transactions are not supported"
                )
            self._active = True
        try:
            return self._run(op)
        finally:
            self._active = False

    def _run(self, op: Callable[[Any], T]) -> T:
        conn = self._connection
        try:
            original = self._vendor.get_autocommit(conn)
            # psycopg refuses any autocommit assignment while a transaction is open
            if original:
                self._vendor.set_autocommit(conn, False)
        except Exception as e:
            raise self._classifier.from_exception(e, fallback=ErrorKind.TRANSACTION_FAILURE) from e

        try:
            try:
                result = op(conn)
            except Exception as e:
                self._rollback()
                if isinstance(e, ENGINE_ERRORS):
                    raise
                raise self._classifier.from_exception(e) from e
            except BaseException:
                self._rollback()
                raise

            try:
                conn.commit()
            except Exception as e:
                _log.warning("Commit failed on %s, rolling back: %s", self._vendor.name, e)
                self._rollback()
                raise self._classifier.from_exception(
                    e, fallback=ErrorKind.TRANSACTION_FAILURE
                ) from e
            _log.debug("Transaction committed on %s", self._vendor.name)
            return result
        finally:
            self._restore(original)

    def _rollback(self) -> None:
        try:
            self._connection.rollback()
            _log.debug("Transaction rolled back on %s", self._vendor.name)
        except Exception as e:
            _log.warning("Rollback failed on %s: %s", self._vendor.name, e)

    def _restore(self, autocommit: bool) -> None:
        try:
            self._vendor.set_autocommit(self._connection, autocommit)
        except Exception as e:
            _log.warning(
                "Failed to restore auto-commit=%s on %s: %s", autocommit, self._vendor.name, e
            )
