"""
Map raw driver failures (SQL state + vendor code + message) to ``ErrorKind``.

Precedence:
1. vendor-specific code -> kind mapping (from ``VendorConfig.error_mappings``);
2. exact timeout SQL states (``57014``, ``HYT00``, ``HYT01``), an extension
   on top of the class table, which has no TIMEOUT entry;
3. SQL state class (first two characters) via a fixed table;
4. ``ErrorKind.UNKNOWN``.

``classify`` never raises: anything it cannot parse degrades to UNKNOWN.
"""

import logging
import re
from typing import Any

from dbrunner.core.errors import ErrorKind, NormalizedError
from dbrunner.core.vendor_config import (
    VendorConfig,
    builtin_vendor_configs,
    normalize_vendor_code,
)

_log = logging.getLogger(__name__)

_STATE_CLASSES: dict[str, ErrorKind] = {
    "08": ErrorKind.CONNECTION_FAILURE,
    "28": ErrorKind.AUTHENTICATION_FAILURE,
    "22": ErrorKind.DATA_ERROR,
    "23": ErrorKind.CONSTRAINT_VIOLATION,
    "42": ErrorKind.SYNTAX_ERROR,
    "25": ErrorKind.TRANSACTION_FAILURE,
    "2D": ErrorKind.TRANSACTION_FAILURE,
    "40": ErrorKind.TRANSACTION_FAILURE,
}

_EXACT_STATES: dict[str, ErrorKind] = {
    "57014": ErrorKind.TIMEOUT,  # query_canceled (statement_timeout)
    "HYT00": ErrorKind.TIMEOUT,
    "HYT01": ErrorKind.TIMEOUT,
}

_SQLSTATE_RE = re.compile(r"^[0-9A-Z]{5}$")
_QUOTED_NAME_RE = re.compile(r'"(.+)"')


def _build_context(sql_state: str | None, vendor_code: str | None) -> str | None:
    parts: list[str] = []
    if sql_state:
        parts.append(f"SQLState: {sql_state}")
    if vendor_code:
        parts.append(f"VendorCode: {vendor_code}")
    return ", ".join(parts) if parts else None


def _kind_from_state(sql_state: str | None) -> ErrorKind | None:
    if not sql_state or len(sql_state) < 2:
        return None
    state = sql_state.upper()
    exact = _EXACT_STATES.get(state)
    if exact is not None:
        return exact
    return _STATE_CLASSES.get(state[:2])


class ErrorClassifier:
    """Error classifier bound to one vendor's configuration."""

    def __init__(self, vendor_name: Any, config: VendorConfig | None = None) -> None:
        self.vendor_name = str(vendor_name or "").strip().lower()
        self._config = config if config is not None else VendorConfig(name=self.vendor_name or "unknown")
        self._code_re: re.Pattern[str] | None = None
        if self._config.error_code_pattern:
            try:
                self._code_re = re.compile(self._config.error_code_pattern)
            except re.error as e:
                _log.warning(
                    "Invalid error_code_pattern for %s: %s", self.vendor_name, e
                )

    def classify(
        self,
        sql_state: Any = None,
        vendor_code: Any = None,
        message: Any = None,
    ) -> NormalizedError:
        """Build a ``NormalizedError``; never raises."""
        try:
            return self._classify(sql_state, vendor_code, message)
        except Exception as e:  # classification must not crash the caller
            _log.debug("Error classification degraded to UNKNOWN: %s", e)
            return NormalizedError(
                str(message) if message else ErrorKind.UNKNOWN.default_message,
                ErrorKind.UNKNOWN,
            )

    def _classify(self, sql_state: Any, vendor_code: Any, message: Any) -> NormalizedError:
        state = str(sql_state).strip().upper() if sql_state not in (None, "") else None
        msg = str(message).strip() if message not in (None, "") else ""
        code = normalize_vendor_code(vendor_code)
        if code is None and msg and self._code_re is not None:
            m = self._code_re.search(msg)
            if m:
                code = normalize_vendor_code(m.group(1))

        kind = self._config.error_mappings.get(code) if code is not None else None
        if kind is None:
            kind = _kind_from_state(state) or ErrorKind.UNKNOWN

        return NormalizedError(
            self._user_message(msg, code, kind),
            kind,
            vendor_code=code,
            context=_build_context(state, code),
        )

    def _user_message(self, message: str, code: str | None, kind: ErrorKind) -> str:
        if self.vendor_name == "oracle" and code == "942" and message:
            m = _QUOTED_NAME_RE.search(message)
            name = m.group(1) if m else message
            return (
                f"Table or view does not exist: {name}\n"
                "Please check that the table name is correct and you have the "
                "necessary permissions."
            )
        return message or kind.default_message

    def from_exception(
        self,
        exc: BaseException,
        *,
        fallback: ErrorKind | None = None,
    ) -> NormalizedError:
        """
        Classify a raw driver exception. The result has ``exc`` as ``__cause__``.

        - fallback: kind to use when nothing more specific than UNKNOWN is found
          (e.g. CONNECTION_FAILURE while connecting).
        """
        if isinstance(exc, NormalizedError):
            return exc
        sql_state, vendor_code, message = extract_error_fields(exc)
        err = self.classify(sql_state, vendor_code, message)
        if err.kind is ErrorKind.UNKNOWN:
            if isinstance(exc, TimeoutError):
                err.kind = ErrorKind.TIMEOUT
            elif isinstance(exc, ConnectionError):
                err.kind = ErrorKind.CONNECTION_FAILURE
            elif fallback is not None:
                err.kind = fallback
        err.__cause__ = exc
        return err


def extract_error_fields(exc: BaseException) -> tuple[str | None, str | None, str]:
    """
    (sql_state, vendor_code, message) from psycopg, pymysql, python-oracledb,
    pymssql or a generic DB-API exception.
    """
    sql_state = getattr(exc, "sqlstate", None) or getattr(exc, "pgcode", None)
    vendor_code: Any = None
    message = ""
    args = getattr(exc, "args", ()) or ()

    first = args[0] if args else None
    if first is not None and hasattr(first, "full_code") and hasattr(first, "message"):
        # python-oracledb: args[0] is an _Error with code / full_code / message
        vendor_code = getattr(first, "full_code", None) or getattr(first, "code", None)
        message = str(getattr(first, "message", "") or "")
    elif isinstance(first, int) and not isinstance(first, bool):
        # pymysql / pymssql: (code, message)
        vendor_code = first
        if len(args) > 1:
            raw = args[1]
            message = raw.decode("utf-8", "replace") if isinstance(raw, bytes) else str(raw)
    elif isinstance(first, str) and _SQLSTATE_RE.match(first) and sql_state is None:
        # pyodbc-style: (sqlstate, message)
        sql_state = first
        if len(args) > 1:
            message = str(args[1])

    if vendor_code is None:
        vendor_code = getattr(exc, "number", None)
    if not message:
        message = str(exc)
    return (str(sql_state) if sql_state else None, vendor_code, message)


def classify_error(
    vendor_name: str,
    sql_state: Any,
    vendor_code: Any,
    message: Any,
    *,
    config: VendorConfig | None = None,
) -> NormalizedError:
    """
    One-shot classification. *config* defaults to the built-in configuration
    for *vendor_name* (an empty mapping table for unknown vendors).
    """
    try:
        if config is None:
            config = builtin_vendor_configs().get(vendor_name)
        classifier = ErrorClassifier(vendor_name, config)
    except Exception as e:
        _log.debug("Could not build classifier for %r: %s", vendor_name, e)
        classifier = ErrorClassifier("unknown")
    return classifier.classify(sql_state, vendor_code, message)
