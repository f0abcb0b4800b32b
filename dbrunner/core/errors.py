"""
Error taxonomy for dbrunner.

``NormalizedError`` is the only exception type that crosses the engine
boundary for database failures; it is produced by
``dbrunner.core.error_classifier.ErrorClassifier`` and carries the raw driver
exception as ``__cause__``. The remaining classes signal caller or programmer
mistakes (blank SQL, nested transactions, closed contexts).
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Semantic error kinds shared by every vendor."""

    CONNECTION_FAILURE = "connection_failure"
    AUTHENTICATION_FAILURE = "authentication_failure"
    TIMEOUT = "timeout"
    SYNTAX_ERROR = "syntax_error"
    CONSTRAINT_VIOLATION = "constraint_violation"
    DATA_ERROR = "data_error"
    TRANSACTION_FAILURE = "transaction_failure"
    UNKNOWN = "unknown"

    @property
    def code(self) -> str:
        return _KIND_CODES[self][0]

    @property
    def default_message(self) -> str:
        return _KIND_CODES[self][1]

    @classmethod
    def parse(cls, value: "str | ErrorKind") -> "ErrorKind":
        """Accept enum values (``syntax_error``) or names (``SYNTAX_ERROR``)."""
        if isinstance(value, ErrorKind):
            return value
        s = str(value).strip()
        try:
            return cls(s.lower())
        except ValueError:
            return cls[s.upper()]


_KIND_CODES: dict[ErrorKind, tuple[str, str]] = {
    ErrorKind.CONNECTION_FAILURE: ("CONN_001", "Connection failed"),
    ErrorKind.AUTHENTICATION_FAILURE: ("CONN_003", "Authentication failed"),
    ErrorKind.TIMEOUT: ("CONN_002", "Operation timed out"),
    ErrorKind.SYNTAX_ERROR: ("DATA_001", "SQL syntax error"),
    ErrorKind.CONSTRAINT_VIOLATION: ("DATA_002", "Constraint violation"),
    ErrorKind.DATA_ERROR: ("DATA_003", "Data error"),
    ErrorKind.TRANSACTION_FAILURE: ("OP_001", "Transaction failed"),
    ErrorKind.UNKNOWN: ("ERR_999", "Unknown error"),
}


class NormalizedError(Exception):
    """A database failure mapped onto ``ErrorKind``.

    Only ``ErrorClassifier`` builds these; strategies re-raise them unchanged.
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind,
        *,
        vendor_code: str | None = None,
        context: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.vendor_code = vendor_code
        self.context = context

    def __str__(self) -> str:
        out = f"{self.message} [{self.kind.code}]"
        if self.context:
            out += f" Context: {self.context}"
        return out

    def __repr__(self) -> str:
        return (
            f"NormalizedError(kind={self.kind.value!r}, vendor_code={self.vendor_code!r}, "
            f"context={self.context!r}, message={self.message!r})"
        )


class StatementValidationError(ValueError):
    """Raised for blank SQL text, or unrecognised text under strict classification."""

    pass


class UnclassifiedStatementError(StatementValidationError):
    """Strict classification found no known leading keyword."""

    pass


class StatementKindError(TypeError):
    """A strategy was handed a statement of the wrong kind."""

    pass


class TransactionStateError(RuntimeError):
    """A transaction is already active on this context."""

    pass


class ContextClosedError(RuntimeError):
    """The execution context was used after ``close()``."""

    pass


class VendorNotFoundError(LookupError):
    """No vendor with that name is registered."""

    pass


# Raised by the engine itself; propagated as-is, never re-classified.
ENGINE_ERRORS: tuple[type[Exception], ...] = (
    NormalizedError,
    StatementValidationError,
    StatementKindError,
    TransactionStateError,
    ContextClosedError,
)
