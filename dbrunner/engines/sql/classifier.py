"""
Lexical statement classification.

Not a parser: only the first keyword token matters. Leading whitespace,
``;`` and SQL comments (``-- ...`` and ``/* ... */``) are skipped to find it.

Precedence:
1. blank text -> ``StatementValidationError``;
2. ``vendor.is_procedural_block(text)`` -> PROCEDURE;
3. SELECT -> QUERY; INSERT/UPDATE/DELETE/MERGE -> MUTATION;
   CREATE/ALTER/DROP/TRUNCATE/GRANT/REVOKE -> SCHEMA_CHANGE;
4. anything else -> MUTATION, or ``UnclassifiedStatementError`` when strict.
"""

import logging
import re

from dbrunner.core.config import settings
from dbrunner.core.errors import StatementValidationError, UnclassifiedStatementError
from dbrunner.engines.sql.statement import Statement, StatementKind
from dbrunner.vendors.base import VendorCapability

_log = logging.getLogger(__name__)

_LEADING_NOISE_RE = re.compile(r"^(?:\s|;|--[^\n]*(?:\n|$)|/\*.*?\*/)+", re.DOTALL)

_KEYWORD_KINDS: tuple[tuple[re.Pattern[str], StatementKind], ...] = (
    (re.compile(r"^SELECT\b", re.IGNORECASE), StatementKind.QUERY),
    (
        re.compile(r"^(?:INSERT|UPDATE|DELETE|MERGE)\b", re.IGNORECASE),
        StatementKind.MUTATION,
    ),
    (
        re.compile(r"^(?:CREATE|ALTER|DROP|TRUNCATE|GRANT|REVOKE)\b", re.IGNORECASE),
        StatementKind.SCHEMA_CHANGE,
    ),
)


def strip_leading_noise(text: str) -> str:
    """*text* without leading whitespace, semicolons and comments."""
    return _LEADING_NOISE_RE.sub("", text, count=1)


def keyword_kind(text: str) -> StatementKind | None:
    """Kind implied by the first keyword of *text*, or None if it matches no keyword set."""
    head = strip_leading_noise(text)
    for pattern, kind in _KEYWORD_KINDS:
        if pattern.match(head):
            return kind
    return None


def classify(
    text: str | None,
    vendor: VendorCapability,
    *,
    strict: bool | None = None,
) -> Statement:
    """
    Classify *text* for *vendor*.

    - strict: raise ``UnclassifiedStatementError`` instead of falling back to
      MUTATION. Defaults to ``settings.STRICT_CLASSIFICATION``.
    """
    if text is None or not str(text).strip():
        raise StatementValidationError("SQL text must not be blank")
    text = str(text)

    if vendor.is_procedural_block(strip_leading_noise(text)):
        _log.debug("Classified as procedure (%s block)", vendor.name)
        return Statement(StatementKind.PROCEDURE, text)

    kind = keyword_kind(text)
    if kind is not None:
        _log.debug("Classified as %s", kind.value)
        return Statement(kind, text)

    if strict is None:
        strict = settings.STRICT_CLASSIFICATION
    head = strip_leading_noise(text)[:40]
    if strict:
        raise UnclassifiedStatementError(f"Cannot classify statement starting with {head!r}")
    _log.warning("Unrecognized statement %r, treating as mutation", head)
    return Statement(StatementKind.MUTATION, text)
