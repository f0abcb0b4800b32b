"""
Vendor capability descriptor: per-product facts and behaviours.

A ``VendorCapability`` is immutable. Concrete vendors subclass it and override
class-level facts (driver, validation query, procedural-block pattern, mode aliases)
and the few behaviours that differ between DB-API drivers (auto-commit access,
statement timeouts, procedure calls).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, ClassVar

from dbrunner.core.param_type import WireType
from dbrunner.core.vendor_config import VendorConfig

_log = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\{(host|port|database|context)\}")
_FIELD_PATTERNS = {
    "host": r"(?P<host>[^:/?,()\s\\]+)",
    "port": r"(?P<port>\d+)",
    "database": r"(?P<database>[^/?,()&;\s]+)",
    "context": r"(?P<context>.*?)",
}


@dataclass(frozen=True)
class ConnectionTarget:
    """Host / port / database recovered from a connection URL."""

    host: str | None
    port: int | None
    database: str | None
    mode: str


def _template_regex(template: str) -> re.Pattern[str]:
    parts: list[str] = []
    pos = 0
    seen: set[str] = set()
    for m in _PLACEHOLDER_RE.finditer(template):
        parts.append(re.escape(template[pos : m.start()]))
        field = m.group(1)
        if field in seen:
            parts.append(f"(?P={field})")
        else:
            parts.append(_FIELD_PATTERNS[field])
            seen.add(field)
        pos = m.end()
    parts.append(re.escape(template[pos:]))
    return re.compile("^" + "".join(parts) + "$")


@dataclass(frozen=True)
class VendorCapability:
    """Facts and behaviours of one database product, built from its ``VendorConfig``."""

    config: VendorConfig

    driver: ClassVar[str] = "dbapi"
    validation_query: ClassVar[str] = "SELECT 1"
    placeholder: ClassVar[str] = "%s"
    procedural_pattern: ClassVar[re.Pattern[str]] = re.compile(
        r"^\s*(?:BEGIN|DECLARE|CREATE\s+(?:OR\s+REPLACE\s+)?(?:FUNCTION|PROCEDURE)\b)",
        re.IGNORECASE,
    )
    # Connection-mode spellings accepted in addition to the template names
    mode_aliases: ClassVar[dict[str, str]] = {}
    # Modes addressed through a directory service (default port differs)
    directory_modes: ClassVar[frozenset[str]] = frozenset({"ldap"})

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def default_port(self) -> int:
        return self.config.default_port

    @property
    def default_properties(self) -> dict[str, str]:
        return dict(self.config.properties)

    @property
    def modes(self) -> list[str]:
        return sorted(self.config.url_templates)

    # ------------------------------------------------------------------
    # Addressing
    # ------------------------------------------------------------------

    def resolve_mode(self, mode: str | None) -> str:
        """Template name for *mode*; unknown or empty modes fall back to the default."""
        key = (mode or "").strip().lower()
        key = self.mode_aliases.get(key, key)
        if key in self.config.url_templates:
            return key
        if key:
            _log.debug(
                "Unknown connection mode %r for %s, using %r",
                mode,
                self.name,
                self.config.default_mode,
            )
        return self.config.default_mode

    def build_connection_url(
        self,
        host: str,
        port: int | None,
        database: str,
        mode: str | None = None,
    ) -> str:
        """Connection string for (host, port, database) in *mode*. Pure and deterministic."""
        resolved = self.resolve_mode(mode)
        template = self.config.url_templates.get(resolved)
        if template is None:
            raise ValueError(f"No URL template configured for {self.name}/{resolved}")
        if port is None or port <= 0:
            if resolved in self.directory_modes and self.config.directory_port:
                port = self.config.directory_port
            else:
                port = self.default_port
        return template.format(
            host=host,
            port=port,
            database=database,
            context=self.config.directory_context,
        )

    def parse_connection_url(self, url: str) -> ConnectionTarget | None:
        """Inverse of ``build_connection_url`` for the mode whose template matches *url*."""
        if not url:
            return None
        for mode in self.modes:
            m = _template_regex(self.config.url_templates[mode]).match(url.strip())
            if m is None:
                continue
            fields = m.groupdict()
            port = fields.get("port")
            return ConnectionTarget(
                host=fields.get("host"),
                port=int(port) if port else None,
                database=fields.get("database"),
                mode=mode,
            )
        return None

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def is_procedural_block(self, text: str | None) -> bool:
        if not text or not text.strip():
            return False
        return self.procedural_pattern.search(text.strip()) is not None

    def explain_plan(self, text: str) -> str:
        return f"EXPLAIN {text}"

    def create_procedure_call(self, procedure_name: str, param_count: int) -> str:
        return f"CALL {procedure_name}({self._placeholders(param_count)})"

    def create_function_call(self, function_name: str, param_count: int) -> str:
        return f"SELECT {function_name}({self._placeholders(param_count)})"

    def _placeholders(self, count: int, start: int = 1) -> str:
        if "{n}" in self.placeholder:
            return ", ".join(self.placeholder.format(n=i) for i in range(start, start + count))
        return ", ".join([self.placeholder] * count)

    # ------------------------------------------------------------------
    # Connection behaviour
    # ------------------------------------------------------------------

    def initialize(self, connection: Any) -> None:
        """Run the configured session statements; failures are logged, never raised."""
        for sql in self.config.init_statements:
            cur = None
            try:
                cur = connection.cursor()
                cur.execute(sql)
            except Exception as e:
                _log.warning("Failed to initialize %s session (%s): %s", self.name, sql, e)
                _rollback_quiet(connection)
            finally:
                _close_quiet(cur)
        try:
            if not self.get_autocommit(connection):
                connection.commit()
        except Exception as e:
            _log.warning("Failed to commit %s session settings: %s", self.name, e)
        _log.debug("%s connection initialized", self.name)

    def validate_connection(self, connection: Any) -> bool:
        """Run the validation query; False on any error."""
        if connection is None:
            return False
        cur = None
        try:
            cur = connection.cursor()
            cur.execute(self.validation_query)
            return cur.fetchone() is not None
        except Exception:
            return False
        finally:
            _close_quiet(cur)

    def get_autocommit(self, connection: Any) -> bool:
        return bool(connection.autocommit)

    def set_autocommit(self, connection: Any, enabled: bool) -> None:
        connection.autocommit = enabled

    def statement_timeout_statements(self, timeout_ms: int) -> list[str]:
        """Session statements that set (``timeout_ms > 0``) or clear (``0``) a statement timeout."""
        return []

    def apply_statement_timeout(self, connection: Any, timeout_ms: int) -> None:
        for sql in self.statement_timeout_statements(timeout_ms):
            cur = connection.cursor()
            try:
                cur.execute(sql)
            finally:
                _close_quiet(cur)

    def call_procedure(
        self,
        cursor: Any,
        procedure_name: str,
        in_values: list[Any],
        out_types: list[WireType],
    ) -> list[Any]:
        """
        Call *procedure_name* with inputs then outputs bound positionally and
        return the output values in declaration order.

        Default: ``CALL name(in..., NULL...)``; the procedure returns its OUT
        parameters as a single row (PostgreSQL semantics).
        """
        sql = self.create_procedure_call(procedure_name, len(in_values) + len(out_types))
        cursor.execute(sql, [*in_values, *([None] * len(out_types))])
        if not out_types:
            return []
        row = cursor.fetchone() if cursor.description else None
        values = list(row) if row is not None else []
        return (values + [None] * len(out_types))[: len(out_types)]


def _close_quiet(cur: Any) -> None:
    if cur is None:
        return
    try:
        cur.close()
    except Exception:
        pass


def _rollback_quiet(connection: Any) -> None:
    try:
        connection.rollback()
    except Exception:
        pass
