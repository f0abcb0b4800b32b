"""
Vendor configuration lookup: URL templates, default connection properties,
session init statements and error-code mappings per database product.

Built-in defaults cover oracle, postgresql, mysql and sqlserver. A JSON file of
the same shape (``{"vendors": {"mysql": {...}}}``) can overlay them; dict-valued
fields are merged key by key, scalar fields are replaced.

Template placeholders: ``{host}``, ``{port}``, ``{database}``, ``{context}``
(LDAP context for Oracle, instance name for SQL Server).
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dbrunner.core.errors import ErrorKind

_log = logging.getLogger(__name__)


class VendorConfig(BaseModel):
    """Configuration consumed by one vendor capability and its error classifier."""

    model_config = ConfigDict(frozen=True)

    name: str
    default_port: int = 0
    default_mode: str = "direct"
    url_templates: dict[str, str] = Field(default_factory=dict)
    # Port used by directory modes (LDAP) when the caller passes none
    directory_port: int | None = None
    directory_context: str = ""
    properties: dict[str, str] = Field(default_factory=dict)
    init_statements: list[str] = Field(default_factory=list)
    error_mappings: dict[str, ErrorKind] = Field(default_factory=dict)
    # Regex with one group extracting the vendor code from a driver message
    error_code_pattern: str | None = None

    @field_validator("name")
    @classmethod
    def _lower_name(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("properties", mode="before")
    @classmethod
    def _stringify_properties(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {str(k): str(val) for k, val in v.items()}
        return v

    @field_validator("error_mappings", mode="before")
    @classmethod
    def _parse_error_mappings(cls, v: Any) -> Any:
        if not isinstance(v, dict):
            return v
        out: dict[str, ErrorKind] = {}
        for code, kind in v.items():
            try:
                out[normalize_vendor_code(code) or str(code)] = ErrorKind.parse(kind)
            except (KeyError, ValueError):
                _log.warning("Ignoring invalid error mapping %s -> %r", code, kind)
        return out


class VendorConfigSet(BaseModel):
    model_config = ConfigDict(frozen=True)

    vendors: dict[str, VendorConfig] = Field(default_factory=dict)

    def get(self, name: str | None) -> VendorConfig:
        """Config for *name*; an empty config (no templates, no mappings) if unknown."""
        key = (name or "").strip().lower()
        found = self.vendors.get(key)
        if found is not None:
            return found
        return VendorConfig(name=key or "unknown")

    def names(self) -> list[str]:
        return sorted(self.vendors)


def normalize_vendor_code(code: Any) -> str | None:
    """``ORA-00942`` / ``942`` / ``"00942"`` -> ``"942"``; ``None``/blank -> ``None``.

    Non-numeric codes are upper-cased and returned as-is.
    """
    if code is None or isinstance(code, bool):
        return None
    s = str(code).strip().upper()
    if not s:
        return None
    if "-" in s:
        prefix, _, rest = s.partition("-")
        if prefix.isalpha() and rest.isdigit():
            s = rest
    if s.lstrip("-").isdigit():
        return str(int(s))
    return s


_BUILTIN: dict[str, dict[str, Any]] = {
    "oracle": {
        "name": "oracle",
        "default_port": 1521,
        "default_mode": "service",
        "url_templates": {
            "service": "{host}:{port}/{database}",
            "sid": (
                "(DESCRIPTION=(ADDRESS=(PROTOCOL=TCP)(HOST={host})(PORT={port}))"
                "(CONNECT_DATA=(SID={database})))"
            ),
            "ldap": "ldap://{host}:{port}/{database},{context}",
        },
        "directory_port": 389,
        "directory_context": "cn=OracleContext,dc=example,dc=com",
        "properties": {
            "stmtcachesize": "20",
            "prefetchrows": "100",
            "arraysize": "100",
        },
        "init_statements": [
            "ALTER SESSION SET TIME_ZONE = 'UTC'",
            "ALTER SESSION SET NLS_DATE_FORMAT = 'YYYY-MM-DD'",
            "ALTER SESSION SET NLS_TIMESTAMP_FORMAT = 'YYYY-MM-DD HH24:MI:SS.FF'",
        ],
        "error_mappings": {
            "1": "constraint_violation",
            "1400": "constraint_violation",
            "2290": "constraint_violation",
            "2291": "constraint_violation",
            "2292": "constraint_violation",
            "900": "syntax_error",
            "904": "syntax_error",
            "933": "syntax_error",
            "936": "syntax_error",
            "942": "syntax_error",
            "1017": "authentication_failure",
            "28000": "authentication_failure",
            "1722": "data_error",
            "1438": "data_error",
            "12899": "data_error",
            "1013": "timeout",
            "12170": "timeout",
            "60": "transaction_failure",
            "8177": "transaction_failure",
            "12154": "connection_failure",
            "12514": "connection_failure",
            "12541": "connection_failure",
            "3113": "connection_failure",
            "3114": "connection_failure",
        },
        "error_code_pattern": r"ORA-(\d{5})",
    },
    "postgresql": {
        "name": "postgresql",
        "default_port": 5432,
        "default_mode": "direct",
        "url_templates": {
            "direct": "postgresql://{host}:{port}/{database}",
            # pg_service.conf lookup (entries may themselves be LDAP-backed)
            "service": "postgresql://?service={database}",
        },
        "properties": {
            "application_name": "dbrunner",
            "sslmode": "prefer",
        },
        "init_statements": [
            "SET TIME ZONE 'UTC'",
            "SET datestyle TO 'ISO, YMD'",
        ],
        "error_mappings": {},
    },
    "mysql": {
        "name": "mysql",
        "default_port": 3306,
        "default_mode": "direct",
        "url_templates": {
            "direct": "mysql://{host}:{port}/{database}",
            # DNS SRV lookup; the port comes from the SRV record
            "srv": "mysql+srv://{host}/{database}",
        },
        "properties": {
            "charset": "utf8mb4",
            "useSSL": "false",
        },
        "init_statements": [
            "SET time_zone = '+00:00'",
            "SET NAMES utf8mb4",
            (
                "SET SESSION sql_mode = 'STRICT_TRANS_TABLES,NO_ZERO_IN_DATE,NO_ZERO_DATE,"
                "ERROR_FOR_DIVISION_BY_ZERO,NO_ENGINE_SUBSTITUTION'"
            ),
        ],
        "error_mappings": {
            "1045": "authentication_failure",
            "1044": "authentication_failure",
            "2003": "connection_failure",
            "2005": "connection_failure",
            "2006": "connection_failure",
            "2013": "connection_failure",
            "1062": "constraint_violation",
            "1048": "constraint_violation",
            "1451": "constraint_violation",
            "1452": "constraint_violation",
            "3819": "constraint_violation",
            "1064": "syntax_error",
            "1054": "syntax_error",
            "1146": "syntax_error",
            "1264": "data_error",
            "1366": "data_error",
            "1406": "data_error",
            "1205": "timeout",
            "3024": "timeout",
            "1213": "transaction_failure",
        },
        "error_code_pattern": r"^\(?(\d{4}),",
    },
    "sqlserver": {
        "name": "sqlserver",
        "default_port": 1433,
        "default_mode": "direct",
        "url_templates": {
            "direct": (
                "mssql://{host}:{port}/{database}"
                "?encrypt=false&trustServerCertificate=true"
            ),
            # SQL Server Browser resolves the named instance to a port
            "browser": (
                "mssql://{host}/{database}?instanceName={context}"
                "&encrypt=false&trustServerCertificate=true"
            ),
        },
        "directory_context": "MSSQLSERVER",
        "properties": {
            "appname": "dbrunner",
            "tds_version": "7.4",
        },
        "init_statements": [
            "SET LANGUAGE us_english",
            "SET DATEFORMAT ymd",
            "SET ARITHABORT ON",
        ],
        "error_mappings": {
            "18456": "authentication_failure",
            "4060": "authentication_failure",
            "20009": "connection_failure",
            "10054": "connection_failure",
            "2627": "constraint_violation",
            "2601": "constraint_violation",
            "547": "constraint_violation",
            "515": "constraint_violation",
            "102": "syntax_error",
            "156": "syntax_error",
            "207": "syntax_error",
            "208": "syntax_error",
            "245": "data_error",
            "8115": "data_error",
            "8152": "data_error",
            "-2": "timeout",
            "1222": "timeout",
            "1205": "transaction_failure",
            "3902": "transaction_failure",
        },
        "error_code_pattern": r"^\(?(\d+),",
    },
}


@lru_cache(maxsize=1)
def builtin_vendor_configs() -> VendorConfigSet:
    return VendorConfigSet(
        vendors={name: VendorConfig.model_validate(raw) for name, raw in _BUILTIN.items()}
    )


_MERGED_FIELDS = ("url_templates", "properties", "error_mappings")


def _overlay(base: VendorConfig | None, override: dict[str, Any], name: str) -> VendorConfig:
    data: dict[str, Any] = base.model_dump() if base is not None else {"name": name}
    for key, value in override.items():
        if key in _MERGED_FIELDS and isinstance(value, dict):
            merged = dict(data.get(key) or {})
            merged.update(value)
            data[key] = merged
        else:
            data[key] = value
    data["name"] = name
    return VendorConfig.model_validate(data)


def load_vendor_configs(path: str | Path | None = None) -> VendorConfigSet:
    """
    Built-in vendor configs, overlaid with the JSON document at *path* if given.

    Raises ``FileNotFoundError`` / ``ValueError`` for a missing or malformed file;
    callers that want a best-effort load should catch those.
    """
    base = builtin_vendor_configs()
    if path is None:
        return base
    p = Path(path)
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid vendor config JSON in {p}: {e}") from e
    vendors_raw = raw.get("vendors", raw) if isinstance(raw, dict) else None
    if not isinstance(vendors_raw, dict):
        raise ValueError(f"Vendor config in {p} must be an object of vendor entries")

    vendors = dict(base.vendors)
    for name, override in vendors_raw.items():
        if not isinstance(override, dict):
            raise ValueError(f"Vendor config for {name!r} must be an object")
        key = str(name).strip().lower()
        vendors[key] = _overlay(vendors.get(key), override, key)
        _log.debug("Loaded vendor config overlay for %s from %s", key, p)
    return VendorConfigSet(vendors=vendors)
