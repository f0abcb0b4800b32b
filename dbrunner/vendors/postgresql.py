"""PostgreSQL (psycopg 3)."""

import re

from dbrunner.vendors.base import VendorCapability


class PostgreSqlVendor(VendorCapability):
    driver = "psycopg"
    procedural_pattern = re.compile(
        r"^\s*(?:DO\b|CREATE\s+(?:OR\s+REPLACE\s+)?(?:FUNCTION|PROCEDURE|TRIGGER)\b)",
        re.IGNORECASE,
    )
    mode_aliases = {
        "default": "direct",
        "host": "direct",
        "ldap": "service",
        "pg_service": "service",
    }
    directory_modes = frozenset({"service"})

    def explain_plan(self, text: str) -> str:
        return f"EXPLAIN (ANALYZE false, COSTS true, FORMAT TEXT) {text}"

    def statement_timeout_statements(self, timeout_ms: int) -> list[str]:
        return [f"SET statement_timeout = {max(0, int(timeout_ms))}"]
