"""Oracle Database (python-oracledb)."""

import re
from typing import Any

from dbrunner.core.param_type import WireType
from dbrunner.vendors.base import VendorCapability


class OracleVendor(VendorCapability):
    driver = "oracledb"
    validation_query = "SELECT 1 FROM DUAL"
    placeholder = ":{n}"
    procedural_pattern = re.compile(
        r"^\s*(?:DECLARE|BEGIN|CREATE\s+(?:OR\s+REPLACE\s+)?"
        r"(?:FUNCTION|PROCEDURE|PACKAGE|TRIGGER)\b)",
        re.IGNORECASE,
    )
    mode_aliases = {
        "thin": "service",
        "thin-service": "service",
        "thin-sid": "sid",
        "thin-ldap": "ldap",
        "service_name": "service",
    }

    def explain_plan(self, text: str) -> str:
        return f"EXPLAIN PLAN FOR {text}"

    def create_procedure_call(self, procedure_name: str, param_count: int) -> str:
        return f"BEGIN {procedure_name}({self._placeholders(param_count)}); END;"

    def create_function_call(self, function_name: str, param_count: int) -> str:
        return f"BEGIN :1 := {function_name}({self._placeholders(param_count, start=2)}); END;"

    def apply_statement_timeout(self, connection: Any, timeout_ms: int) -> None:
        # oracledb has no session statement for this; call_timeout is per round trip
        connection.call_timeout = max(0, int(timeout_ms))

    def call_procedure(
        self,
        cursor: Any,
        procedure_name: str,
        in_values: list[Any],
        out_types: list[WireType],
    ) -> list[Any]:
        out_vars = [cursor.var(t.python_type) for t in out_types]
        cursor.callproc(procedure_name, [*in_values, *out_vars])
        return [v.getvalue() for v in out_vars]
