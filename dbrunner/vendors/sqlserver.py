"""Microsoft SQL Server (pymssql)."""

import re
from typing import Any

import pymssql

from dbrunner.core.param_type import WireType
from dbrunner.vendors.base import VendorCapability


class SqlServerVendor(VendorCapability):
    driver = "pymssql"
    validation_query = "SELECT 1 AS test"
    procedural_pattern = re.compile(
        r"^\s*(?:CREATE\s+(?:OR\s+ALTER\s+)?(?:PROCEDURE|PROC|FUNCTION|TRIGGER|VIEW)\b)",
        re.IGNORECASE,
    )
    mode_aliases = {
        "default": "direct",
        "host": "direct",
        "instance": "browser",
        "ldap": "browser",
    }
    directory_modes = frozenset({"browser"})

    def explain_plan(self, text: str) -> str:
        return f"SET SHOWPLAN_ALL ON; {text}; SET SHOWPLAN_ALL OFF;"

    def create_procedure_call(self, procedure_name: str, param_count: int) -> str:
        args = self._placeholders(param_count)
        return f"EXEC {procedure_name} {args}".rstrip()

    def get_autocommit(self, connection: Any) -> bool:
        return bool(getattr(connection, "autocommit_state", False))

    def set_autocommit(self, connection: Any, enabled: bool) -> None:
        connection.autocommit(enabled)

    def call_procedure(
        self,
        cursor: Any,
        procedure_name: str,
        in_values: list[Any],
        out_types: list[WireType],
    ) -> list[Any]:
        outs = [pymssql.output(t.python_type) for t in out_types]
        result = cursor.callproc(procedure_name, tuple([*in_values, *outs]))
        values = list(result or ())
        return values[len(in_values) : len(in_values) + len(out_types)]
