"""MySQL / MariaDB (PyMySQL)."""

import re
from typing import Any

from dbrunner.core.param_type import WireType
from dbrunner.vendors.base import VendorCapability


class MySqlVendor(VendorCapability):
    driver = "pymysql"
    procedural_pattern = re.compile(
        r"^\s*(?:CREATE\s+(?:OR\s+REPLACE\s+)?(?:DEFINER\s*=\s*\S+\s+)?"
        r"(?:PROCEDURE|FUNCTION|TRIGGER|EVENT)\b)",
        re.IGNORECASE,
    )
    mode_aliases = {
        "default": "direct",
        "host": "direct",
        "dns-srv": "srv",
        "ldap": "srv",
    }
    directory_modes = frozenset({"srv"})

    def get_autocommit(self, connection: Any) -> bool:
        return bool(connection.get_autocommit())

    def set_autocommit(self, connection: Any, enabled: bool) -> None:
        connection.autocommit(enabled)

    def statement_timeout_statements(self, timeout_ms: int) -> list[str]:
        return [f"SET SESSION max_execution_time = {max(0, int(timeout_ms))}"]

    def call_procedure(
        self,
        cursor: Any,
        procedure_name: str,
        in_values: list[Any],
        out_types: list[WireType],
    ) -> list[Any]:
        n_in = len(in_values)
        cursor.callproc(procedure_name, [*in_values, *([None] * len(out_types))])
        # Drain every result set the procedure produced before reading OUT vars
        while cursor.nextset():
            pass
        if not out_types:
            return []
        # PyMySQL stores arguments in @_<name>_<position> server variables
        names = ", ".join(
            f"@_{procedure_name}_{i}" for i in range(n_in, n_in + len(out_types))
        )
        cursor.execute(f"SELECT {names}")
        row = cursor.fetchone()
        return list(row) if row is not None else [None] * len(out_types)
