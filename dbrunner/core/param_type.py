"""
Procedure parameter types and value coercion.

Maps declared parameter type strings (``VARCHAR2``, ``INT``, ``NUMBER``...) to a
fixed set of wire types and coerces input values to the matching Python type
before they are bound. Unrecognised type strings map to ``WireType.OTHER`` and
are bound unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable


class ParamTypeError(ValueError):
    """Raised when a parameter fails type validation or coercion."""

    pass


class WireType(str, Enum):
    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    DATE = "date"
    TIMESTAMP = "timestamp"
    BOOLEAN = "boolean"
    OTHER = "other"

    @property
    def python_type(self) -> type:
        return _PYTHON_TYPES[self]


_PYTHON_TYPES: dict[WireType, type] = {
    WireType.STRING: str,
    WireType.INTEGER: int,
    WireType.FLOAT: float,
    WireType.DATE: date,
    WireType.TIMESTAMP: datetime,
    WireType.BOOLEAN: bool,
    WireType.OTHER: str,
}

_TYPE_NAMES: dict[str, WireType] = {
    "string": WireType.STRING,
    "varchar": WireType.STRING,
    "varchar2": WireType.STRING,
    "nvarchar": WireType.STRING,
    "char": WireType.STRING,
    "text": WireType.STRING,
    "integer": WireType.INTEGER,
    "int": WireType.INTEGER,
    "bigint": WireType.INTEGER,
    "smallint": WireType.INTEGER,
    "double": WireType.FLOAT,
    "float": WireType.FLOAT,
    "number": WireType.FLOAT,
    "numeric": WireType.FLOAT,
    "decimal": WireType.FLOAT,
    "date": WireType.DATE,
    "timestamp": WireType.TIMESTAMP,
    "datetime": WireType.TIMESTAMP,
    "boolean": WireType.BOOLEAN,
    "bool": WireType.BOOLEAN,
    "bit": WireType.BOOLEAN,
}


def map_param_type(type_name: str | None) -> WireType:
    """Wire type for a declared type string; ``OTHER`` for anything unknown."""
    if not type_name or not isinstance(type_name, str):
        return WireType.OTHER
    return _TYPE_NAMES.get(type_name.strip().lower(), WireType.OTHER)


def _coerce_string(value: Any) -> str:
    return str(value)


def _coerce_float(value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    s = str(value).strip()
    if not s:
        raise ParamTypeError("Value is empty")
    try:
        return float(s)
    except ValueError as e:
        raise ParamTypeError(f"Invalid number: {s!r}") from e


def _coerce_integer(value: Any) -> int:
    if isinstance(value, bool):
        raise ParamTypeError("Boolean not allowed for integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise ParamTypeError(f"Expected integer, got float: {value}")
        return int(value)
    s = str(value).strip()
    if not s:
        raise ParamTypeError("Value is empty")
    try:
        x = float(s)
    except ValueError as e:
        raise ParamTypeError(f"Invalid integer: {s!r}") from e
    if not x.is_integer():
        raise ParamTypeError(f"Expected integer, got: {s!r}")
    return int(x)


def _coerce_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value == 0:
            return False
        if value == 1:
            return True
        raise ParamTypeError(f"Expected boolean, got integer: {value}")
    s = str(value).strip().lower()
    if s in ("true", "1", "yes"):
        return True
    if s in ("false", "0", "no"):
        return False
    raise ParamTypeError(f"Expected boolean (true/false, 1/0, yes/no), got: {value!r}")


def _coerce_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    try:
        return date.fromisoformat(s[:10])
    except ValueError as e:
        raise ParamTypeError(f"Invalid date (expected YYYY-MM-DD): {s!r}") from e


def _coerce_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    s = str(value).strip()
    try:
        return datetime.fromisoformat(s)
    except ValueError as e:
        raise ParamTypeError(f"Invalid timestamp (expected ISO 8601): {s!r}") from e


_COERCERS: dict[WireType, Callable[[Any], Any]] = {
    WireType.STRING: _coerce_string,
    WireType.INTEGER: _coerce_integer,
    WireType.FLOAT: _coerce_float,
    WireType.DATE: _coerce_date,
    WireType.TIMESTAMP: _coerce_timestamp,
    WireType.BOOLEAN: _coerce_boolean,
}


@dataclass(frozen=True)
class ProcedureParam:
    """A named procedure parameter; ``value`` is ignored for output parameters."""

    name: str
    type: str = "string"
    value: Any = None

    @property
    def wire_type(self) -> WireType:
        return map_param_type(self.type)


def coerce_value(value: Any, wire_type: WireType) -> Any:
    """Coerce *value* for binding; ``None`` and ``OTHER`` pass through unchanged."""
    if value is None:
        return None
    coerce_fn = _COERCERS.get(wire_type)
    if coerce_fn is None:
        return value
    return coerce_fn(value)


def coerce_inputs(params: list[ProcedureParam] | None) -> list[Any]:
    """Coerced values of *params* in order. Raises ParamTypeError on first failure."""
    out: list[Any] = []
    for p in params or []:
        try:
            out.append(coerce_value(p.value, p.wire_type))
        except ParamTypeError as e:
            raise ParamTypeError(f"Parameter '{p.name}' {e}") from e
    return out
