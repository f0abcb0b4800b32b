"""Unit tests for core.param_type."""

from datetime import date, datetime

import pytest

from dbrunner.core.param_type import (
    ParamTypeError,
    ProcedureParam,
    WireType,
    coerce_inputs,
    coerce_value,
    map_param_type,
)


@pytest.mark.parametrize(
    "name, wire",
    [
        ("VARCHAR2", WireType.STRING),
        ("string", WireType.STRING),
        ("INT", WireType.INTEGER),
        ("bigint", WireType.INTEGER),
        ("NUMBER", WireType.FLOAT),
        ("double", WireType.FLOAT),
        ("Date", WireType.DATE),
        ("TIMESTAMP", WireType.TIMESTAMP),
        ("boolean", WireType.BOOLEAN),
        ("SDO_GEOMETRY", WireType.OTHER),
        ("", WireType.OTHER),
        (None, WireType.OTHER),
    ],
)
def test_map_param_type(name: str | None, wire: WireType) -> None:
    assert map_param_type(name) is wire


def test_coerce_value_by_wire_type() -> None:
    assert coerce_value("42", WireType.INTEGER) == 42
    assert coerce_value("1.5", WireType.FLOAT) == 1.5
    assert coerce_value("yes", WireType.BOOLEAN) is True
    assert coerce_value("2024-01-31", WireType.DATE) == date(2024, 1, 31)
    assert coerce_value("2024-01-31T10:00:00", WireType.TIMESTAMP) == datetime(2024, 1, 31, 10)
    assert coerce_value(7, WireType.STRING) == "7"


def test_none_and_other_pass_through() -> None:
    marker = object()
    assert coerce_value(None, WireType.INTEGER) is None
    assert coerce_value(marker, WireType.OTHER) is marker


@pytest.mark.parametrize(
    "value, wire",
    [
        ("abc", WireType.INTEGER),
        ("1.5", WireType.INTEGER),
        (True, WireType.INTEGER),
        ("", WireType.FLOAT),
        ("maybe", WireType.BOOLEAN),
        (2, WireType.BOOLEAN),
        ("31/01/2024", WireType.DATE),
        ("yesterday", WireType.TIMESTAMP),
    ],
)
def test_coerce_value_rejects(value: object, wire: WireType) -> None:
    with pytest.raises(ParamTypeError):
        coerce_value(value, wire)


def test_coerce_inputs_names_failing_param() -> None:
    params = [ProcedureParam("id", "int", "1"), ProcedureParam("qty", "int", "x")]
    with pytest.raises(ParamTypeError, match="Parameter 'qty'"):
        coerce_inputs(params)


def test_coerce_inputs_keeps_order() -> None:
    params = [
        ProcedureParam("a", "varchar", 1),
        ProcedureParam("b", "integer", "2"),
        ProcedureParam("c", "xmltype", "<x/>"),
    ]
    assert coerce_inputs(params) == ["1", 2, "<x/>"]
    assert coerce_inputs(None) == []


def test_procedure_param_wire_type() -> None:
    assert ProcedureParam("out", "number").wire_type is WireType.FLOAT
    assert ProcedureParam("out").wire_type is WireType.STRING
