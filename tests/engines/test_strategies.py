"""Unit tests for engines.sql.strategies."""

from unittest.mock import MagicMock, patch

import pytest

from dbrunner.core.errors import (
    ContextClosedError,
    ErrorKind,
    NormalizedError,
    StatementKindError,
)
from dbrunner.core.param_type import ParamTypeError, ProcedureParam
from dbrunner.engines.sql import (
    STRATEGIES,
    MutationStrategy,
    ProcedureStrategy,
    QueryStrategy,
    SchemaChangeStrategy,
    Statement,
    StatementKind,
    execute_statement,
)
from tests.utils.fake_db import FakeConnection, FakeDriverError, make_context


def test_every_kind_has_a_strategy() -> None:
    assert set(STRATEGIES) == set(StatementKind)
    for kind, strategy in STRATEGIES.items():
        assert strategy.kind is kind


class TestQuery:
    def test_rows_as_ordered_mappings(self) -> None:
        sql = "SELECT id, name FROM t"
        conn = FakeConnection(results={sql: (["id", "name"], [(1, "a"), (2, "b")])})
        rows = QueryStrategy().execute(Statement(StatementKind.QUERY, sql), make_context(conn))
        assert rows == [{"id": 1, "name": "a"}, {"id": 2, "name": "b"}]
        assert list(rows[0]) == ["id", "name"]
        # drained and closed
        assert conn.cursors[-1].closed is True
        assert conn.cursors[-1].fetchall() == []

    def test_no_result_set(self) -> None:
        sql = "SELECT nothing"
        conn = FakeConnection()
        assert QueryStrategy().execute(Statement(StatementKind.QUERY, sql), make_context(conn)) == []

    def test_query_never_commits(self) -> None:
        sql = "SELECT 1"
        conn = FakeConnection(autocommit=False, results={sql: (["n"], [(1,)])})
        QueryStrategy().execute(Statement(StatementKind.QUERY, sql), make_context(conn))
        assert conn.commits == 0


class TestMutation:
    def test_rowcount(self) -> None:
        sql = "UPDATE t SET a = 1"
        conn = FakeConnection(results={sql: 3})
        n = MutationStrategy().execute(Statement(StatementKind.MUTATION, sql), make_context(conn))
        assert n == 3

    def test_unknown_rowcount_is_zero(self) -> None:
        sql = "MERGE INTO t USING s ON (1 = 1) WHEN MATCHED THEN DELETE"
        conn = FakeConnection(results={sql: -1})
        n = MutationStrategy().execute(Statement(StatementKind.MUTATION, sql), make_context(conn))
        assert n == 0

    def test_commits_outside_transaction_when_manual(self) -> None:
        sql = "DELETE FROM t"
        conn = FakeConnection(autocommit=False)
        MutationStrategy().execute(Statement(StatementKind.MUTATION, sql), make_context(conn))
        assert conn.commits == 1

    def test_no_commit_in_autocommit(self) -> None:
        conn = FakeConnection(autocommit=True)
        MutationStrategy().execute(Statement(StatementKind.MUTATION, "DELETE FROM t"), make_context(conn))
        assert conn.commits == 0

    def test_failure_is_classified(self) -> None:
        sql = "INSERT INTO t VALUES (1)"
        cause = FakeDriverError("duplicate key value", sqlstate="23505")
        conn = FakeConnection(failures={sql: cause})
        with pytest.raises(NormalizedError) as exc_info:
            MutationStrategy().execute(Statement(StatementKind.MUTATION, sql), make_context(conn))
        assert exc_info.value.kind is ErrorKind.CONSTRAINT_VIOLATION
        assert exc_info.value.__cause__ is cause

    def test_execute_in_transaction(self) -> None:
        sql = "UPDATE t SET a = 2"
        conn = FakeConnection(autocommit=True, results={sql: 4})
        ctx = make_context(conn)
        n = MutationStrategy().execute_in_transaction(Statement(StatementKind.MUTATION, sql), ctx)
        assert n == 4
        # one commit from the transaction manager, none from the strategy
        assert conn.commits == 1
        assert conn.autocommit_history == [False, True]


class TestSchemaChange:
    def test_returns_true(self) -> None:
        sql = "CREATE TABLE t (id INT)"
        ctx = make_context(FakeConnection())
        assert SchemaChangeStrategy().execute(Statement(StatementKind.SCHEMA_CHANGE, sql), ctx) is True

    def test_syntax_error(self) -> None:
        sql = "CREATE TABLE ("
        conn = FakeConnection(failures={sql: FakeDriverError("syntax error", sqlstate="42601")})
        with pytest.raises(NormalizedError) as exc_info:
            SchemaChangeStrategy().execute(Statement(StatementKind.SCHEMA_CHANGE, sql), make_context(conn))
        assert exc_info.value.kind is ErrorKind.SYNTAX_ERROR


class TestTagMismatch:
    @pytest.mark.parametrize(
        "strategy, kind",
        [
            (QueryStrategy(), StatementKind.MUTATION),
            (MutationStrategy(), StatementKind.QUERY),
            (SchemaChangeStrategy(), StatementKind.PROCEDURE),
            (ProcedureStrategy(), StatementKind.SCHEMA_CHANGE),
        ],
    )
    def test_wrong_kind_raises_before_io(self, strategy: object, kind: StatementKind) -> None:
        conn = FakeConnection()
        with pytest.raises(StatementKindError):
            strategy.execute(Statement(kind, "SELECT 1"), make_context(conn))  # type: ignore[attr-defined]
        assert conn.executed == []

    def test_raw_string_rejected(self) -> None:
        with pytest.raises(StatementKindError):
            QueryStrategy().execute("SELECT 1", make_context())  # type: ignore[arg-type]


class TestProcedure:
    def test_inline_block_returns_empty_map(self) -> None:
        sql = "BEGIN NULL; END;"
        conn = FakeConnection()
        out = ProcedureStrategy().execute(Statement(StatementKind.PROCEDURE, sql), make_context(conn, "oracle"))
        assert out == {}
        assert conn.executed == [sql]

    def test_call_procedure_maps_out_params_by_name(self) -> None:
        ctx = make_context(FakeConnection(), "oracle")
        with patch.object(type(ctx.vendor), "call_procedure", return_value=[10, "done"]) as call:
            out = ProcedureStrategy().call_procedure(
                "pkg.run",
                [ProcedureParam("id", "NUMBER", "5"), ProcedureParam("flag", "boolean", "yes")],
                [ProcedureParam("total", "INTEGER"), ProcedureParam("status", "VARCHAR2")],
                ctx,
            )
        assert out == {"total": 10, "status": "done"}
        args = call.call_args.args
        assert args[1] == "pkg.run"
        assert args[2] == [5.0, True]
        assert [t.value for t in args[3]] == ["integer", "string"]

    def test_unknown_type_binds_opaque(self) -> None:
        ctx = make_context(FakeConnection(), "postgresql")
        with patch.object(type(ctx.vendor), "call_procedure", return_value=[None]) as call:
            ProcedureStrategy().call_procedure(
                "p", [ProcedureParam("g", "geometry", "POINT(1 1)")], [ProcedureParam("o", "hstore")], ctx
            )
        args = call.call_args.args
        assert args[2] == ["POINT(1 1)"]
        assert args[3][0].value == "other"

    def test_bad_input_value(self) -> None:
        conn = FakeConnection()
        with pytest.raises(ParamTypeError):
            ProcedureStrategy().call_procedure(
                "p", [ProcedureParam("n", "int", "abc")], [], make_context(conn)
            )
        assert conn.cursors == []

    def test_driver_failure_is_classified(self) -> None:
        ctx = make_context(FakeConnection(), "mysql")
        err = Exception(1305, "PROCEDURE app.nope does not exist")
        with patch.object(type(ctx.vendor), "call_procedure", side_effect=err):
            with pytest.raises(NormalizedError) as exc_info:
                ProcedureStrategy().call_procedure("nope", [], [], ctx)
        assert exc_info.value.vendor_code == "1305"
        assert exc_info.value.__cause__ is err

    def test_name_required(self) -> None:
        with pytest.raises(ValueError):
            ProcedureStrategy().call_procedure(" ", [], [], make_context())


def test_execute_statement_dispatches() -> None:
    sql = "SELECT 1"
    conn = FakeConnection(results={sql: (["n"], [(1,)])})
    assert execute_statement(Statement(StatementKind.QUERY, sql), make_context(conn)) == [{"n": 1}]


def test_closed_context_rejected() -> None:
    ctx = make_context()
    ctx.close()
    with pytest.raises(ContextClosedError):
        QueryStrategy().execute(Statement(StatementKind.QUERY, "SELECT 1"), ctx)


@patch("dbrunner.engines.sql.strategies.execute")
def test_strategies_use_vendor_aware_execute(mock_execute: MagicMock) -> None:
    cur = MagicMock()
    cur.rowcount = 2
    mock_execute.return_value = cur
    ctx = make_context(FakeConnection())
    MutationStrategy().execute(Statement(StatementKind.MUTATION, "DELETE FROM t"), ctx)
    mock_execute.assert_called_once_with(ctx.connection, "DELETE FROM t", vendor=ctx.vendor)
    cur.close.assert_called_once()
