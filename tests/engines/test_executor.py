"""Unit tests for engines.executor.SqlEngine."""

from unittest.mock import MagicMock, patch

import pytest

from dbrunner.core.errors import ErrorKind, NormalizedError, UnclassifiedStatementError
from dbrunner.core.vendor_config import VendorConfig, VendorConfigSet
from dbrunner.engines import BatchJob, BatchState, SqlEngine
from dbrunner.engines.sql import StatementKind
from dbrunner.vendors import RegistryHolder
from tests.utils.fake_db import FakeConnection, make_context, make_registry


@pytest.fixture
def engine() -> SqlEngine:
    return SqlEngine(make_registry())


class TestExecute:
    def test_query(self, engine: SqlEngine) -> None:
        sql = "SELECT id FROM t"
        conn = FakeConnection(results={sql: (["id"], [(1,), (2,)])})
        assert engine.execute(sql, make_context(conn)) == [{"id": 1}, {"id": 2}]

    def test_mutation(self, engine: SqlEngine) -> None:
        sql = "UPDATE t SET a = 1"
        conn = FakeConnection(results={sql: 7})
        assert engine.execute(sql, make_context(conn)) == 7

    def test_schema_change(self, engine: SqlEngine) -> None:
        assert engine.execute("DROP TABLE t", make_context()) is True

    def test_procedural_block_uses_vendor_pattern(self, engine: SqlEngine) -> None:
        ctx = make_context(vendor="oracle")
        assert engine.classify("BEGIN NULL; END;", ctx).kind is StatementKind.PROCEDURE
        assert engine.execute("BEGIN NULL; END;", ctx) == {}

    def test_unrecognized_falls_back_to_mutation(self, engine: SqlEngine) -> None:
        conn = FakeConnection(results={"VACUUM": 0})
        assert engine.execute("VACUUM", make_context(conn)) == 0

    def test_strict_mode_rejects_unrecognized(self) -> None:
        engine = SqlEngine(make_registry(), strict=True)
        conn = FakeConnection()
        with pytest.raises(UnclassifiedStatementError):
            engine.execute("VACUUM", make_context(conn))
        assert conn.executed == []

    def test_execute_in_transaction(self, engine: SqlEngine) -> None:
        conn = FakeConnection(autocommit=True)
        engine.execute_in_transaction("DELETE FROM t", make_context(conn))
        assert conn.commits == 1
        assert conn.autocommit is True


class TestClassifyError:
    def test_vendor_code_mapping(self, engine: SqlEngine) -> None:
        err = engine.classify_error("mysql", "23000", 1062, "Duplicate entry '1' for key 'PRIMARY'")
        assert isinstance(err, NormalizedError)
        assert err.kind is ErrorKind.CONSTRAINT_VIOLATION
        assert err.vendor_code == "1062"

    def test_alias_resolves_vendor(self, engine: SqlEngine) -> None:
        assert engine.classify_error("mariadb", None, 1062, "dup").kind is ErrorKind.CONSTRAINT_VIOLATION

    def test_unknown_vendor_uses_state_only(self, engine: SqlEngine) -> None:
        err = engine.classify_error("informix", "08006", 1062, "connection lost")
        assert err.kind is ErrorKind.CONNECTION_FAILURE

    def test_nothing_known(self, engine: SqlEngine) -> None:
        assert engine.classify_error("postgresql").kind is ErrorKind.UNKNOWN

    @pytest.mark.parametrize("name", [None, 123, 4.5, ""])
    def test_non_string_vendor_name(self, engine: SqlEngine, name: object) -> None:
        err = engine.classify_error(name, "08006", None, None)  # type: ignore[arg-type]
        assert err.kind is ErrorKind.CONNECTION_FAILURE

    def test_alias_gets_vendor_specific_message(self, engine: SqlEngine) -> None:
        err = engine.classify_error(
            "ora", "42000", "ORA-00942", 'ORA-00942: table or view "X" does not exist'
        )
        assert err.kind is ErrorKind.SYNTAX_ERROR
        assert err.message.startswith("Table or view does not exist: X")

    def test_registry_failure_degrades(self) -> None:
        engine = SqlEngine(RegistryHolder())
        with patch("dbrunner.vendors.registry.build_registry", side_effect=OSError("bad config")):
            err = engine.classify_error("mysql", "42000", None, "syntax")
        assert err.kind is ErrorKind.SYNTAX_ERROR

    def test_reload_is_picked_up(self) -> None:
        holder = RegistryHolder(make_registry())
        engine = SqlEngine(holder)
        assert engine.classify_error("postgresql", None, "99999", "x").kind is ErrorKind.UNKNOWN

        configs = VendorConfigSet(
            vendors={
                "postgresql": VendorConfig(
                    name="postgresql",
                    error_mappings={"99999": ErrorKind.DATA_ERROR},
                )
            }
        )
        holder.reload(configs)
        assert engine.classify_error("postgresql", None, "99999", "x").kind is ErrorKind.DATA_ERROR


def test_run_in_transaction(engine: SqlEngine) -> None:
    conn = FakeConnection(autocommit=True)
    result = engine.run_in_transaction(lambda c: c is conn, make_context(conn))
    assert result is True
    assert conn.commits == 1


def test_run_batch_delegates() -> None:
    batch = MagicMock()
    engine = SqlEngine(make_registry(), batch_engine=batch)
    ctx = make_context()
    job = BatchJob(["SELECT 1"])
    engine.run_batch(job, ctx)
    batch.run.assert_called_once_with(job, ctx, context_factory=None)


def test_run_batch_end_to_end(engine: SqlEngine) -> None:
    conn = FakeConnection()
    result = engine.run_batch(BatchJob(["INSERT INTO t VALUES (1)", "SELECT 1"]), make_context(conn))
    assert result.state is BatchState.COMPLETED
    assert result.executed == 2


def test_call_procedure(engine: SqlEngine) -> None:
    ctx = make_context(vendor="postgresql")
    with patch.object(type(ctx.vendor), "call_procedure", return_value=[3]) as call:
        out = engine.call_procedure("count_rows", ctx, out_params=[])
    assert out == {}
    call.assert_called_once()
