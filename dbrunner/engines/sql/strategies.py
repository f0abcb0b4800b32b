"""
Execution strategies, one per statement kind.

- QUERY: list[dict] of rows (column label -> value), cursor fully drained
- MUTATION: affected row count (int >= 0)
- SCHEMA_CHANGE: True on success; DDL is not assumed transactional
- PROCEDURE: {} for an inline block, or {out_name: value} for a named call

Driver failures leave through the context's ``ErrorClassifier``. Outside a
transaction, writes are committed when the connection is not in auto-commit.
"""

import logging
from collections.abc import Callable
from typing import Any, ClassVar

from dbrunner.core.connection import cursor_to_dicts, execute
from dbrunner.core.errors import ENGINE_ERRORS, StatementKindError
from dbrunner.core.param_type import ProcedureParam, coerce_inputs
from dbrunner.engines.context import ExecutionContext
from dbrunner.engines.sql.statement import Statement, StatementKind

_log = logging.getLogger(__name__)


class ExecutionStrategy:
    kind: ClassVar[StatementKind]
    # Commit after success when no transaction is active and auto-commit is off
    commits: ClassVar[bool] = True

    def execute(self, statement: Statement, ctx: ExecutionContext) -> Any:
        if not isinstance(statement, Statement) or statement.kind is not self.kind:
            got = getattr(statement, "kind", type(statement).__name__)
            raise StatementKindError(
                f"{type(self).__name__} expects a {self.kind.value} statement, got {got}"
            )
        return self._guarded(ctx, lambda: self._run(statement, ctx))

    def execute_in_transaction(self, statement: Statement, ctx: ExecutionContext) -> Any:
        """``execute`` wrapped in the context's transaction manager."""
        return ctx.transaction_manager.run_in_transaction(
            lambda _conn: self.execute(statement, ctx)
        )

    def _guarded(self, ctx: ExecutionContext, fn: Callable[[], Any]) -> Any:
        conn = ctx.connection
        vendor = ctx.vendor
        try:
            result = fn()
            if self.commits and not ctx.in_transaction and not vendor.get_autocommit(conn):
                conn.commit()
            return result
        except ENGINE_ERRORS:
            raise
        except Exception as e:
            err = ctx.error_classifier.from_exception(e)
            _log.debug("%s failed on %s: %s", self.kind.value, vendor.name, err)
            raise err from e

    def _run(self, statement: Statement, ctx: ExecutionContext) -> Any:
        raise NotImplementedError


class QueryStrategy(ExecutionStrategy):
    kind = StatementKind.QUERY
    commits = False

    def _run(self, statement: Statement, ctx: ExecutionContext) -> list[dict[str, Any]]:
        cur = execute(ctx.connection, statement.text, vendor=ctx.vendor)
        try:
            return cursor_to_dicts(cur)
        finally:
            cur.close()


class MutationStrategy(ExecutionStrategy):
    kind = StatementKind.MUTATION

    def _run(self, statement: Statement, ctx: ExecutionContext) -> int:
        cur = execute(ctx.connection, statement.text, vendor=ctx.vendor)
        try:
            rowcount = cur.rowcount
        finally:
            cur.close()
        # DB-API reports -1 when the count is unknown
        return rowcount if rowcount is not None and rowcount > 0 else 0


class SchemaChangeStrategy(ExecutionStrategy):
    kind = StatementKind.SCHEMA_CHANGE

    def _run(self, statement: Statement, ctx: ExecutionContext) -> bool:
        cur = execute(ctx.connection, statement.text, vendor=ctx.vendor)
        cur.close()
        return True


class ProcedureStrategy(ExecutionStrategy):
    kind = StatementKind.PROCEDURE

    def _run(self, statement: Statement, ctx: ExecutionContext) -> dict[str, Any]:
        cur = execute(ctx.connection, statement.text, vendor=ctx.vendor)
        cur.close()
        return {}

    def call_procedure(
        self,
        procedure_name: str,
        in_params: list[ProcedureParam] | None,
        out_params: list[ProcedureParam] | None,
        ctx: ExecutionContext,
    ) -> dict[str, Any]:
        """
        Call *procedure_name* binding inputs then outputs positionally.

        Returns {out_param.name: value}. Input values are coerced to their
        declared wire type first (``ParamTypeError`` on bad input).
        """
        if not procedure_name or not procedure_name.strip():
            raise ValueError("procedure_name is required")
        outs = list(out_params or [])
        in_values = coerce_inputs(in_params)
        out_types = [p.wire_type for p in outs]

        def _call() -> dict[str, Any]:
            cur = ctx.connection.cursor()
            try:
                values = ctx.vendor.call_procedure(cur, procedure_name, in_values, out_types)
            finally:
                cur.close()
            return {p.name: v for p, v in zip(outs, values)}

        _log.debug(
            "Calling %s with %d in / %d out parameters", procedure_name, len(in_values), len(outs)
        )
        return self._guarded(ctx, _call)


STRATEGIES: dict[StatementKind, ExecutionStrategy] = {
    s.kind: s
    for s in (QueryStrategy(), MutationStrategy(), SchemaChangeStrategy(), ProcedureStrategy())
}

_missing = set(StatementKind) - set(STRATEGIES)
if _missing:
    raise RuntimeError(f"No execution strategy for {sorted(k.value for k in _missing)}")


def strategy_for(kind: StatementKind) -> ExecutionStrategy:
    return STRATEGIES[kind]


def execute_statement(statement: Statement, ctx: ExecutionContext) -> Any:
    """Run *statement* with the strategy for its kind."""
    return STRATEGIES[statement.kind].execute(statement, ctx)
