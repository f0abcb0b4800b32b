"""
SqlEngine: the four public operations.

- execute(sql, ctx) -> classify + run with the matching strategy
- run_in_transaction(op, ctx) -> op(connection) inside one transaction
- run_batch(job, ctx, context_factory=...) -> BatchResult
- classify_error(vendor, sql_state, vendor_code, message) -> NormalizedError
"""

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from dbrunner.core.error_classifier import ErrorClassifier
from dbrunner.core.errors import NormalizedError
from dbrunner.core.param_type import ProcedureParam
from dbrunner.engines.batch import BatchEngine, BatchJob, BatchResult
from dbrunner.engines.context import ExecutionContext
from dbrunner.engines.sql.classifier import classify
from dbrunner.engines.sql.statement import Statement
from dbrunner.engines.sql.strategies import STRATEGIES, ProcedureStrategy
from dbrunner.vendors.registry import RegistryHolder, VendorRegistry

_log = logging.getLogger(__name__)

T = TypeVar("T")


class SqlEngine:
    """
    Entry point for callers holding an ``ExecutionContext``.

    The registry is only needed for ``classify_error`` by vendor name; it is
    read through a ``RegistryHolder`` so a reload is picked up on the next call.
    """

    def __init__(
        self,
        registry: VendorRegistry | RegistryHolder | None = None,
        *,
        batch_engine: BatchEngine | None = None,
        strict: bool | None = None,
    ) -> None:
        if isinstance(registry, RegistryHolder):
            self._holder = registry
        else:
            self._holder = RegistryHolder(registry)
        self._batch = batch_engine or BatchEngine(strict=strict)
        self._strict = strict
        self._procedures = ProcedureStrategy()

    @property
    def registry(self) -> VendorRegistry:
        return self._holder.current

    def classify(self, sql: str | None, ctx: ExecutionContext) -> Statement:
        return classify(sql, ctx.vendor, strict=self._strict)

    def execute(self, sql: str | None, ctx: ExecutionContext) -> Any:
        """
        Classify *sql* for the context's vendor and run it.

        Returns list[dict] (query), int (mutation), bool (schema change) or {} (procedure block).
        """
        statement = self.classify(sql, ctx)
        _log.debug("Executing %s on %s: %s", statement.kind.value, ctx.vendor.name, statement.text)
        return STRATEGIES[statement.kind].execute(statement, ctx)

    def execute_in_transaction(self, sql: str | None, ctx: ExecutionContext) -> Any:
        statement = self.classify(sql, ctx)
        return STRATEGIES[statement.kind].execute_in_transaction(statement, ctx)

    def call_procedure(
        self,
        procedure_name: str,
        ctx: ExecutionContext,
        in_params: list[ProcedureParam] | None = None,
        out_params: list[ProcedureParam] | None = None,
    ) -> dict[str, Any]:
        return self._procedures.call_procedure(procedure_name, in_params, out_params, ctx)

    def run_in_transaction(self, op: Callable[[Any], T], ctx: ExecutionContext) -> T:
        return ctx.transaction_manager.run_in_transaction(op)

    def run_batch(
        self,
        job: BatchJob,
        ctx: ExecutionContext | None = None,
        *,
        context_factory: Callable[[], ExecutionContext] | None = None,
    ) -> BatchResult:
        return self._batch.run(job, ctx, context_factory=context_factory)

    def classify_error(
        self,
        vendor_name: str,
        sql_state: Any = None,
        vendor_code: Any = None,
        message: Any = None,
    ) -> NormalizedError:
        """Never raises; an unregistered vendor gets state-based classification only."""
        try:
            vendor = self.registry.get(vendor_name)
        except Exception as e:
            _log.warning("Vendor registry unavailable, classifying without vendor codes: %s", e)
            vendor = None
        try:
            if vendor is not None:
                classifier = ErrorClassifier(vendor.name, vendor.config)
            else:
                classifier = ErrorClassifier(vendor_name)
        except Exception as e:
            _log.debug("Could not build classifier for %r: %s", vendor_name, e)
            classifier = ErrorClassifier("unknown")
        return classifier.classify(sql_state, vendor_code, message)
