"""
Batch engine: run many SQL texts under one policy.

State machine: PENDING -> RUNNING -> {COMPLETED, FAILED, TIMED_OUT}.

- SEQUENTIAL: input order on the caller's context. With stop_on_error the
  first failure ends the batch (FAILED); otherwise failures are counted and
  the batch still completes.
- BOUNDED_CONCURRENT: one unit per statement on a bounded thread pool, each
  unit on its own context from ``context_factory``. Every statement is
  attempted once. On timeout, units not yet started are cancelled and
  in-flight units are left to finish (no forced abort). The "first" failure
  is the first to complete, not the lowest index.
- SINGLE_TRANSACTION: the whole sequence through the transaction manager;
  executed is either len(statements) or 0.
"""

import logging
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from dbrunner.core.config import settings
from dbrunner.core.error_classifier import ErrorClassifier
from dbrunner.core.errors import ENGINE_ERRORS, ErrorKind, NormalizedError
from dbrunner.engines.context import ExecutionContext
from dbrunner.engines.sql.classifier import classify
from dbrunner.engines.sql.strategies import execute_statement

_log = logging.getLogger(__name__)


class BatchPolicy(str, Enum):
    SEQUENTIAL = "sequential"
    BOUNDED_CONCURRENT = "bounded_concurrent"
    SINGLE_TRANSACTION = "single_transaction"

    @classmethod
    def parse(cls, value: "str | BatchPolicy") -> "BatchPolicy":
        if isinstance(value, BatchPolicy):
            return value
        s = str(value).strip().lower().replace("-", "_")
        return cls(s)


class BatchState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @property
    def terminal(self) -> bool:
        return self in (BatchState.COMPLETED, BatchState.FAILED, BatchState.TIMED_OUT)


_TRANSITIONS: dict[BatchState, frozenset[BatchState]] = {
    BatchState.PENDING: frozenset({BatchState.RUNNING}),
    BatchState.RUNNING: frozenset(
        {BatchState.COMPLETED, BatchState.FAILED, BatchState.TIMED_OUT}
    ),
}


@dataclass(frozen=True)
class BatchJob:
    """
    Ordered SQL texts plus how to run them.

    - timeout: seconds for the whole batch; None uses ``settings.BATCH_TIMEOUT_SECONDS``.
    """

    statements: Sequence[str]
    policy: BatchPolicy = BatchPolicy.SEQUENTIAL
    stop_on_error: bool = True
    timeout: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "statements", tuple(self.statements))
        object.__setattr__(self, "policy", BatchPolicy.parse(self.policy))
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be positive")

    @property
    def effective_timeout(self) -> float:
        return self.timeout if self.timeout is not None else settings.BATCH_TIMEOUT_SECONDS


@dataclass(frozen=True)
class BatchFailure:
    """Failure of one statement; ``index`` is None for batch-level failures (timeout, commit)."""

    index: int | None
    error: Exception


@dataclass
class BatchResult:
    state: BatchState
    executed: int
    # First stop-on-error trigger (or the abort cause for SINGLE_TRANSACTION / timeout)
    failure: BatchFailure | None = None
    failures: list[BatchFailure] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return sum(1 for f in self.failures if f.index is not None)


class _BatchRun:
    """Mutable bookkeeping for one run; state changes follow ``_TRANSITIONS``."""

    def __init__(self, job: BatchJob) -> None:
        self.job = job
        self.state = BatchState.PENDING
        self.executed = 0
        self.failures: list[BatchFailure] = []
        self.failure: BatchFailure | None = None

    def transition(self, new: BatchState) -> None:
        allowed = _TRANSITIONS.get(self.state, frozenset())
        if new not in allowed:
            raise RuntimeError(f"Invalid batch transition {self.state.value} -> {new.value}")
        _log.debug("Batch %s -> %s", self.state.value, new.value)
        self.state = new

    def result(self) -> BatchResult:
        return BatchResult(
            state=self.state,
            executed=self.executed,
            failure=self.failure,
            failures=list(self.failures),
        )


def _timeout_error(classifier: ErrorClassifier, seconds: float) -> NormalizedError:
    return classifier.from_exception(TimeoutError(f"Batch timed out after {seconds:g}s"))


class BatchEngine:
    """Runs ``BatchJob``s. ``pool_size`` bounds BOUNDED_CONCURRENT parallelism."""

    def __init__(self, pool_size: int | None = None, *, strict: bool | None = None) -> None:
        size = pool_size if pool_size is not None else settings.BATCH_POOL_SIZE
        if size < 1:
            raise ValueError("pool_size must be >= 1")
        self.pool_size = size
        self._strict = strict

    def run(
        self,
        job: BatchJob,
        ctx: ExecutionContext | None = None,
        *,
        context_factory: Callable[[], ExecutionContext] | None = None,
    ) -> BatchResult:
        """
        Run *job* and return its terminal result.

        - ctx: session for SEQUENTIAL / SINGLE_TRANSACTION (required there).
        - context_factory: opens one new context per unit for BOUNDED_CONCURRENT
          (required there); each unit closes its own context.
        """
        run = _BatchRun(job)
        if job.policy is BatchPolicy.BOUNDED_CONCURRENT:
            if context_factory is None:
                raise ValueError("context_factory is required for bounded_concurrent batches")
        elif ctx is None:
            raise ValueError(f"ctx is required for {job.policy.value} batches")

        _log.info(
            "Batch started: %d statement(s), policy=%s, stop_on_error=%s, timeout=%gs",
            len(job.statements),
            job.policy.value,
            job.stop_on_error,
            job.effective_timeout,
        )
        run.transition(BatchState.RUNNING)
        if job.policy is BatchPolicy.SEQUENTIAL:
            self._run_sequential(run, ctx)
        elif job.policy is BatchPolicy.SINGLE_TRANSACTION:
            self._run_single_transaction(run, ctx)
        else:
            classifier = ctx.error_classifier if ctx is not None else ErrorClassifier("unknown")
            self._run_concurrent(run, context_factory, classifier)

        _log.info(
            "Batch finished: state=%s executed=%d failed=%d",
            run.state.value,
            run.executed,
            len([f for f in run.failures if f.index is not None]),
        )
        return run.result()

    def _execute_one(self, text: str, ctx: ExecutionContext) -> Any:
        return execute_statement(classify(text, ctx.vendor, strict=self._strict), ctx)

    # ------------------------------------------------------------------
    # SEQUENTIAL
    # ------------------------------------------------------------------

    def _run_sequential(self, run: _BatchRun, ctx: ExecutionContext) -> None:
        timeout = run.job.effective_timeout
        deadline = time.monotonic() + timeout
        for i, text in enumerate(run.job.statements):
            if time.monotonic() >= deadline:
                run.failure = BatchFailure(None, _timeout_error(ctx.error_classifier, timeout))
                run.failures.append(run.failure)
                run.transition(BatchState.TIMED_OUT)
                return
            try:
                self._execute_one(text, ctx)
                run.executed += 1
            except Exception as e:
                _log.error("Batch statement %d failed: %s", i, e, exc_info=True)
                failure = BatchFailure(i, e)
                run.failures.append(failure)
                if run.job.stop_on_error:
                    run.failure = failure
                    run.transition(BatchState.FAILED)
                    return
        run.transition(BatchState.COMPLETED)

    # ------------------------------------------------------------------
    # SINGLE_TRANSACTION
    # ------------------------------------------------------------------

    def _run_single_transaction(self, run: _BatchRun, ctx: ExecutionContext) -> None:
        timeout = run.job.effective_timeout
        deadline = time.monotonic() + timeout
        current: list[int | None] = [None]
        timed_out = threading.Event()

        def _all(_conn: Any) -> int:
            for i, text in enumerate(run.job.statements):
                if time.monotonic() >= deadline:
                    current[0] = None
                    timed_out.set()
                    raise _timeout_error(ctx.error_classifier, timeout)
                current[0] = i
                self._execute_one(text, ctx)
            current[0] = None
            return len(run.job.statements)

        try:
            run.executed = ctx.transaction_manager.run_in_transaction(_all)
        except Exception as e:
            run.executed = 0
            _log.error(
                "Single-transaction batch rolled back at statement %s: %s",
                current[0],
                e,
                exc_info=True,
            )
            run.failure = BatchFailure(current[0], e)
            run.failures.append(run.failure)
            run.transition(BatchState.TIMED_OUT if timed_out.is_set() else BatchState.FAILED)
            return
        run.transition(BatchState.COMPLETED)

    # ------------------------------------------------------------------
    # BOUNDED_CONCURRENT
    # ------------------------------------------------------------------

    def _run_concurrent(
        self,
        run: _BatchRun,
        context_factory: Callable[[], ExecutionContext],
        classifier: ErrorClassifier,
    ) -> None:
        statements = run.job.statements
        if not statements:
            run.transition(BatchState.COMPLETED)
            return

        lock = threading.Lock()
        # Set once the batch has returned; late units no longer touch the result
        sealed = threading.Event()

        def _unit(index: int, text: str) -> None:
            try:
                with context_factory() as unit_ctx:
                    self._execute_one(text, unit_ctx)
            except Exception as e:
                err = e if isinstance(e, ENGINE_ERRORS) else classifier.from_exception(e)
                _log.error("Batch statement %d failed: %s", index, err, exc_info=True)
                with lock:
                    if sealed.is_set():
                        return
                    failure = BatchFailure(index, err)
                    run.failures.append(failure)
                    if run.job.stop_on_error and run.failure is None:
                        run.failure = failure
                return
            with lock:
                if not sealed.is_set():
                    run.executed += 1

        timeout = run.job.effective_timeout
        pool = ThreadPoolExecutor(
            max_workers=min(self.pool_size, len(statements)),
            thread_name_prefix="dbrunner-batch",
        )
        try:
            futures = [pool.submit(_unit, i, text) for i, text in enumerate(statements)]
            _done, not_done = wait(futures, timeout=timeout)
            if not_done:
                cancelled = sum(1 for f in not_done if f.cancel())
                _log.warning(
                    "Batch timed out after %gs: %d unit(s) cancelled, %d still running",
                    timeout,
                    cancelled,
                    len(not_done) - cancelled,
                )
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        with lock:
            sealed.set()
            if not_done:
                run.failure = BatchFailure(None, _timeout_error(classifier, timeout))
                run.failures.append(run.failure)
                run.transition(BatchState.TIMED_OUT)
            elif run.failure is not None:
                run.transition(BatchState.FAILED)
            else:
                run.transition(BatchState.COMPLETED)
