"""
Engines: statement strategies, transactions, batches and the SqlEngine facade.
"""

from dbrunner.engines.batch import BatchEngine, BatchJob, BatchPolicy, BatchResult, BatchState
from dbrunner.engines.context import ExecutionContext, open_context
from dbrunner.engines.executor import SqlEngine
from dbrunner.engines.transaction import TransactionManager

__all__ = [
    "SqlEngine",
    "ExecutionContext",
    "open_context",
    "TransactionManager",
    "BatchEngine",
    "BatchJob",
    "BatchPolicy",
    "BatchResult",
    "BatchState",
]
