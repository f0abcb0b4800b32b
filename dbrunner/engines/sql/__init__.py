"""
Statement classification and per-kind execution strategies.

Exports: Statement, StatementKind, classify, execute_statement, STRATEGIES.
"""

from dbrunner.engines.sql.classifier import classify
from dbrunner.engines.sql.statement import Statement, StatementKind
from dbrunner.engines.sql.strategies import (
    STRATEGIES,
    MutationStrategy,
    ProcedureStrategy,
    QueryStrategy,
    SchemaChangeStrategy,
    execute_statement,
)

__all__ = [
    "Statement",
    "StatementKind",
    "classify",
    "execute_statement",
    "STRATEGIES",
    "QueryStrategy",
    "MutationStrategy",
    "SchemaChangeStrategy",
    "ProcedureStrategy",
]
