"""Tagged SQL statement produced by the classifier."""

from dataclasses import dataclass
from enum import Enum


class StatementKind(str, Enum):
    QUERY = "query"
    MUTATION = "mutation"
    SCHEMA_CHANGE = "schema_change"
    PROCEDURE = "procedure"


@dataclass(frozen=True)
class Statement:
    """SQL text plus the kind decided at classification time."""

    kind: StatementKind
    text: str

    def __str__(self) -> str:
        return self.text
