"""
Structured filter expressions for result queries.

A FilterSet is a list of (column, operator, value) triples that are
AND-combined and translated to SQLAlchemy expressions with bound
parameters. There is no OR and no nesting.
"""
from dataclasses import dataclass, field
from typing import Any, List

from sqlalchemy import and_, true

# Columns that may appear in a filter
FILTERABLE_COLUMNS = ("location", "country", "city", "address")

OP_EQ = "eq"
OP_LIKE = "like"


@dataclass(frozen=True)
class Filter:
    """Single filter condition."""
    column: str
    op: str
    value: Any

    def __post_init__(self):
        if self.column not in FILTERABLE_COLUMNS:
            raise ValueError(f"Column {self.column!r} cannot be filtered")
        if self.op not in (OP_EQ, OP_LIKE):
            raise ValueError(f"Unknown filter operator {self.op!r}")


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user input only matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass
class FilterSet:
    """AND-combined collection of filters."""
    filters: List[Filter] = field(default_factory=list)

    def equals(self, column: str, value: Any) -> "FilterSet":
        self.filters.append(Filter(column, OP_EQ, value))
        return self

    def contains(self, column: str, value: str) -> "FilterSet":
        """Case-insensitive substring match."""
        self.filters.append(Filter(column, OP_LIKE, value))
        return self

    def __len__(self) -> int:
        return len(self.filters)

    def to_clause(self, model):
        """
        Build a SQLAlchemy WHERE clause against the given ORM model.

        Args:
            model: Mapped class whose attributes match the filter columns

        Returns:
            A boolean clause element (always-true when there are no filters)
        """
        conditions = []
        for f in self.filters:
            column = getattr(model, f.column)
            if f.op == OP_EQ:
                conditions.append(column == f.value)
            else:
                conditions.append(column.ilike(f"%{escape_like(f.value)}%", escape="\\"))

        if not conditions:
            return true()
        return and_(*conditions)
