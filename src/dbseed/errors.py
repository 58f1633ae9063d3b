"""Exception hierarchy for dbseed."""

from __future__ import annotations

from typing import Sequence


class DbSeedError(Exception):
    """Base class for all dbseed errors."""


class SchemaError(DbSeedError, ValueError):
    """Table metadata is internally inconsistent (unknown key column, FK arity mismatch)."""


class GenerationError(DbSeedError):
    """Generation cannot satisfy the schema with the data available."""


class SchemaShapeError(GenerationError):
    """The schema has a shape the selected FK policy cannot handle."""


class CyclicForeignKeyError(SchemaShapeError):
    """A non-nullable FK inside a cycle cannot be resolved without deferred constraints."""

    def __init__(self, table: str, columns: Sequence[str], parent: str):
        self.table = table
        self.columns = list(columns)
        self.parent = parent
        super().__init__(
            f"Cycle with non-nullable FK {table}({', '.join(self.columns)}) -> {parent}; "
            f"enable deferred mode or make the FK nullable"
        )
