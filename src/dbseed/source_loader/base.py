"""Base types and abstract parser for the schema source loaders.

All parsers convert their input into a common ParsedSchema holding the
engine's Table metadata.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

from dbseed.model.schema import Table


class InputFormat(str, Enum):
    """Detected input format for auto-routing."""

    DDL = "ddl"
    SCHEMA_JSON = "schema_json"
    SCHEMA_YAML = "schema_yaml"
    CATALOG = "catalog"
    UNKNOWN = "unknown"


@dataclass
class ParsedSchema:
    """Complete schema extracted from any input format."""

    source_name: str
    tables: list[Table] = field(default_factory=list)
    input_format: InputFormat = InputFormat.UNKNOWN
    dialect: Optional[str] = None
    parse_warnings: list[str] = field(default_factory=list)

    def table(self, name: str) -> Optional[Table]:
        lowered = name.lower()
        for t in self.tables:
            if t.name.lower() == lowered:
                return t
        return None


class BaseParser(ABC):
    """Abstract base class for input format parsers."""

    @abstractmethod
    def parse(self, content: str, **kwargs) -> ParsedSchema:
        """Parse input content into a ParsedSchema."""
        ...

    @abstractmethod
    def can_parse(self, content: str) -> bool:
        """Return True if this parser can handle the given content."""
        ...


def mark_one_to_one(table: Table) -> Table:
    """Flag FKs whose columns are exactly a unique key (or the PK) as 1:1."""
    unique_sets = [frozenset(c.lower() for c in uk) for uk in table.unique_keys]
    if table.primary_key:
        unique_sets.append(frozenset(c.lower() for c in table.primary_key))
    fks = []
    changed = False
    for fk in table.foreign_keys:
        cols = frozenset(c.lower() for c in fk.columns)
        if not fk.unique_on_fk and cols in unique_sets:
            fks.append(replace(fk, unique_on_fk=True))
            changed = True
        else:
            fks.append(fk)
    return replace(table, foreign_keys=fks) if changed else table
