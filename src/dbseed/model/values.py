"""Generated values: rows, deferred FK fixups and repetition rules."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union
from uuid import UUID


class SqlKeyword(str, Enum):
    """SQL keywords emitted verbatim instead of a literal."""

    DEFAULT = "DEFAULT"


# Everything a generated cell may hold. The SQL emitter dispatches on these types.
Value = Optional[
    Union[int, float, Decimal, str, bool, bytes, UUID, date, time, datetime, list, SqlKeyword]
]


@dataclass
class Row:
    """One generated row; column order follows the table definition."""

    values: dict[str, Value] = field(default_factory=dict)

    def get(self, column: str) -> Value:
        return self.values.get(column)

    def key(self, columns: list[str]) -> tuple:
        return tuple(self.values.get(c) for c in columns)


@dataclass
class PendingUpdate:
    """An FK assignment applied after all INSERTs (non-deferred cycles)."""

    table: str
    fk_values: dict[str, Value]
    pk_values: dict[str, Value]


@dataclass
class RepetitionRule:
    """Generate ``count`` rows sharing fixed and random-but-constant values.

    ``fixed_values`` maps column -> literal (strings are coerced to the
    column type); ``random_constant_columns`` are generated once per rule
    and repeated across its rows.
    """

    count: int
    fixed_values: dict[str, Any] = field(default_factory=dict)
    random_constant_columns: set[str] = field(default_factory=set)
