"""Foreign key resolver — fills FK columns with keys of generated parent rows.

Runs after every table has rows. Tables are visited in generation order; a
parent counts as settled once it has been visited. FKs to settled parents are
assigned directly. FKs to unsettled parents (self references, later members of
a cycle) are either assigned directly in deferred mode, or left NULL and
recorded as a PendingUpdate applied after the INSERTs.
"""

from __future__ import annotations

import logging
import math
import random
from collections import deque
from typing import Optional, Sequence

from dbseed.errors import CyclicForeignKeyError, GenerationError, SchemaError, SchemaShapeError
from dbseed.generator.dependency_graph import fk_is_nullable
from dbseed.model.schema import ForeignKey, Table
from dbseed.model.values import PendingUpdate, Row, Value

logger = logging.getLogger(__name__)

MAX_UNIQUE_ATTEMPTS = 100


class ForeignKeyResolver:
    """Assigns FK values for all tables of one run.

    Args:
        tables: Tables in generation order.
        data: Generated rows per table name; rows are updated in place.
        deferred: True when the target defers FK checks to commit time.
        rng: Random source for parent selection.
    """

    def __init__(
        self,
        tables: Sequence[Table],
        data: dict[str, list[Row]],
        deferred: bool,
        rng: Optional[random.Random] = None,
    ):
        self.tables = list(tables)
        self.data = data
        self.deferred = deferred
        self.rng = rng or random.Random()
        self._by_lower = {t.name.lower(): t for t in self.tables}
        self._inserted: set[str] = set()
        self._unique_parent_queues: dict[str, deque] = {}
        self._warned: set[str] = set()

    def resolve(self) -> list[PendingUpdate]:
        """Assign every FK column; return the updates to run after the INSERTs."""
        updates: list[PendingUpdate] = []
        for table in self.tables:
            rows = self.data.get(table.name, [])
            if rows and table.foreign_keys:
                updates.extend(self._resolve_table(table, rows))
            self._inserted.add(table.name)
        if updates:
            logger.info(f"{len(updates)} FK assignments deferred to UPDATE statements")
        return updates

    # ------------------------------------------------------------------ #
    # Per table
    # ------------------------------------------------------------------ #

    def _resolve_table(self, table: Table, rows: list[Row]) -> list[PendingUpdate]:
        groups = self._unique_fk_groups(table)
        grouped = {fk.name for _, fks in groups for fk in fks}
        seen: list[set[tuple]] = [set() for _ in groups]

        updates = []
        for row in rows:
            pending: dict[str, Value] = {}
            for fk in table.foreign_keys:
                if fk.name in grouped:
                    continue
                parent = self._parent_table(table, fk)
                if parent is None:
                    self._set_null(row, fk)
                    continue
                parent_row = self._pick_parent(table, fk, parent)
                if parent_row is None:
                    self._set_null(row, fk)
                    continue
                self._assign(table, row, fk, parent, parent_row, pending)

            for i, (key, fks) in enumerate(groups):
                self._assign_unique_combination(table, row, key, fks, seen[i], pending)

            if pending:
                updates.append(PendingUpdate(
                    table=table.name,
                    fk_values=pending,
                    pk_values=self._row_identity(table, row),
                ))
        return updates

    def _unique_fk_groups(self, table: Table) -> list[tuple[list[str], list[ForeignKey]]]:
        """Unique keys (PK included) made only of FK columns, with the FKs covering them."""
        fk_cols = table.fk_column_names()
        candidates = list(table.unique_keys)
        if table.primary_key:
            candidates.append(table.primary_key)
        groups = []
        seen_keys = set()
        for key in candidates:
            key_set = frozenset(key)
            if not key or not key_set <= fk_cols or key_set in seen_keys:
                continue
            seen_keys.add(key_set)
            fks = [fk for fk in table.foreign_keys if key_set & set(fk.columns)]
            groups.append((list(key), fks))
        return groups

    # ------------------------------------------------------------------ #
    # Parent selection
    # ------------------------------------------------------------------ #

    def _parent_table(self, table: Table, fk: ForeignKey) -> Optional[Table]:
        parent = self._by_lower.get(fk.referenced_table.lower())
        if parent is None and fk.name not in self._warned:
            self._warned.add(fk.name)
            logger.warning(
                f"Table {table.name}: parent table {fk.referenced_table} of {fk.name} "
                f"is not part of the run; FK set to NULL"
            )
        return parent

    def _pick_parent(self, table: Table, fk: ForeignKey, parent: Table) -> Optional[Row]:
        parent_rows = self.data.get(parent.name, [])
        if fk.unique_on_fk:
            queue_key = f"{table.name}|{fk.name}"
            queue = self._unique_parent_queues.get(queue_key)
            if queue is None:
                shuffled = list(parent_rows)
                self.rng.shuffle(shuffled)
                queue = deque(shuffled)
                self._unique_parent_queues[queue_key] = queue
            if queue:
                return queue.popleft()
            return self._missing_parent(
                table, fk, f"1:1 FK {fk.name} ran out of unused {parent.name} rows"
            )
        if not parent_rows:
            return self._missing_parent(table, fk, f"parent table {parent.name} has no rows")
        return self.rng.choice(parent_rows)

    def _missing_parent(self, table: Table, fk: ForeignKey, reason: str) -> None:
        if fk_is_nullable(table, fk.columns):
            return None
        raise GenerationError(
            f"Table {table.name}: non-nullable FK ({', '.join(fk.columns)}) cannot be filled: {reason}"
        )

    def _parent_values(self, fk: ForeignKey, parent: Table, parent_row: Row) -> dict[str, Value]:
        values = {}
        for child_col, parent_col in fk.column_mapping.items():
            column = parent.column(parent_col)
            if column is None:
                raise SchemaError(
                    f"FK {fk.name} references missing column {parent.name}.{parent_col}"
                )
            values[child_col] = parent_row.get(column.name)
        return values

    # ------------------------------------------------------------------ #
    # Assignment
    # ------------------------------------------------------------------ #

    def _assign(
        self,
        table: Table,
        row: Row,
        fk: ForeignKey,
        parent: Table,
        parent_row: Row,
        pending: dict[str, Value],
    ):
        values = self._parent_values(fk, parent, parent_row)
        if parent.name in self._inserted or self.deferred:
            row.values.update(values)
            return
        if not fk_is_nullable(table, fk.columns):
            raise CyclicForeignKeyError(table.name, fk.columns, parent.name)
        self._set_null(row, fk)
        pending.update(values)

    def _set_null(self, row: Row, fk: ForeignKey):
        for col in fk.columns:
            row.values[col] = None

    def _assign_unique_combination(
        self,
        table: Table,
        row: Row,
        key: list[str],
        fks: list[ForeignKey],
        seen: set[tuple],
        pending: dict[str, Value],
    ):
        parents = []
        for fk in fks:
            parent = self._parent_table(table, fk)
            parent_rows = self.data.get(parent.name, []) if parent is not None else []
            if not parent_rows:
                reason = "parent table is unknown" if parent is None else f"{parent.name} has no rows"
                self._missing_parent(table, fk, reason)
                for f in fks:
                    self._set_null(row, f)
                return
            parents.append((fk, parent, parent_rows))

        capacity = math.prod(len(rows) for _, _, rows in parents)
        attempts = 0
        while len(seen) < capacity and attempts < MAX_UNIQUE_ATTEMPTS:
            attempts += 1
            choice = [(fk, parent, self.rng.choice(rows)) for fk, parent, rows in parents]
            candidate: dict[str, Value] = {}
            for fk, parent, parent_row in choice:
                candidate.update(self._parent_values(fk, parent, parent_row))
            combination = tuple(candidate.get(c) for c in key)
            if combination in seen:
                continue
            seen.add(combination)
            for fk, parent, parent_row in choice:
                self._assign(table, row, fk, parent, parent_row, pending)
            return

        if all(fk_is_nullable(table, fk.columns) for fk in fks):
            for fk in fks:
                self._set_null(row, fk)
            return
        raise GenerationError(
            f"Table {table.name}: no unused parent combination for unique key "
            f"({', '.join(key)}) after {attempts} attempts"
        )

    def _row_identity(self, table: Table, row: Row) -> dict[str, Value]:
        """Columns that locate ``row`` for an UPDATE: the PK, else a non-FK unique key."""
        if table.primary_key:
            return {c: row.get(c) for c in table.primary_key}
        fk_cols = table.fk_column_names()
        for uk in table.unique_keys:
            if uk and not set(uk) & fk_cols:
                return {c: row.get(c) for c in uk}
        raise SchemaShapeError(
            f"Table {table.name} needs a deferred FK update but has no primary key "
            f"or unique key outside its FK columns"
        )
