"""Row generator — builds the rows of one table from its column constraints.

Applies, per table: repetition rules (rows sharing fixed or random-but-constant
values), filler rows up to the requested count, multi-column CHECK
combinations, column exclusions, soft-delete columns and FK placeholders.
Rows that would duplicate the primary key or a unique key are regenerated,
with a bounded number of attempts.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from dbseed.generator.constraint_parser import (
    ConstraintParser,
    MultiColumnConstraint,
    ParsedConstraint,
    build_check_expressions,
    parse_multi_column_constraints,
)
from dbseed.generator.value_generator import ValueGenerator
from dbseed.model.schema import Column, Table
from dbseed.model.values import RepetitionRule, Row, SqlKeyword, Value

logger = logging.getLogger(__name__)

MAX_GENERATE_ATTEMPTS = 100


class RowGenerator:
    """Generates rows for a single table.

    FK columns that are not part of the primary key are left as None; the
    ForeignKeyResolver fills them once every table has rows.
    """

    def __init__(
        self,
        table: Table,
        rows_per_table: int,
        value_generator: ValueGenerator,
        excluded_columns: Iterable[str] = (),
        repetition_rules: Sequence[RepetitionRule] = (),
        soft_delete_columns: Iterable[str] = (),
        soft_delete_use_schema_default: bool = True,
        soft_delete_value: Optional[str] = None,
    ):
        self.table = table
        self.rows_per_table = max(rows_per_table, 0)
        self.value_generator = value_generator
        self.excluded_columns = {c.lower() for c in excluded_columns}
        self.repetition_rules = list(repetition_rules)
        self.soft_delete_columns = {c.lower() for c in soft_delete_columns}
        self.soft_delete_use_schema_default = soft_delete_use_schema_default
        self.soft_delete_value = soft_delete_value

        checks = build_check_expressions(table.checks)
        self.constraints: dict[str, ParsedConstraint] = {
            col.name: ConstraintParser(col.name).parse(checks, col.length if col.is_text else 0)
            for col in table.columns
        }
        self.fk_columns = table.fk_column_names()
        self.multi_column_constraints = self._resolve_multi_column(table)
        self.unique_keys = self._relevant_unique_keys(table)

        self._index = 0
        self._pk_seen: set[tuple] = set()
        self._uk_seen: list[set[tuple]] = [set() for _ in self.unique_keys]

    # ------------------------------------------------------------------ #
    # Setup
    # ------------------------------------------------------------------ #

    def _resolve_multi_column(self, table: Table) -> list[MultiColumnConstraint]:
        resolved = []
        for mcc in parse_multi_column_constraints(table.checks):
            names = {}
            for col in mcc.columns:
                column = table.column(col)
                if column is None:
                    break
                names[col] = column.name
            else:
                if any(n in self.fk_columns for n in names.values()):
                    logger.debug(
                        f"Table {table.name}: multi-column CHECK on FK columns left to the resolver"
                    )
                    continue
                resolved.append(MultiColumnConstraint(
                    columns=tuple(names[c] for c in mcc.columns),
                    allowed_combinations=tuple(
                        {names[k]: v for k, v in combo.items()} for combo in mcc.allowed_combinations
                    ),
                ))
        return resolved

    def _relevant_unique_keys(self, table: Table) -> list[list[str]]:
        """Unique keys this generator must enforce.

        Keys made only of FK columns are enforced by the resolver; a key equal
        to the primary key is already covered by the PK check.
        """
        pk = {c.lower() for c in table.primary_key}
        fk_lower = {c.lower() for c in self.fk_columns}
        keys = []
        for uk in table.unique_keys:
            lowered = {c.lower() for c in uk}
            if not uk or lowered <= fk_lower or lowered == pk:
                continue
            keys.append([table.column(c).name for c in uk])
        return keys

    # ------------------------------------------------------------------ #
    # Generation
    # ------------------------------------------------------------------ #

    def generate(self) -> list[Row]:
        """Generate up to ``rows_per_table`` rows (more if rules ask for more)."""
        if not self.table.columns:
            return []

        rows: list[Row] = []
        for rule in self.repetition_rules:
            rows.extend(self._generate_rule_rows(rule))

        attempts = 0
        max_attempts = self.rows_per_table * MAX_GENERATE_ATTEMPTS
        while len(rows) < self.rows_per_table and attempts < max_attempts:
            attempts += 1
            row = self._build_row({})
            if row is not None and self._accept(row):
                rows.append(row)

        if len(rows) < self.rows_per_table:
            logger.warning(
                f"Table {self.table.name}: generated {len(rows)} of {self.rows_per_table} rows "
                f"after {attempts} attempts (key collisions or CHECK combinations)"
            )
        logger.debug(f"Generated {len(rows)} rows for {self.table.name}")
        return rows

    def _generate_rule_rows(self, rule: RepetitionRule) -> list[Row]:
        base: dict[str, Value] = {}
        for name, literal in rule.fixed_values.items():
            column = self.table.column(name)
            if column is None:
                logger.warning(f"Table {self.table.name}: repetition rule column {name} not found")
                continue
            if isinstance(literal, str):
                base[column.name] = self.value_generator.convert_literal(literal, column)
            else:
                base[column.name] = literal
        for name in sorted(rule.random_constant_columns):
            column = self.table.column(name)
            if column is None:
                logger.warning(f"Table {self.table.name}: repetition rule column {name} not found")
                continue
            if column.name not in base:
                base[column.name] = self._generate_column_value(column, self._index)

        rows = []
        for _ in range(rule.count):
            for _attempt in range(MAX_GENERATE_ATTEMPTS):
                row = self._build_row(base)
                if row is not None and self._accept(row):
                    rows.append(row)
                    break
            else:
                logger.warning(
                    f"Table {self.table.name}: repetition rule row dropped after "
                    f"{MAX_GENERATE_ATTEMPTS} attempts"
                )
        return rows

    def _build_row(self, base: dict[str, Value]) -> Optional[Row]:
        """One candidate row, or None when its multi-column CHECKs cannot be met."""
        index = self._index
        self._index += 1

        preset = dict(base)
        self._preselect_combinations(preset, fixed=base)

        values: dict[str, Value] = {}
        for column in self.table.columns:
            if column.name in preset:
                values[column.name] = preset[column.name]
            else:
                values[column.name] = self._generate_column_value(column, index)

        if not self._reconcile(values, fixed=base):
            return None
        return Row(values=values)

    def _generate_column_value(self, column: Column, row_index: int) -> Value:
        name = column.name
        if name.lower() in self.excluded_columns:
            return None
        if name in self.fk_columns and not column.primary_key:
            return None
        if name.lower() in self.soft_delete_columns:
            return self.value_generator.generate_soft_delete_value(
                column, self.soft_delete_use_schema_default, self.soft_delete_value
            )
        return self.value_generator.generate_value(column, self.constraints[name], row_index)

    # ------------------------------------------------------------------ #
    # Multi-column CHECK combinations
    # ------------------------------------------------------------------ #

    def _literal(self, column_name: str, literal: str) -> Value:
        column = self.table.column(column_name)
        converted = self.value_generator.convert_literal(literal, column)
        return literal if converted is None else converted

    def _matches(self, column_name: str, value: Value, literal: str) -> bool:
        if value is None:
            return False
        return value == self._literal(column_name, literal) or str(value) == literal

    def _writable(self, column_name: str, fixed: dict[str, Value]) -> bool:
        """Columns a combination may set: not fixed by a rule, excluded or soft-deleted."""
        lowered = column_name.lower()
        return (
            column_name not in fixed
            and lowered not in self.excluded_columns
            and lowered not in self.soft_delete_columns
        )

    def _compatible(
        self, mcc: MultiColumnConstraint, values: dict[str, Value], fixed: dict[str, Value]
    ) -> list[dict]:
        """Combinations that agree with every column the generator may not overwrite."""
        compatible = []
        for combo in mcc.allowed_combinations:
            ok = True
            for col, literal in combo.items():
                if self._writable(col, fixed):
                    continue
                value = values.get(col)
                if value is None or isinstance(value, SqlKeyword):
                    continue
                if not self._matches(col, value, literal):
                    ok = False
                    break
            if ok:
                compatible.append(combo)
        return compatible

    def _apply_combination(self, combo: dict, values: dict[str, Value], fixed: dict[str, Value]):
        for col, literal in combo.items():
            if self._writable(col, fixed):
                values[col] = self._literal(col, literal)

    def _preselect_combinations(self, preset: dict[str, Value], fixed: dict[str, Value]):
        for mcc in self.multi_column_constraints:
            if all(c in fixed for c in mcc.columns):
                if not self.satisfies(mcc, fixed):
                    logger.debug(
                        f"Table {self.table.name}: fixed values violate CHECK on {mcc.columns}"
                    )
                continue
            compatible = self._compatible(mcc, fixed, fixed)
            if not compatible:
                logger.debug(
                    f"Table {self.table.name}: no CHECK combination on {mcc.columns} "
                    f"fits the fixed values"
                )
                continue
            self._apply_combination(self.value_generator.py_rng.choice(compatible), preset, fixed)

    def _reconcile(self, values: dict[str, Value], fixed: dict[str, Value]) -> bool:
        """Bring a finished row back inside every multi-column CHECK.

        A violated constraint gets a compatible combination written over its
        writable columns. False when no combination can fix the row.
        """
        for mcc in self.multi_column_constraints:
            if self.satisfies(mcc, values):
                continue
            compatible = self._compatible(mcc, values, fixed)
            if not compatible:
                return False
            self._apply_combination(self.value_generator.py_rng.choice(compatible), values, fixed)
            if not self.satisfies(mcc, values):
                return False
        return True

    def satisfies(self, mcc: MultiColumnConstraint, values: dict[str, Value]) -> bool:
        """True when the row matches one allowed combination.

        NULLs pass, as in SQL; so does DEFAULT, whose value the database decides.
        """
        for c in mcc.columns:
            if values.get(c) is None or isinstance(values.get(c), SqlKeyword):
                return True
        return any(
            all(self._matches(c, values.get(c), lit) for c, lit in combo.items())
            for combo in mcc.allowed_combinations
        )

    # ------------------------------------------------------------------ #
    # Key uniqueness
    # ------------------------------------------------------------------ #

    def _accept(self, row: Row) -> bool:
        pk_key = row.key(self.table.primary_key) if self.table.primary_key else None
        if pk_key is not None and pk_key in self._pk_seen:
            return False

        uk_keys = []
        for i, uk in enumerate(self.unique_keys):
            non_fk = [c for c in uk if c not in self.fk_columns]
            if any(row.get(c) is None for c in non_fk):
                uk_keys.append(None)  # NULLs never collide
                continue
            key = row.key(uk)
            if key in self._uk_seen[i]:
                return False
            uk_keys.append(key)

        if pk_key is not None:
            self._pk_seen.add(pk_key)
        for i, key in enumerate(uk_keys):
            if key is not None:
                self._uk_seen[i].add(key)
        return True
