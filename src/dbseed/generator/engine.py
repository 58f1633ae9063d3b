"""Generation run orchestrator.

Wires the engine stages for one run: UUID overrides, dependency ordering,
per-table row generation, numeric revalidation, and FK resolution.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

import pandas as pd

from dbseed.generator.constraint_parser import ParsedConstraint
from dbseed.generator.context import GenerationContext
from dbseed.generator.dependency_graph import DependencyGraph, SortResult
from dbseed.generator.fk_resolver import ForeignKeyResolver
from dbseed.generator.row_generator import RowGenerator
from dbseed.generator.value_generator import ValueGenerator
from dbseed.model.schema import Table
from dbseed.model.values import PendingUpdate, RepetitionRule, Row

logger = logging.getLogger(__name__)

MAX_NUMERIC_RETRIES = 100

ProgressCallback = Callable[[str, int, int], None]


@dataclass
class GenerationOptions:
    """Optional knobs for a generation run; all keyed by table name."""

    excluded_columns: dict[str, list[str]] = field(default_factory=dict)
    repetition_rules: dict[str, list[RepetitionRule]] = field(default_factory=dict)
    pk_uuid_overrides: dict[str, list[str]] = field(default_factory=dict)
    rows_per_table_overrides: dict[str, int] = field(default_factory=dict)
    soft_delete_columns: list[str] = field(default_factory=list)
    soft_delete_use_schema_default: bool = True
    soft_delete_value: Optional[str] = "NULL"
    numeric_scale: int = 2
    dictionary_words: list[str] = field(default_factory=list)
    use_latin_dictionary: bool = True
    seed: Optional[int] = None
    on_progress: Optional[ProgressCallback] = None


@dataclass
class GenerationResult:
    """Rows per table plus the FK fixups to run after the INSERTs."""

    rows: dict[str, list[Row]] = field(default_factory=dict)
    updates: list[PendingUpdate] = field(default_factory=list)
    sort_result: SortResult = field(default_factory=SortResult)
    constraints: dict[str, dict[str, ParsedConstraint]] = field(default_factory=dict)
    tables: list[Table] = field(default_factory=list)

    @property
    def total_rows(self) -> int:
        return sum(len(rows) for rows in self.rows.values())

    def to_dataframes(self) -> dict[str, pd.DataFrame]:
        """One DataFrame per table, columns in table order."""
        frames = {}
        for table in self.tables:
            rows = self.rows.get(table.name, [])
            frames[table.name] = pd.DataFrame(
                [row.values for row in rows], columns=table.column_names()
            )
        return frames


def _for_table(mapping: dict[str, Any], table_name: str, default: Any) -> Any:
    if table_name in mapping:
        return mapping[table_name]
    lowered = table_name.lower()
    for key, value in mapping.items():
        if key.lower() == lowered:
            return value
    return default


class DataGenerator:
    """Generates structurally valid synthetic rows for a set of tables."""

    def generate(
        self,
        tables: Sequence[Table],
        rows_per_table: int,
        deferred: bool = False,
        options: Optional[GenerationOptions] = None,
    ) -> GenerationResult:
        """Run the full engine.

        Args:
            tables: Tables in catalog order.
            rows_per_table: Target row count for every table.
            deferred: Assign FKs to unsettled parents directly (the target
                defers FK checks); otherwise emit PendingUpdates.
            options: Exclusions, rules, overrides and seeds.

        Returns:
            GenerationResult with rows, pending updates and the sort result.
        """
        options = options or GenerationOptions()
        start = time.time()
        if not tables:
            return GenerationResult()

        tables = [
            t.with_uuid_columns(_for_table(options.pk_uuid_overrides, t.name, []))
            for t in tables
        ]
        by_name = {t.name: t for t in tables}

        sort_result = DependencyGraph(tables).sort()
        ordered = [by_name[name] for name in sort_result.ordered]

        context = GenerationContext(options.seed)
        value_generator = ValueGenerator(
            context,
            dictionary_words=options.dictionary_words,
            use_latin_dictionary=options.use_latin_dictionary,
            numeric_scale=options.numeric_scale,
        )

        result = GenerationResult(sort_result=sort_result, tables=ordered)
        total = len(ordered)
        for index, table in enumerate(ordered):
            generator = RowGenerator(
                table,
                _for_table(options.rows_per_table_overrides, table.name, rows_per_table),
                value_generator,
                excluded_columns=_for_table(options.excluded_columns, table.name, []),
                repetition_rules=_for_table(options.repetition_rules, table.name, []),
                soft_delete_columns=options.soft_delete_columns,
                soft_delete_use_schema_default=options.soft_delete_use_schema_default,
                soft_delete_value=options.soft_delete_value,
            )
            rows = generator.generate()
            self._revalidate_numeric(table, rows, generator, value_generator)
            result.rows[table.name] = rows
            result.constraints[table.name] = generator.constraints
            self._report_progress(options.on_progress, table.name, index + 1, total)

        result.updates = ForeignKeyResolver(
            ordered, result.rows, deferred, context.py_rng
        ).resolve()

        logger.info(
            f"Generated {result.total_rows} rows across {total} tables "
            f"({len(result.updates)} pending updates) in {time.time() - start:.2f}s"
        )
        return result

    def _revalidate_numeric(
        self,
        table: Table,
        rows: list[Row],
        generator: RowGenerator,
        value_generator: ValueGenerator,
    ):
        """Regenerate numeric cells that ended up outside their CHECK bounds.

        After MAX_NUMERIC_RETRIES the last attempt is kept.
        """
        fk_cols = table.fk_column_names()
        combination_cols = {
            c for mcc in generator.multi_column_constraints for c in mcc.columns
        }
        for column in table.columns:
            constraint = generator.constraints.get(column.name)
            if not column.is_numeric or constraint is None or not constraint.has_bounds:
                continue
            # FK values come from parents; allowed values, PKs and CHECK
            # combinations must not be redrawn
            if column.name in fk_cols or column.primary_key or column.name in combination_cols:
                continue
            if column.allowed_values or constraint.allowed_values:
                continue
            for row in rows:
                value = row.get(column.name)
                retries = 0
                while (
                    ValueGenerator.is_numeric_outside_bounds(value, constraint)
                    and retries < MAX_NUMERIC_RETRIES
                ):
                    retries += 1
                    value = value_generator.generate_numeric_within_bounds(column, constraint)
                if retries:
                    if ValueGenerator.is_numeric_outside_bounds(value, constraint):
                        logger.debug(
                            f"{table.name}.{column.name}: kept out-of-bounds value {value} "
                            f"after {retries} retries"
                        )
                    row.values[column.name] = value

    def _report_progress(
        self, callback: Optional[ProgressCallback], table_name: str, index: int, total: int
    ):
        if callback is None:
            return
        try:
            callback(table_name, index, total)
        except Exception as exc:
            logger.warning(f"Progress callback failed for {table_name}: {exc}")
