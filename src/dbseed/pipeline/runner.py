"""End-to-end seeding runner — load schema, generate rows, render SQL.

Flow:
  Load → Generate → Render

Each stage is recorded as a StageResult; the first failing stage marks the
run FAILED and stops it.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from dbseed.config import SeedConfig, get_config
from dbseed.errors import DbSeedError
from dbseed.generator.dependency_graph import DependencyGraph, requires_deferred
from dbseed.generator.dictionary import load_words
from dbseed.generator.engine import DataGenerator, GenerationOptions, GenerationResult
from dbseed.source_loader.base import ParsedSchema
from dbseed.source_loader.loader import load_schema
from dbseed.sql.dialects import resolve_dialect
from dbseed.sql.emitter import SqlEmitter

logger = logging.getLogger(__name__)


class RunStatus(str, Enum):
    """Seeding run status."""

    PENDING = "pending"
    LOADING = "loading"
    GENERATING = "generating"
    RENDERING = "rendering"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class StageResult:
    """Result of a single run stage."""

    stage: str
    status: str  # "success" or "failed"
    duration_seconds: float = 0.0
    output: dict = field(default_factory=dict)
    error: Optional[str] = None


@dataclass
class SeedRunResult:
    """Complete result of a seeding run."""

    status: RunStatus
    source_name: str = ""
    dialect: str = ""
    deferred: bool = False
    tables_generated: int = 0
    rows_generated: int = 0
    pending_updates: int = 0
    sql: str = ""
    total_duration_seconds: float = 0.0
    stages: list[StageResult] = field(default_factory=list)
    error: Optional[str] = None
    schema: Optional[ParsedSchema] = None
    generation: Optional[GenerationResult] = None

    def to_dict(self) -> dict:
        """Convert to serializable dictionary."""
        return {
            "status": self.status.value,
            "source_name": self.source_name,
            "dialect": self.dialect,
            "deferred": self.deferred,
            "tables_generated": self.tables_generated,
            "rows_generated": self.rows_generated,
            "pending_updates": self.pending_updates,
            "total_duration_seconds": round(self.total_duration_seconds, 3),
            "stages": [
                {
                    "stage": s.stage,
                    "status": s.status,
                    "duration_seconds": round(s.duration_seconds, 3),
                    "error": s.error,
                }
                for s in self.stages
            ],
            "error": self.error,
        }


class SeedRunner:
    """Runs the seeding pipeline for one schema source."""

    def __init__(self, config: Optional[SeedConfig] = None):
        self.config = config or get_config()

    def build_options(self) -> GenerationOptions:
        """Generation options derived from the configuration."""
        config = self.config
        return GenerationOptions(
            soft_delete_columns=sorted(config.soft_delete_column_set()),
            soft_delete_use_schema_default=config.soft_delete_use_schema_default,
            soft_delete_value=config.soft_delete_value,
            numeric_scale=config.numeric_scale,
            dictionary_words=load_words(
                config.use_english_dictionary, config.use_spanish_dictionary
            ),
            use_latin_dictionary=config.use_latin_dictionary,
            seed=config.seed,
        )

    def run(
        self,
        source: str,
        filename: Optional[str] = None,
        options: Optional[GenerationOptions] = None,
        on_status_change: Optional[Callable[[RunStatus, str], None]] = None,
    ) -> SeedRunResult:
        """Execute the full pipeline.

        Args:
            source: DDL text, JSON/YAML schema definition, or a database URL.
            filename: Optional file name used for format detection.
            options: Generation options; defaults to ``build_options()``.
            on_status_change: Optional callback for status updates.

        Returns:
            SeedRunResult with the rendered SQL and stage details.
        """
        start_time = time.time()
        result = SeedRunResult(status=RunStatus.PENDING)
        options = options or self.build_options()

        def update_status(status: RunStatus, message: str = ""):
            result.status = status
            logger.info(f"Run [{status.value}]: {message}")
            if on_status_change:
                on_status_change(status, message)

        stage = "load"
        stage_start = time.time()
        try:
            # ---- Stage 1: Load schema ---- #
            update_status(RunStatus.LOADING, f"Loading schema from {filename or 'input'}")
            schema = load_schema(source, filename)
            result.schema = schema
            result.source_name = schema.source_name
            for warning in schema.parse_warnings:
                logger.warning(f"Schema: {warning}")
            result.stages.append(StageResult(
                stage=stage,
                status="success",
                duration_seconds=time.time() - stage_start,
                output={"tables": len(schema.tables), "warnings": len(schema.parse_warnings)},
            ))

            # ---- Stage 2: Generate rows ---- #
            stage = "generate"
            stage_start = time.time()
            deferred = self.config.deferred
            if not deferred and requires_deferred(
                DependencyGraph(schema.tables).sort(), schema.tables
            ):
                logger.warning(
                    "Schema has a cycle through a non-nullable FK; switching to deferred mode"
                )
                deferred = True
            result.deferred = deferred
            update_status(
                RunStatus.GENERATING,
                f"Generating {self.config.rows_per_table} rows for {len(schema.tables)} tables",
            )
            generation = DataGenerator().generate(
                schema.tables, self.config.rows_per_table, deferred=deferred, options=options
            )
            result.generation = generation
            result.tables_generated = len(generation.rows)
            result.rows_generated = generation.total_rows
            result.pending_updates = len(generation.updates)
            result.stages.append(StageResult(
                stage=stage,
                status="success",
                duration_seconds=time.time() - stage_start,
                output={
                    "rows": generation.total_rows,
                    "cycles": generation.sort_result.cycles,
                    "pending_updates": len(generation.updates),
                },
            ))

            # ---- Stage 3: Render SQL ---- #
            stage = "render"
            stage_start = time.time()
            dialect = resolve_dialect(name=self.config.dialect or None, driver=schema.dialect)
            result.dialect = dialect.name
            update_status(RunStatus.RENDERING, f"Rendering SQL for {dialect.name}")
            emitter = SqlEmitter(dialect, batch_size=self.config.batch_size)
            result.sql = emitter.render(
                generation.tables, generation.rows, generation.updates, deferred=deferred
            )
            result.stages.append(StageResult(
                stage=stage,
                status="success",
                duration_seconds=time.time() - stage_start,
                output={"characters": len(result.sql)},
            ))

            result.total_duration_seconds = time.time() - start_time
            update_status(
                RunStatus.COMPLETE,
                f"{result.rows_generated} rows in {result.total_duration_seconds:.2f}s",
            )

        except (DbSeedError, ValueError, OSError) as e:
            result.stages.append(StageResult(
                stage=stage,
                status="failed",
                duration_seconds=time.time() - stage_start,
                error=str(e),
            ))
            result.error = str(e)
            result.total_duration_seconds = time.time() - start_time
            update_status(RunStatus.FAILED, str(e))
            logger.error(f"Run failed at {stage}: {e}")

        return result

    def summary(self, result: SeedRunResult) -> dict[str, Any]:
        """Row counts per table for reporting."""
        if result.generation is None:
            return {}
        return {name: len(rows) for name, rows in result.generation.rows.items()}
