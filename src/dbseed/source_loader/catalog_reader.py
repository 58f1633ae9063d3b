"""Catalog reader — reflects table metadata from a live database via SQLAlchemy.

Reads tables, columns, primary keys, foreign keys (composite included),
unique constraints and CHECK clauses. Dialects whose inspector cannot report
check or unique constraints simply contribute none.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import Engine

from dbseed.errors import SchemaError
from dbseed.model.schema import Column, ForeignKey, SqlType, Table, sql_type_from_name
from dbseed.source_loader.base import InputFormat, ParsedSchema, mark_one_to_one

logger = logging.getLogger(__name__)

# Technical/system tables to exclude
EXCLUDED_TABLES = frozenset(
    {
        "schema_migrations",
        "flyway_schema_history",
        "alembic_version",
        "django_migrations",
        "databasechangelog",
        "databasechangeloglock",
    }
)


class CatalogReader:
    """Reads Table metadata from a database catalog.

    Args:
        engine_or_url: SQLAlchemy Engine or connection URL.
        schema: Schema to read; None means the connection default.
    """

    def __init__(self, engine_or_url: Union[Engine, str], schema: Optional[str] = None):
        if isinstance(engine_or_url, str):
            self.engine = create_engine(engine_or_url)
        else:
            self.engine = engine_or_url
        self.schema = schema
        self.inspector = inspect(self.engine)

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    @property
    def driver(self) -> str:
        return self.engine.driver

    def read(self) -> ParsedSchema:
        """Reflect every user table of the schema."""
        warnings: list[str] = []
        tables = []
        for name in self.inspector.get_table_names(schema=self.schema):
            if name.lower() in EXCLUDED_TABLES:
                continue
            try:
                tables.append(mark_one_to_one(self._read_table(name)))
                logger.debug(f"  Read {name}: {len(tables[-1].columns)} cols")
            except (SchemaError, NotImplementedError) as e:
                warnings.append(f"Failed to read {name}: {e}")
                logger.warning(f"  Failed to read {name}: {e}")

        logger.info(f"Catalog read complete: {len(tables)} tables from {self.dialect_name}")
        return ParsedSchema(
            source_name=self.engine.url.render_as_string(hide_password=True),
            tables=tables,
            input_format=InputFormat.CATALOG,
            dialect=self.dialect_name,
            parse_warnings=warnings,
        )

    def _read_table(self, name: str) -> Table:
        pk = self.inspector.get_pk_constraint(name, schema=self.schema) or {}
        pk_columns = list(pk.get("constrained_columns") or [])

        columns = [self._column(c, c["name"] in pk_columns) for c in
                   self.inspector.get_columns(name, schema=self.schema)]

        foreign_keys = []
        for fk in self.inspector.get_foreign_keys(name, schema=self.schema):
            constrained = fk.get("constrained_columns") or []
            referred = fk.get("referred_columns") or []
            if not constrained or len(constrained) != len(referred):
                logger.warning(f"  {name}: skipping malformed foreign key {fk.get('name')}")
                continue
            foreign_keys.append(ForeignKey(
                referenced_table=fk["referred_table"],
                columns=tuple(constrained),
                referenced_columns=tuple(referred),
                name=fk.get("name") or "",
            ))

        return Table(
            name=name,
            columns=columns,
            primary_key=pk_columns,
            foreign_keys=foreign_keys,
            checks=self._checks(name),
            unique_keys=self._unique_keys(name),
            schema=self.schema,
        )

    def _column(self, info: dict, is_pk: bool) -> Column:
        col_type = info["type"]
        sql_type = sql_type_from_name(str(col_type))
        length = 0
        scale = 0
        if sql_type.is_exact_decimal:
            length = getattr(col_type, "precision", None) or 0
            scale = getattr(col_type, "scale", None) or 0
        elif sql_type.category == "text" or sql_type == SqlType.BINARY:
            length = getattr(col_type, "length", None) or 0
        name = info["name"]
        return Column(
            name=name,
            sql_type=sql_type,
            nullable=bool(info.get("nullable", True)) and not is_pk,
            primary_key=is_pk,
            is_uuid=sql_type == SqlType.UUID
            or (sql_type.category == "text" and name.lower().endswith("guid")),
            length=int(length),
            scale=int(scale),
        )

    def _checks(self, name: str) -> list[str]:
        try:
            checks = self.inspector.get_check_constraints(name, schema=self.schema)
        except NotImplementedError:
            return []
        return [c["sqltext"] for c in checks if c.get("sqltext")]

    def _unique_keys(self, name: str) -> list[list[str]]:
        try:
            uniques = self.inspector.get_unique_constraints(name, schema=self.schema)
        except NotImplementedError:
            return []
        return [list(u["column_names"]) for u in uniques if u.get("column_names")]
