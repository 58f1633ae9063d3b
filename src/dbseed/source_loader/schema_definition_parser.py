"""Direct schema definition parser — handles JSON and YAML input.

Format::

    tables:
      - name: orders
        schema: sales                # optional
        columns:
          - {name: id, type: integer, primary_key: true}
          - {name: status, type: varchar(10), nullable: false, values: [new, paid]}
          - {name: amount, type: "decimal(10,2)", min: 0, max: 500}
          - "note:text"              # "name:type" shorthand
        primary_key: [id]            # optional, else from column flags
        foreign_keys:
          - {columns: [customer_id], references: customers, referenced_columns: [id]}
          - {column: invoice_id, references: invoices, unique: true}
        checks: ["amount >= 0"]
        unique_keys: [[order_no]]
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

import yaml

from dbseed.errors import SchemaError
from dbseed.model.schema import Column, ForeignKey, SqlType, Table, sql_type_from_name
from dbseed.source_loader.base import BaseParser, InputFormat, ParsedSchema, mark_one_to_one

logger = logging.getLogger(__name__)


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


class SchemaDefinitionParser(BaseParser):
    """Parses JSON or YAML schema definitions."""

    def can_parse(self, content: str) -> bool:
        stripped = content.strip()
        if stripped.startswith("{"):
            try:
                data = json.loads(stripped)
                return "tables" in data
            except json.JSONDecodeError:
                return False
        return "tables:" in content

    def parse(self, content: str, **kwargs) -> ParsedSchema:
        source_name = kwargs.get("source_name", "Schema Definition")
        data = self._load(content)
        if not isinstance(data, dict):
            raise SchemaError("Schema definition must be a mapping with a 'tables' key")

        warnings: list[str] = []
        raw_tables = data.get("tables") or []
        pk_by_table = {}
        for t in raw_tables:
            if isinstance(t, dict):
                pk_by_table[str(t.get("name", "")).lower()] = self._primary_key(t)

        tables = []
        for t in raw_tables:
            if not isinstance(t, dict) or not t.get("name"):
                warnings.append(f"Skipping table entry without a name: {t!r}"[:120])
                continue
            try:
                tables.append(mark_one_to_one(self._parse_table(t, pk_by_table, warnings)))
            except SchemaError as exc:
                warnings.append(str(exc))
                logger.warning(f"Skipping table {t.get('name')}: {exc}")

        is_json = content.strip().startswith("{")
        return ParsedSchema(
            source_name=data.get("name", data.get("source_name", source_name)),
            tables=tables,
            input_format=InputFormat.SCHEMA_JSON if is_json else InputFormat.SCHEMA_YAML,
            dialect=data.get("dialect"),
            parse_warnings=warnings,
        )

    def _load(self, content: str) -> Any:
        stripped = content.strip()
        if stripped.startswith("{") or stripped.startswith("["):
            return json.loads(stripped)
        return yaml.safe_load(stripped)

    def _primary_key(self, t: dict) -> list[str]:
        explicit = _as_list(t.get("primary_key", t.get("pk")))
        if explicit:
            return [str(c) for c in explicit]
        pk = []
        for c in t.get("columns", []):
            if isinstance(c, dict) and c.get("primary_key", c.get("pk", False)):
                pk.append(str(c.get("name")))
        return pk

    def _parse_table(
        self, t: dict, pk_by_table: dict[str, list[str]], warnings: list[str]
    ) -> Table:
        name = str(t["name"])
        columns = []
        for c in t.get("columns", []):
            column = self._parse_column(c)
            if column is None:
                warnings.append(f"Table {name}: could not parse column {c!r}"[:120])
                continue
            columns.append(column)

        foreign_keys = []
        for fk in t.get("foreign_keys", t.get("fks", [])) or []:
            cols = [str(c) for c in _as_list(fk.get("columns", fk.get("column")))]
            parent = str(fk.get("references", fk.get("referenced_table", "")))
            ref_cols = [
                str(c) for c in _as_list(
                    fk.get("referenced_columns", fk.get("references_column", fk.get("referenced_column")))
                )
            ]
            if not ref_cols:
                parent_pk = pk_by_table.get(parent.lower(), [])
                ref_cols = parent_pk if len(parent_pk) == len(cols) else ["id"] * len(cols)
            foreign_keys.append(ForeignKey(
                referenced_table=parent,
                columns=tuple(cols),
                referenced_columns=tuple(ref_cols),
                name=str(fk.get("name", "")),
                unique_on_fk=bool(fk.get("unique", fk.get("unique_on_fk", False))),
            ))

        return Table(
            name=name,
            columns=columns,
            primary_key=self._primary_key(t),
            foreign_keys=foreign_keys,
            checks=[str(c) for c in _as_list(t.get("checks"))],
            unique_keys=[[str(c) for c in _as_list(uk)] for uk in _as_list(t.get("unique_keys"))],
            schema=t.get("schema"),
        )

    def _parse_column(self, c: Any) -> Optional[Column]:
        if isinstance(c, str):
            # "column_name:type" format
            parts = c.split(":", 1)
            return self._column(parts[0].strip(), parts[1].strip() if len(parts) > 1 else "varchar")
        if not isinstance(c, dict):
            return None
        name = c.get("name", c.get("column_name"))
        if not name:
            return None
        return self._column(
            str(name),
            str(c.get("type", c.get("data_type", "varchar"))),
            nullable=bool(c.get("nullable", True)),
            primary_key=bool(c.get("primary_key", c.get("pk", False))),
            is_uuid=bool(c.get("uuid", False)),
            length=c.get("length", c.get("max_length")),
            scale=c.get("scale"),
            min_value=c.get("min"),
            max_value=c.get("max"),
            values=c.get("values", c.get("allowed_values")),
        )

    def _column(
        self,
        name: str,
        raw_type: str,
        nullable: bool = True,
        primary_key: bool = False,
        is_uuid: bool = False,
        length: Optional[int] = None,
        scale: Optional[int] = None,
        min_value: Optional[float] = None,
        max_value: Optional[float] = None,
        values: Optional[list] = None,
    ) -> Column:
        sql_type = sql_type_from_name(raw_type)
        args = re.search(r"\(\s*(\d+)\s*(?:,\s*(\d+)\s*)?\)", raw_type)
        if args and length is None:
            length = int(args.group(1))
            if args.group(2) is not None and scale is None:
                scale = int(args.group(2))
        return Column(
            name=name,
            sql_type=sql_type,
            nullable=nullable and not primary_key,
            primary_key=primary_key,
            is_uuid=is_uuid or sql_type == SqlType.UUID,
            length=int(length or 0),
            scale=int(scale or 0),
            min_value=float(min_value) if min_value is not None else None,
            max_value=float(max_value) if max_value is not None else None,
            allowed_values=frozenset(str(v) for v in _as_list(values)),
        )
