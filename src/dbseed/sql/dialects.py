"""SQL dialects — identifier quoting, literal formatting and statement shapes.

Each dialect is a small subclass overriding class attributes and the few
formatting hooks where the target database differs:
- PostgreSQL: standard quoting, ARRAY[...] literals, '\\x..'::bytea, deferrable FKs
- MySQL/MariaDB: backticks, backslash escapes, FOREIGN_KEY_CHECKS toggling
- SQLite: 1/0 booleans, PRAGMA defer_foreign_keys, small batches
- SQL Server: [brackets], 1/0 booleans, NOCHECK CONSTRAINT per table
- Oracle: upper-case identifiers, TO_DATE/TO_TIMESTAMP, INSERT ALL ... FROM dual
"""

from __future__ import annotations

import json
import math
from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional, Sequence
from uuid import UUID

from dbseed.model.schema import Table
from dbseed.model.values import PendingUpdate, Row, SqlKeyword, Value


class Dialect:
    """ANSI-flavored base dialect."""

    name = "standard"
    quote_open = '"'
    quote_close = '"'
    uppercase_identifiers = False
    escape_backslash = False
    true_literal = "TRUE"
    false_literal = "FALSE"
    begin_statement = "BEGIN;"
    commit_statement = "COMMIT;"
    disable_constraints_statement = "SET CONSTRAINTS ALL DEFERRED;"
    enable_constraints_statement = ""
    max_batch_size = 1000
    supports_multi_row_insert = True

    # ------------------------------------------------------------------ #
    # Identifiers
    # ------------------------------------------------------------------ #

    def quote(self, identifier: str) -> str:
        name = identifier.upper() if self.uppercase_identifiers else identifier
        escaped = name.replace(self.quote_close, self.quote_close * 2)
        return f"{self.quote_open}{escaped}{self.quote_close}"

    def qualified_name(self, table: Table) -> str:
        if table.schema:
            return f"{self.quote(table.schema)}.{self.quote(table.name)}"
        return self.quote(table.name)

    # ------------------------------------------------------------------ #
    # Literals
    # ------------------------------------------------------------------ #

    def format_value(self, value: Value) -> str:
        """Render one generated value as a SQL literal."""
        if value is None:
            return "NULL"
        if isinstance(value, SqlKeyword):
            return value.value
        if isinstance(value, bool):
            return self.true_literal if value else self.false_literal
        if isinstance(value, int):
            return str(value)
        if isinstance(value, Decimal):
            if not value.is_finite():
                return "NULL"
            return format(value, "f")
        if isinstance(value, float):
            return self.format_float(value)
        if isinstance(value, UUID):
            return self.format_uuid(value)
        if isinstance(value, datetime):
            return self.format_timestamp(value)
        if isinstance(value, date):
            return self.format_date(value)
        if isinstance(value, time):
            return self.format_time(value)
        if isinstance(value, (bytes, bytearray)):
            return self.format_binary(bytes(value))
        if isinstance(value, (list, tuple)):
            return self.format_array(list(value))
        return self.string_literal(str(value))

    def string_literal(self, text: str) -> str:
        if self.escape_backslash:
            text = text.replace("\\", "\\\\")
        return "'" + text.replace("'", "''") + "'"

    def format_float(self, value: float) -> str:
        if math.isnan(value) or math.isinf(value):
            return "NULL"
        text = repr(value)
        if "e" in text or "E" in text:
            text = format(Decimal(text), "f")
        if "." in text:
            text = text.rstrip("0").rstrip(".")
        return text

    def format_uuid(self, value: UUID) -> str:
        return self.string_literal(str(value))

    def format_date(self, value: date) -> str:
        return self.string_literal(value.isoformat())

    def format_timestamp(self, value: datetime) -> str:
        return self.string_literal(value.isoformat(sep=" "))

    def format_time(self, value: time) -> str:
        return self.string_literal(value.isoformat())

    def format_binary(self, value: bytes) -> str:
        return f"X'{value.hex()}'"

    def format_array(self, items: list) -> str:
        return "ARRAY[" + ", ".join(self.format_value(i) for i in items) + "]"

    # ------------------------------------------------------------------ #
    # Statements
    # ------------------------------------------------------------------ #

    def begin_transaction(self) -> list[str]:
        return [self.begin_statement] if self.begin_statement else []

    def commit_transaction(self) -> list[str]:
        return [self.commit_statement] if self.commit_statement else []

    def disable_constraints(self, tables: Sequence[Table]) -> list[str]:
        return [self.disable_constraints_statement] if self.disable_constraints_statement else []

    def enable_constraints(self, tables: Sequence[Table]) -> list[str]:
        return [self.enable_constraints_statement] if self.enable_constraints_statement else []

    def render_values(self, row: Row, columns: Sequence[str]) -> str:
        return "(" + ", ".join(self.format_value(row.get(c)) for c in columns) + ")"

    def render_insert(self, table: Table, columns: Sequence[str], rows: Sequence[Row]) -> str:
        """INSERT statement(s) for one batch of rows."""
        if not rows:
            return ""
        target = self.qualified_name(table)
        column_list = ", ".join(self.quote(c) for c in columns)
        if not self.supports_multi_row_insert or len(rows) == 1:
            return "".join(
                f"INSERT INTO {target} ({column_list}) VALUES {self.render_values(r, columns)};\n"
                for r in rows
            )
        body = ",\n".join(self.render_values(r, columns) for r in rows)
        return f"INSERT INTO {target} ({column_list}) VALUES\n{body};\n"

    def render_update(self, table: Table, update: PendingUpdate) -> str:
        """UPDATE applying a deferred FK assignment to one row."""
        assignments = ", ".join(
            f"{self.quote(c)} = {self.format_value(v)}" for c, v in update.fk_values.items()
        )
        conditions = " AND ".join(
            f"{self.quote(c)} IS NULL" if v is None else f"{self.quote(c)} = {self.format_value(v)}"
            for c, v in update.pk_values.items()
        )
        return f"UPDATE {self.qualified_name(table)} SET {assignments} WHERE {conditions};\n"


class StandardDialect(Dialect):
    pass


class PostgreSqlDialect(Dialect):
    name = "postgresql"

    def format_binary(self, value: bytes) -> str:
        return f"'\\x{value.hex()}'::bytea"


class MySqlDialect(Dialect):
    name = "mysql"
    quote_open = "`"
    quote_close = "`"
    escape_backslash = True
    begin_statement = "START TRANSACTION;"
    disable_constraints_statement = "SET FOREIGN_KEY_CHECKS = 0;"
    enable_constraints_statement = "SET FOREIGN_KEY_CHECKS = 1;"

    def format_array(self, items: list) -> str:
        return self.string_literal(json.dumps([str(i) for i in items]))


class SqliteDialect(Dialect):
    name = "sqlite"
    true_literal = "1"
    false_literal = "0"
    begin_statement = "BEGIN TRANSACTION;"
    disable_constraints_statement = "PRAGMA defer_foreign_keys = ON;"
    max_batch_size = 100

    def format_array(self, items: list) -> str:
        return self.string_literal(json.dumps([str(i) for i in items]))


class SqlServerDialect(Dialect):
    name = "sqlserver"
    quote_open = "["
    quote_close = "]"
    true_literal = "1"
    false_literal = "0"
    begin_statement = "BEGIN TRANSACTION;"
    commit_statement = "COMMIT TRANSACTION;"

    def disable_constraints(self, tables: Sequence[Table]) -> list[str]:
        return [f"ALTER TABLE {self.qualified_name(t)} NOCHECK CONSTRAINT ALL;" for t in tables]

    def enable_constraints(self, tables: Sequence[Table]) -> list[str]:
        return [
            f"ALTER TABLE {self.qualified_name(t)} WITH CHECK CHECK CONSTRAINT ALL;"
            for t in tables
        ]

    def format_timestamp(self, value: datetime) -> str:
        return self.string_literal(value.isoformat())

    def format_binary(self, value: bytes) -> str:
        return f"0x{value.hex()}"

    def format_array(self, items: list) -> str:
        return self.string_literal(json.dumps([str(i) for i in items]))


class OracleDialect(Dialect):
    name = "oracle"
    uppercase_identifiers = True
    true_literal = "1"
    false_literal = "0"
    begin_statement = ""
    max_batch_size = 500

    def format_date(self, value: date) -> str:
        return f"TO_DATE('{value.isoformat()}', 'YYYY-MM-DD')"

    def format_timestamp(self, value: datetime) -> str:
        text = f"{value:%Y-%m-%d %H:%M:%S}.{value.microsecond:06d}"
        return f"TO_TIMESTAMP('{text}', 'YYYY-MM-DD HH24:MI:SS.FF')"

    def format_binary(self, value: bytes) -> str:
        return f"HEXTORAW('{value.hex()}')"

    def format_array(self, items: list) -> str:
        return self.string_literal(json.dumps([str(i) for i in items]))

    def render_insert(self, table: Table, columns: Sequence[str], rows: Sequence[Row]) -> str:
        if len(rows) <= 1:
            return super().render_insert(table, columns, rows)
        target = self.qualified_name(table)
        column_list = ", ".join(self.quote(c) for c in columns)
        body = "\n".join(
            f"  INTO {target} ({column_list}) VALUES {self.render_values(r, columns)}" for r in rows
        )
        return f"INSERT ALL\n{body}\nSELECT * FROM dual;\n"


DIALECTS: dict[str, type[Dialect]] = {
    "standard": StandardDialect,
    "postgresql": PostgreSqlDialect,
    "mysql": MySqlDialect,
    "sqlite": SqliteDialect,
    "sqlserver": SqlServerDialect,
    "oracle": OracleDialect,
}

ALIASES = {
    "postgres": "postgresql",
    "pg": "postgresql",
    "redshift": "postgresql",
    "cockroach": "postgresql",
    "cockroachdb": "postgresql",
    "h2": "postgresql",
    "mariadb": "mysql",
    "mssql": "sqlserver",
    "tsql": "sqlserver",
    "sqlite3": "sqlite",
    "ansi": "standard",
}

# Substrings of driver names / connection URLs, checked in order
_DETECTION = [
    (("mysql", "mariadb"), MySqlDialect),
    (("sqlserver", "mssql", "pyodbc", "pymssql"), SqlServerDialect),
    (("oracle", "cx_oracle", "oracledb"), OracleDialect),
    (("sqlite",), SqliteDialect),
    (("postgres", "psycopg", "redshift", "cockroach", "h2"), PostgreSqlDialect),
]


def resolve_dialect(
    name: Optional[str] = None, driver: Optional[str] = None, url: Optional[str] = None
) -> Dialect:
    """Pick a dialect by explicit name, else by driver/URL text, else standard SQL."""
    if name:
        key = name.strip().lower()
        key = ALIASES.get(key, key)
        if key not in DIALECTS:
            raise ValueError(f"Unknown SQL dialect: {name}")
        return DIALECTS[key]()

    text = f"{driver or ''} {url or ''}".lower()
    for tokens, dialect_cls in _DETECTION:
        if any(token in text for token in tokens):
            return dialect_cls()
    return StandardDialect()
