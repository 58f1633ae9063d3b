"""Schema metadata: SQL types, columns, foreign keys and tables.

These are the read-only inputs of a generation run. They are produced by the
catalog readers in ``dbseed.source_loader`` (or built directly in code) and
consumed by every stage of the engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Optional

from dbseed.errors import SchemaError


class SqlType(str, Enum):
    """Canonical column types understood by the generator."""

    TINYINT = "tinyint"
    SMALLINT = "smallint"
    INTEGER = "integer"
    BIGINT = "bigint"
    DECIMAL = "decimal"
    NUMERIC = "numeric"
    REAL = "real"
    FLOAT = "float"
    DOUBLE = "double"
    CHAR = "char"
    NCHAR = "nchar"
    VARCHAR = "varchar"
    NVARCHAR = "nvarchar"
    TEXT = "text"
    BOOLEAN = "boolean"
    DATE = "date"
    TIME = "time"
    TIMESTAMP = "timestamp"
    TIMESTAMP_TZ = "timestamp_tz"
    UUID = "uuid"
    BINARY = "binary"
    ARRAY = "array"
    OTHER = "other"

    @property
    def category(self) -> str:
        """Semantic family: numeric, text, datetime, boolean or other."""
        return _CATEGORIES.get(self, "other")

    @property
    def is_integer(self) -> bool:
        return self in INTEGER_RANGES

    @property
    def is_exact_decimal(self) -> bool:
        return self in (SqlType.DECIMAL, SqlType.NUMERIC)

    @property
    def is_fixed_length(self) -> bool:
        return self in (SqlType.CHAR, SqlType.NCHAR)


_CATEGORIES = {
    SqlType.TINYINT: "numeric",
    SqlType.SMALLINT: "numeric",
    SqlType.INTEGER: "numeric",
    SqlType.BIGINT: "numeric",
    SqlType.DECIMAL: "numeric",
    SqlType.NUMERIC: "numeric",
    SqlType.REAL: "numeric",
    SqlType.FLOAT: "numeric",
    SqlType.DOUBLE: "numeric",
    SqlType.CHAR: "text",
    SqlType.NCHAR: "text",
    SqlType.VARCHAR: "text",
    SqlType.NVARCHAR: "text",
    SqlType.TEXT: "text",
    SqlType.BOOLEAN: "boolean",
    SqlType.DATE: "datetime",
    SqlType.TIME: "datetime",
    SqlType.TIMESTAMP: "datetime",
    SqlType.TIMESTAMP_TZ: "datetime",
}

# Representable ranges of the integer types
INTEGER_RANGES = {
    SqlType.TINYINT: (-128, 127),
    SqlType.SMALLINT: (-32_768, 32_767),
    SqlType.INTEGER: (-2_147_483_648, 2_147_483_647),
    SqlType.BIGINT: (-9_223_372_036_854_775_808, 9_223_372_036_854_775_807),
}

# Type name normalization: dialect-specific names -> canonical types
TYPE_NORMALIZATION = {
    # Standard
    "tinyint": SqlType.TINYINT,
    "smallint": SqlType.SMALLINT,
    "int": SqlType.INTEGER,
    "integer": SqlType.INTEGER,
    "int4": SqlType.INTEGER,
    "bigint": SqlType.BIGINT,
    "int8": SqlType.BIGINT,
    "int2": SqlType.SMALLINT,
    "decimal": SqlType.DECIMAL,
    "numeric": SqlType.NUMERIC,
    "real": SqlType.REAL,
    "float4": SqlType.REAL,
    "float": SqlType.FLOAT,
    "float8": SqlType.DOUBLE,
    "double": SqlType.DOUBLE,
    "double precision": SqlType.DOUBLE,
    "char": SqlType.CHAR,
    "character": SqlType.CHAR,
    "nchar": SqlType.NCHAR,
    "varchar": SqlType.VARCHAR,
    "character varying": SqlType.VARCHAR,
    "nvarchar": SqlType.NVARCHAR,
    "text": SqlType.TEXT,
    "boolean": SqlType.BOOLEAN,
    "bool": SqlType.BOOLEAN,
    "date": SqlType.DATE,
    "time": SqlType.TIME,
    "time without time zone": SqlType.TIME,
    "time with time zone": SqlType.TIME,
    "timestamp": SqlType.TIMESTAMP,
    "timestamp without time zone": SqlType.TIMESTAMP,
    "timestamp with time zone": SqlType.TIMESTAMP_TZ,
    "timestamptz": SqlType.TIMESTAMP_TZ,
    "datetime": SqlType.TIMESTAMP,
    "uuid": SqlType.UUID,
    "array": SqlType.ARRAY,
    # Oracle
    "number": SqlType.DECIMAL,
    "varchar2": SqlType.VARCHAR,
    "nvarchar2": SqlType.NVARCHAR,
    "clob": SqlType.TEXT,
    "nclob": SqlType.TEXT,
    "blob": SqlType.BINARY,
    "raw": SqlType.BINARY,
    "long raw": SqlType.BINARY,
    "binary_float": SqlType.REAL,
    "binary_double": SqlType.DOUBLE,
    # SQL Server
    "bit": SqlType.BOOLEAN,
    "money": SqlType.DECIMAL,
    "smallmoney": SqlType.DECIMAL,
    "datetime2": SqlType.TIMESTAMP,
    "smalldatetime": SqlType.TIMESTAMP,
    "datetimeoffset": SqlType.TIMESTAMP_TZ,
    "uniqueidentifier": SqlType.UUID,
    "image": SqlType.BINARY,
    "varbinary": SqlType.BINARY,
    "binary": SqlType.BINARY,
    "ntext": SqlType.TEXT,
    # PostgreSQL
    "serial": SqlType.INTEGER,
    "serial4": SqlType.INTEGER,
    "bigserial": SqlType.BIGINT,
    "serial8": SqlType.BIGINT,
    "smallserial": SqlType.SMALLINT,
    "bytea": SqlType.BINARY,
    "json": SqlType.TEXT,
    "jsonb": SqlType.TEXT,
    "bpchar": SqlType.CHAR,
    # MySQL
    "mediumint": SqlType.INTEGER,
    "mediumtext": SqlType.TEXT,
    "longtext": SqlType.TEXT,
    "tinytext": SqlType.TEXT,
    "enum": SqlType.VARCHAR,
    "set": SqlType.VARCHAR,
    "year": SqlType.INTEGER,
    "tinyblob": SqlType.BINARY,
    "mediumblob": SqlType.BINARY,
    "longblob": SqlType.BINARY,
}


def sql_type_from_name(raw_name: str) -> SqlType:
    """Normalize a dialect type name like ``VARCHAR2(20)`` or ``int[]`` to a SqlType."""
    name = (raw_name or "").strip().lower()
    if name.endswith("[]"):
        return SqlType.ARRAY
    name = name.split("(")[0].strip()
    name = " ".join(name.split())
    if name in TYPE_NORMALIZATION:
        return TYPE_NORMALIZATION[name]
    if name.startswith("_"):
        # PostgreSQL internal array names (_int4, _text)
        return SqlType.ARRAY
    if name.startswith("timestamp"):
        return SqlType.TIMESTAMP_TZ if "with time zone" in name else SqlType.TIMESTAMP
    return SqlType.OTHER


@dataclass(frozen=True)
class Column:
    """A column as seen by the generator.

    ``length`` is the text length for character types and the precision for
    exact numerics. ``min_value``/``max_value`` are optional numeric hints
    used when no CHECK constraint bounds the column.
    """

    name: str
    sql_type: SqlType = SqlType.VARCHAR
    nullable: bool = True
    primary_key: bool = False
    is_uuid: bool = False
    length: int = 0
    scale: int = 0
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    allowed_values: frozenset = frozenset()

    @property
    def category(self) -> str:
        return self.sql_type.category

    @property
    def is_numeric(self) -> bool:
        return self.category == "numeric"

    @property
    def is_text(self) -> bool:
        return self.category == "text"

    @property
    def has_allowed_values(self) -> bool:
        return bool(self.allowed_values)

    def with_uuid(self) -> Column:
        return replace(self, is_uuid=True)


@dataclass(frozen=True)
class ForeignKey:
    """A (possibly composite) foreign key from the owning table to ``referenced_table``."""

    referenced_table: str
    columns: tuple[str, ...]
    referenced_columns: tuple[str, ...]
    name: str = ""
    unique_on_fk: bool = False

    def __post_init__(self):
        object.__setattr__(self, "columns", tuple(self.columns))
        object.__setattr__(self, "referenced_columns", tuple(self.referenced_columns))
        if not self.columns:
            raise SchemaError(f"Foreign key to {self.referenced_table} has no columns")
        if len(self.columns) != len(self.referenced_columns):
            raise SchemaError(
                f"Foreign key to {self.referenced_table}: {len(self.columns)} columns "
                f"but {len(self.referenced_columns)} referenced columns"
            )
        if not self.name:
            object.__setattr__(
                self,
                "name",
                f"fk_{self.referenced_table}_{'__'.join(sorted(self.columns))}",
            )

    @property
    def column_mapping(self) -> dict[str, str]:
        """Ordered child column -> parent column mapping."""
        return dict(zip(self.columns, self.referenced_columns))


@dataclass
class Table:
    """A table with its columns, keys and raw CHECK clauses."""

    name: str
    columns: list[Column] = field(default_factory=list)
    primary_key: list[str] = field(default_factory=list)
    foreign_keys: list[ForeignKey] = field(default_factory=list)
    checks: list[str] = field(default_factory=list)
    unique_keys: list[list[str]] = field(default_factory=list)
    schema: Optional[str] = None

    def __post_init__(self):
        # Key column references are rewritten to the declared column spelling
        known = {c.name.lower(): c.name for c in self.columns}

        def canonical(col: str, what: str) -> str:
            if col.lower() not in known:
                raise SchemaError(f"Table {self.name}: {what} column {col} does not exist")
            return known[col.lower()]

        self.primary_key = [canonical(c, "primary key") for c in self.primary_key]
        if not self.primary_key:
            self.primary_key = [c.name for c in self.columns if c.primary_key]
        pk = set(self.primary_key)
        self.columns = [
            replace(c, primary_key=True, nullable=False)
            if c.name in pk and (not c.primary_key or c.nullable)
            else c
            for c in self.columns
        ]
        self.unique_keys = [
            [canonical(c, "unique key") for c in uk] for uk in self.unique_keys
        ]
        self.foreign_keys = [
            replace(fk, columns=tuple(canonical(c, f"foreign key {fk.name}") for c in fk.columns))
            for fk in self.foreign_keys
        ]

    def column(self, name: str) -> Optional[Column]:
        """Case-insensitive column lookup."""
        lowered = name.lower()
        for col in self.columns:
            if col.name.lower() == lowered:
                return col
        return None

    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    def fk_column_names(self) -> set[str]:
        return {col for fk in self.foreign_keys for col in fk.columns}

    def with_uuid_columns(self, names: Iterable[str]) -> Table:
        """Return a copy where the named columns are generated as UUIDs."""
        wanted = {n.lower() for n in names}
        if not wanted:
            return self
        columns = [c.with_uuid() if c.name.lower() in wanted else c for c in self.columns]
        return replace(self, columns=columns)
