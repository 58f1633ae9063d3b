"""SQL output — dialects and the INSERT/UPDATE script emitter."""

from dbseed.sql.dialects import (
    Dialect,
    MySqlDialect,
    OracleDialect,
    PostgreSqlDialect,
    SqliteDialect,
    SqlServerDialect,
    StandardDialect,
    resolve_dialect,
)
from dbseed.sql.emitter import SqlEmitter
