"""Schema metadata and generated-value types."""

from dbseed.model.schema import (
    Column,
    ForeignKey,
    SqlType,
    Table,
    sql_type_from_name,
)
from dbseed.model.values import PendingUpdate, RepetitionRule, Row, SqlKeyword, Value
