"""SQL emitter — renders generated rows and pending updates as a script."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from dbseed.model.schema import Table
from dbseed.model.values import PendingUpdate, Row
from dbseed.sql.dialects import Dialect, StandardDialect

logger = logging.getLogger(__name__)


class SqlEmitter:
    """Renders batched INSERTs per table followed by the FK UPDATEs.

    In deferred mode the script is wrapped in a transaction with FK checks
    deferred (or disabled) until commit.
    """

    def __init__(self, dialect: Optional[Dialect] = None, batch_size: Optional[int] = None):
        self.dialect = dialect or StandardDialect()
        limit = self.dialect.max_batch_size
        self.batch_size = min(batch_size, limit) if batch_size and batch_size > 0 else limit

    def render(
        self,
        tables: Sequence[Table],
        rows: dict[str, list[Row]],
        updates: Sequence[PendingUpdate] = (),
        deferred: bool = False,
    ) -> str:
        """Build the SQL script; ``tables`` must be in generation order."""
        statements: list[str] = []
        if deferred:
            statements.extend(self.dialect.begin_transaction())
            statements.extend(self.dialect.disable_constraints(tables))

        insert_count = 0
        for table in tables:
            table_rows = rows.get(table.name, [])
            if not table_rows:
                continue
            columns = table.column_names()
            for start in range(0, len(table_rows), self.batch_size):
                batch = table_rows[start:start + self.batch_size]
                statements.append(self.dialect.render_insert(table, columns, batch).rstrip("\n"))
                insert_count += 1

        by_name = {t.name: t for t in tables}
        for update in updates:
            table = by_name.get(update.table)
            if table is None:
                logger.warning(f"Skipping UPDATE for unknown table {update.table}")
                continue
            statements.append(self.dialect.render_update(table, update).rstrip("\n"))

        if deferred:
            statements.extend(self.dialect.enable_constraints(tables))
            statements.extend(self.dialect.commit_transaction())

        logger.info(
            f"Rendered {insert_count} INSERT batches and {len(updates)} UPDATEs "
            f"for dialect {self.dialect.name}"
        )
        if not statements:
            return ""
        return "\n".join(statements) + "\n"
