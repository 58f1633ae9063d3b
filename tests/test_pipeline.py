"""Tests for the end-to-end seeding runner."""

import sqlite3

from dbseed.config import SeedConfig
from dbseed.pipeline.runner import RunStatus, SeedRunner

SHOP_DDL = """\
CREATE TABLE customers (
    id INTEGER PRIMARY KEY,
    name VARCHAR(40) NOT NULL,
    age INTEGER NOT NULL CHECK (age >= 18),
    deleted_at TIMESTAMP
);
CREATE TABLE orders (
    id INTEGER PRIMARY KEY,
    customer_id INTEGER NOT NULL REFERENCES customers(id),
    total NUMERIC(10,2) NOT NULL CHECK (total > 0)
);
"""

EMPLOYEES_DDL = """\
CREATE TABLE employees (
    id INTEGER PRIMARY KEY,
    name VARCHAR(30) NOT NULL,
    manager_id INTEGER REFERENCES employees(id)
);
"""

RING_DDL = """\
CREATE TABLE node (
    id INTEGER PRIMARY KEY,
    next_id INTEGER NOT NULL REFERENCES node(id)
);
"""


def sqlite_config(**overrides):
    values = {
        "rows_per_table": 8,
        "seed": 11,
        "dialect": "sqlite",
        "soft_delete_use_schema_default": False,
    }
    values.update(overrides)
    return SeedConfig(**values)


def load_into_sqlite(ddl, script):
    conn = sqlite3.connect(":memory:")
    conn.execute("PRAGMA foreign_keys = ON")
    conn.executescript(ddl)
    conn.executescript(script)
    return conn


class TestSeedRunner:

    def test_full_run(self):
        result = SeedRunner(sqlite_config()).run(SHOP_DDL, filename="shop.sql")
        assert result.status == RunStatus.COMPLETE
        assert result.error is None
        assert result.dialect == "sqlite"
        assert result.rows_generated == 16
        assert [s.stage for s in result.stages] == ["load", "generate", "render"]
        assert all(s.status == "success" for s in result.stages)
        assert result.sql.index('INSERT INTO "customers"') < result.sql.index('INSERT INTO "orders"')

    def test_script_loads_with_foreign_keys_enforced(self):
        result = SeedRunner(sqlite_config()).run(SHOP_DDL, filename="shop.sql")
        conn = load_into_sqlite(SHOP_DDL, result.sql)
        assert conn.execute("SELECT COUNT(*) FROM customers").fetchone()[0] == 8
        assert conn.execute("SELECT COUNT(*) FROM orders").fetchone()[0] == 8
        assert conn.execute("SELECT MIN(age) FROM customers").fetchone()[0] >= 18
        assert conn.execute("SELECT COUNT(*) FROM customers WHERE deleted_at IS NOT NULL").fetchone()[0] == 0

    def test_self_reference_uses_updates(self):
        result = SeedRunner(sqlite_config()).run(EMPLOYEES_DDL, filename="hr.sql")
        assert result.status == RunStatus.COMPLETE
        assert not result.deferred
        assert result.pending_updates == 8
        assert "UPDATE \"employees\" SET" in result.sql
        conn = load_into_sqlite(EMPLOYEES_DDL, result.sql)
        assert conn.execute(
            "SELECT COUNT(*) FROM employees WHERE manager_id IS NOT NULL"
        ).fetchone()[0] == 8

    def test_non_nullable_cycle_switches_to_deferred(self):
        result = SeedRunner(sqlite_config(rows_per_table=4)).run(RING_DDL, filename="ring.sql")
        assert result.status == RunStatus.COMPLETE
        assert result.deferred
        assert result.sql.startswith("BEGIN TRANSACTION;\nPRAGMA defer_foreign_keys = ON;\n")
        assert result.sql.rstrip().endswith("COMMIT;")
        conn = load_into_sqlite(RING_DDL, result.sql)
        assert conn.execute("SELECT COUNT(*) FROM node").fetchone()[0] == 4

    def test_dialect_detected_from_input(self):
        ddl = "CREATE TABLE t (id SERIAL PRIMARY KEY, payload BYTEA);"
        result = SeedRunner(SeedConfig(rows_per_table=2, seed=1)).run(ddl)
        assert result.dialect == "postgresql"

    def test_status_callbacks(self):
        seen = []
        SeedRunner(sqlite_config()).run(
            SHOP_DDL, filename="shop.sql", on_status_change=lambda s, m: seen.append(s)
        )
        assert seen == [
            RunStatus.LOADING, RunStatus.GENERATING, RunStatus.RENDERING, RunStatus.COMPLETE,
        ]

    def test_unrecognized_input_fails(self):
        result = SeedRunner(sqlite_config()).run("nothing to see here")
        assert result.status == RunStatus.FAILED
        assert result.stages[-1].stage == "load"
        assert result.stages[-1].status == "failed"
        assert result.error

    def test_to_dict_and_summary(self):
        runner = SeedRunner(sqlite_config(rows_per_table=3))
        result = runner.run(SHOP_DDL, filename="shop.sql")
        data = result.to_dict()
        assert data["status"] == "complete"
        assert data["rows_generated"] == 6
        assert [s["stage"] for s in data["stages"]] == ["load", "generate", "render"]
        assert "sql" not in data
        assert runner.summary(result) == {"customers": 3, "orders": 3}
