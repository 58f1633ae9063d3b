"""Tests for the generation run orchestrator."""

from uuid import UUID

import pytest

from dbseed.errors import CyclicForeignKeyError
from dbseed.generator.engine import DataGenerator, GenerationOptions
from dbseed.model.schema import Column, ForeignKey, SqlType, Table
from dbseed.model.values import RepetitionRule


def shop_tables():
    customers = Table(
        name="customers",
        columns=[
            Column("id", SqlType.INTEGER, primary_key=True),
            Column("name", SqlType.VARCHAR, nullable=False, length=40),
            Column("age", SqlType.INTEGER, nullable=False),
        ],
        checks=["age >= 18 AND age <= 99"],
    )
    orders = Table(
        name="orders",
        columns=[
            Column("id", SqlType.INTEGER, primary_key=True),
            Column("customer_id", SqlType.INTEGER, nullable=False),
            Column("total", SqlType.DECIMAL, nullable=False, length=10, scale=2),
        ],
        foreign_keys=[ForeignKey("customers", ["customer_id"], ["id"])],
        checks=["total > 0"],
    )
    # catalog order lists the child first
    return [orders, customers]


class TestDataGenerator:
    """Tests for DataGenerator.generate()."""

    def setup_method(self):
        self.generator = DataGenerator()

    def test_empty_input(self):
        result = self.generator.generate([], 10)
        assert result.rows == {}
        assert result.total_rows == 0

    def test_rows_and_order(self):
        result = self.generator.generate(shop_tables(), 12, options=GenerationOptions(seed=1))
        assert result.sort_result.ordered == ["customers", "orders"]
        assert [t.name for t in result.tables] == ["customers", "orders"]
        assert len(result.rows["customers"]) == 12
        assert len(result.rows["orders"]) == 12
        assert result.total_rows == 24
        assert result.updates == []

    def test_referential_integrity(self):
        result = self.generator.generate(shop_tables(), 30, options=GenerationOptions(seed=2))
        customer_ids = {r.get("id") for r in result.rows["customers"]}
        assert all(r.get("customer_id") in customer_ids for r in result.rows["orders"])

    def test_check_bounds_hold(self):
        result = self.generator.generate(shop_tables(), 50, options=GenerationOptions(seed=3))
        assert all(18 <= r.get("age") <= 99 for r in result.rows["customers"])
        assert all(r.get("total") > 0 for r in result.rows["orders"])
        assert result.constraints["customers"]["age"].min == 18

    def test_seed_reproducible(self):
        first = self.generator.generate(shop_tables(), 10, options=GenerationOptions(seed=9))
        second = self.generator.generate(shop_tables(), 10, options=GenerationOptions(seed=9))
        for name in ("customers", "orders"):
            assert [r.values for r in first.rows[name]] == [r.values for r in second.rows[name]]

    def test_per_table_overrides(self):
        options = GenerationOptions(
            seed=4,
            rows_per_table_overrides={"ORDERS": 3},
            excluded_columns={"customers": ["name"]},
            pk_uuid_overrides={"customers": ["id"]},
        )
        tables = shop_tables()
        tables[1] = Table(
            name="customers",
            columns=[
                Column("id", SqlType.VARCHAR, primary_key=True, length=36),
                Column("name", SqlType.VARCHAR, nullable=False, length=40),
            ],
        )
        tables[0] = Table(
            name="orders",
            columns=[
                Column("id", SqlType.INTEGER, primary_key=True),
                Column("customer_id", SqlType.VARCHAR, nullable=False, length=36),
            ],
            foreign_keys=[ForeignKey("customers", ["customer_id"], ["id"])],
        )
        result = self.generator.generate(tables, 5, options=options)
        assert len(result.rows["orders"]) == 3
        assert all(r.get("name") is None for r in result.rows["customers"])
        ids = [r.get("id") for r in result.rows["customers"]]
        assert all(isinstance(i, UUID) for i in ids)
        assert all(r.get("customer_id") in ids for r in result.rows["orders"])

    def test_repetition_rules_option(self):
        options = GenerationOptions(
            seed=5,
            repetition_rules={"customers": [RepetitionRule(count=2, fixed_values={"name": "Ann"})]},
        )
        result = self.generator.generate(shop_tables(), 4, options=options)
        names = [r.get("name") for r in result.rows["customers"]]
        assert names[:2] == ["Ann", "Ann"]
        assert len(names) == 4

    def test_self_reference_updates(self):
        employees = Table(
            name="employees",
            columns=[
                Column("id", SqlType.INTEGER, primary_key=True),
                Column("manager_id", SqlType.INTEGER, nullable=True),
            ],
            foreign_keys=[ForeignKey("employees", ["manager_id"], ["id"])],
        )
        result = self.generator.generate([employees], 6, options=GenerationOptions(seed=6))
        assert result.sort_result.cycles == [["employees"]]
        assert len(result.updates) == 6
        deferred = self.generator.generate(
            [employees], 6, deferred=True, options=GenerationOptions(seed=6)
        )
        assert deferred.updates == []

    def test_non_nullable_cycle_fails_fast(self):
        node = Table(
            name="node",
            columns=[
                Column("id", SqlType.INTEGER, primary_key=True),
                Column("next_id", SqlType.INTEGER, nullable=False),
            ],
            foreign_keys=[ForeignKey("node", ["next_id"], ["id"])],
        )
        with pytest.raises(CyclicForeignKeyError):
            self.generator.generate([node], 3)

    def test_progress_callback(self):
        seen = []
        options = GenerationOptions(seed=7, on_progress=lambda t, i, n: seen.append((t, i, n)))
        self.generator.generate(shop_tables(), 2, options=options)
        assert seen == [("customers", 1, 2), ("orders", 2, 2)]

    def test_failing_progress_callback_is_ignored(self):
        def boom(*args):
            raise RuntimeError("ui gone")

        result = self.generator.generate(shop_tables(), 2, options=GenerationOptions(on_progress=boom))
        assert result.total_rows == 4

    def test_to_dataframes(self):
        result = self.generator.generate(shop_tables(), 5, options=GenerationOptions(seed=8))
        frames = result.to_dataframes()
        assert list(frames) == ["customers", "orders"]
        assert list(frames["orders"].columns) == ["id", "customer_id", "total"]
        assert len(frames["customers"]) == 5

    def test_multi_column_check_survives_revalidation(self):
        table = Table(
            name="items",
            columns=[
                Column("id", SqlType.INTEGER, primary_key=True),
                Column("status", SqlType.VARCHAR, nullable=False, length=1),
                Column("code", SqlType.INTEGER, nullable=False),
            ],
            checks=["(status = 'A' AND code = 1) OR (status = 'B' AND code = 2)", "code >= 1"],
        )
        result = self.generator.generate([table], 200, options=GenerationOptions(seed=5))
        rows = result.rows["items"]
        assert len(rows) == 200
        violations = [
            (r.get("status"), r.get("code")) for r in rows
            if (r.get("status"), r.get("code")) not in {("A", 1), ("B", 2)}
        ]
        assert violations == []
        assert result.constraints["items"]["code"].max is None
