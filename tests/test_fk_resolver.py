"""Tests for foreign key resolution."""

import random

import pytest

from dbseed.errors import CyclicForeignKeyError, GenerationError, SchemaShapeError
from dbseed.generator.fk_resolver import ForeignKeyResolver
from dbseed.model.schema import Column, ForeignKey, SqlType, Table
from dbseed.model.values import Row


def rows(*ids, **extra):
    return [Row(values={"id": i, **extra}) for i in ids]


def fk_rows(n, column="parent_id"):
    return [Row(values={"id": i + 1, column: None}) for i in range(n)]


class TestAcyclicResolution:
    """Tests for FKs to parents generated earlier."""

    def setup_method(self):
        self.customers = Table(name="customers", columns=[Column("id", SqlType.INTEGER, primary_key=True)])
        self.orders = Table(
            name="orders",
            columns=[
                Column("id", SqlType.INTEGER, primary_key=True),
                Column("customer_id", SqlType.INTEGER, nullable=False),
            ],
            foreign_keys=[ForeignKey("customers", ["customer_id"], ["id"])],
        )

    def test_values_come_from_parent_rows(self):
        data = {"customers": rows(10, 20, 30), "orders": fk_rows(25, "customer_id")}
        updates = ForeignKeyResolver(
            [self.customers, self.orders], data, deferred=False, rng=random.Random(1)
        ).resolve()
        assert updates == []
        assert {r.get("customer_id") for r in data["orders"]} <= {10, 20, 30}
        assert all(r.get("customer_id") is not None for r in data["orders"])

    def test_empty_parent_non_nullable_fails(self):
        data = {"customers": [], "orders": fk_rows(2, "customer_id")}
        with pytest.raises(GenerationError):
            ForeignKeyResolver([self.customers, self.orders], data, deferred=False).resolve()

    def test_empty_parent_nullable_gives_null(self):
        orders = Table(
            name="orders",
            columns=[
                Column("id", SqlType.INTEGER, primary_key=True),
                Column("customer_id", SqlType.INTEGER, nullable=True),
            ],
            foreign_keys=[ForeignKey("customers", ["customer_id"], ["id"])],
        )
        data = {"customers": [], "orders": fk_rows(3, "customer_id")}
        ForeignKeyResolver([self.customers, orders], data, deferred=False).resolve()
        assert all(r.get("customer_id") is None for r in data["orders"])

    def test_unknown_parent_gives_null(self):
        data = {"orders": fk_rows(3, "customer_id")}
        ForeignKeyResolver([self.orders], data, deferred=False).resolve()
        assert all(r.get("customer_id") is None for r in data["orders"])

    def test_composite_fk(self):
        parts = Table(
            name="parts",
            columns=[Column("maker", SqlType.VARCHAR), Column("code", SqlType.INTEGER)],
            primary_key=["maker", "code"],
        )
        usage = Table(
            name="usage",
            columns=[
                Column("id", SqlType.INTEGER, primary_key=True),
                Column("part_maker", SqlType.VARCHAR, nullable=False),
                Column("part_code", SqlType.INTEGER, nullable=False),
            ],
            foreign_keys=[ForeignKey("parts", ["part_maker", "part_code"], ["maker", "code"])],
        )
        parent_rows = [Row(values={"maker": "acme", "code": 1}), Row(values={"maker": "zeta", "code": 2})]
        data = {"parts": parent_rows, "usage": [Row(values={"id": i}) for i in range(10)]}
        ForeignKeyResolver([parts, usage], data, deferred=False, rng=random.Random(5)).resolve()
        pairs = {(r.get("part_maker"), r.get("part_code")) for r in data["usage"]}
        assert pairs <= {("acme", 1), ("zeta", 2)}


class TestUniqueForeignKeys:
    """Tests for one-to-one and unique FK combinations."""

    def setup_method(self):
        self.users = Table(name="users", columns=[Column("id", SqlType.INTEGER, primary_key=True)])

    def test_one_to_one_uses_each_parent_once(self):
        profiles = Table(
            name="profiles",
            columns=[
                Column("id", SqlType.INTEGER, primary_key=True),
                Column("user_id", SqlType.INTEGER, nullable=False),
            ],
            foreign_keys=[ForeignKey("users", ["user_id"], ["id"], unique_on_fk=True)],
        )
        data = {"users": rows(1, 2, 3, 4), "profiles": fk_rows(4, "user_id")}
        ForeignKeyResolver([self.users, profiles], data, deferred=False).resolve()
        assert sorted(r.get("user_id") for r in data["profiles"]) == [1, 2, 3, 4]

    def test_one_to_one_exhausted_nullable(self):
        profiles = Table(
            name="profiles",
            columns=[
                Column("id", SqlType.INTEGER, primary_key=True),
                Column("user_id", SqlType.INTEGER, nullable=True),
            ],
            foreign_keys=[ForeignKey("users", ["user_id"], ["id"], unique_on_fk=True)],
        )
        data = {"users": rows(1, 2), "profiles": fk_rows(5, "user_id")}
        ForeignKeyResolver([self.users, profiles], data, deferred=False).resolve()
        values = [r.get("user_id") for r in data["profiles"]]
        assert sorted(v for v in values if v is not None) == [1, 2]
        assert values.count(None) == 3

    def test_one_to_one_exhausted_not_null(self):
        profiles = Table(
            name="profiles",
            columns=[
                Column("id", SqlType.INTEGER, primary_key=True),
                Column("user_id", SqlType.INTEGER, nullable=False),
            ],
            foreign_keys=[ForeignKey("users", ["user_id"], ["id"], unique_on_fk=True)],
        )
        data = {"users": rows(1), "profiles": fk_rows(2, "user_id")}
        with pytest.raises(GenerationError):
            ForeignKeyResolver([self.users, profiles], data, deferred=False).resolve()

    def test_junction_table_combinations_unique(self):
        roles = Table(name="roles", columns=[Column("id", SqlType.INTEGER, primary_key=True)])
        user_roles = Table(
            name="user_roles",
            columns=[
                Column("user_id", SqlType.INTEGER),
                Column("role_id", SqlType.INTEGER),
            ],
            primary_key=["user_id", "role_id"],
            foreign_keys=[
                ForeignKey("users", ["user_id"], ["id"]),
                ForeignKey("roles", ["role_id"], ["id"]),
            ],
        )
        data = {
            "users": rows(1, 2, 3),
            "roles": rows(10, 20),
            "user_roles": [Row(values={"user_id": None, "role_id": None}) for _ in range(5)],
        }
        ForeignKeyResolver(
            [self.users, roles, user_roles], data, deferred=False, rng=random.Random(2)
        ).resolve()
        pairs = [(r.get("user_id"), r.get("role_id")) for r in data["user_roles"]]
        assert len(set(pairs)) == 5
        assert all(u in (1, 2, 3) and r in (10, 20) for u, r in pairs)

    def test_junction_capacity_exhausted(self):
        roles = Table(name="roles", columns=[Column("id", SqlType.INTEGER, primary_key=True)])
        user_roles = Table(
            name="user_roles",
            columns=[Column("user_id", SqlType.INTEGER), Column("role_id", SqlType.INTEGER)],
            primary_key=["user_id", "role_id"],
            foreign_keys=[
                ForeignKey("users", ["user_id"], ["id"]),
                ForeignKey("roles", ["role_id"], ["id"]),
            ],
        )
        data = {
            "users": rows(1),
            "roles": rows(10),
            "user_roles": [Row(values={"user_id": None, "role_id": None}) for _ in range(2)],
        }
        with pytest.raises(GenerationError):
            ForeignKeyResolver([self.users, roles, user_roles], data, deferred=False).resolve()


class TestCyclicResolution:
    """Tests for self references and FK cycles."""

    def employees(self, nullable=True, primary_key=True):
        return Table(
            name="employees",
            columns=[
                Column("id", SqlType.INTEGER, primary_key=primary_key),
                Column("manager_id", SqlType.INTEGER, nullable=nullable),
            ],
            foreign_keys=[ForeignKey("employees", ["manager_id"], ["id"])],
        )

    def test_self_reference_produces_updates(self):
        data = {"employees": fk_rows(4, "manager_id")}
        updates = ForeignKeyResolver([self.employees()], data, deferred=False).resolve()
        assert len(updates) == 4
        assert all(r.get("manager_id") is None for r in data["employees"])
        for update in updates:
            assert update.table == "employees"
            assert set(update.pk_values) == {"id"}
            assert update.fk_values["manager_id"] in {1, 2, 3, 4}

    def test_self_reference_deferred_assigns_directly(self):
        data = {"employees": fk_rows(4, "manager_id")}
        updates = ForeignKeyResolver([self.employees()], data, deferred=True).resolve()
        assert updates == []
        assert all(r.get("manager_id") in {1, 2, 3, 4} for r in data["employees"])

    def test_non_nullable_cycle_without_deferred_fails(self):
        data = {"employees": fk_rows(2, "manager_id")}
        with pytest.raises(CyclicForeignKeyError) as excinfo:
            ForeignKeyResolver([self.employees(nullable=False)], data, deferred=False).resolve()
        assert excinfo.value.table == "employees"
        assert excinfo.value.parent == "employees"

    def test_update_needs_row_identity(self):
        table = Table(
            name="employees",
            columns=[Column("code", SqlType.INTEGER), Column("manager_id", SqlType.INTEGER)],
            foreign_keys=[ForeignKey("employees", ["manager_id"], ["code"])],
        )
        data = {"employees": [Row(values={"code": 1, "manager_id": None})]}
        with pytest.raises(SchemaShapeError):
            ForeignKeyResolver([table], data, deferred=False).resolve()

    def test_unique_key_identity(self):
        table = Table(
            name="employees",
            columns=[Column("code", SqlType.INTEGER), Column("manager_id", SqlType.INTEGER)],
            foreign_keys=[ForeignKey("employees", ["manager_id"], ["code"])],
            unique_keys=[["code"]],
        )
        data = {"employees": [Row(values={"code": 1, "manager_id": None})]}
        updates = ForeignKeyResolver([table], data, deferred=False).resolve()
        assert updates[0].pk_values == {"code": 1}

    def test_two_table_cycle(self):
        a = Table(
            name="a",
            columns=[Column("id", SqlType.INTEGER, primary_key=True), Column("b_id", SqlType.INTEGER)],
            foreign_keys=[ForeignKey("b", ["b_id"], ["id"])],
        )
        b = Table(
            name="b",
            columns=[
                Column("id", SqlType.INTEGER, primary_key=True),
                Column("a_id", SqlType.INTEGER, nullable=False),
            ],
            foreign_keys=[ForeignKey("a", ["a_id"], ["id"])],
        )
        data = {"a": fk_rows(3, "b_id"), "b": fk_rows(3, "a_id")}
        updates = ForeignKeyResolver([a, b], data, deferred=False).resolve()
        # a is visited first: its FK to b becomes an UPDATE; b -> a is direct
        assert len(updates) == 3
        assert all(u.table == "a" for u in updates)
        assert all(r.get("a_id") in {1, 2, 3} for r in data["b"])
