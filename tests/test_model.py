"""Tests for the schema model."""

import pytest

from dbseed.errors import SchemaError
from dbseed.model.schema import Column, ForeignKey, SqlType, Table, sql_type_from_name
from dbseed.model.values import Row


class TestSqlTypeFromName:
    """Tests for type name normalization."""

    def test_standard_names(self):
        assert sql_type_from_name("INT") == SqlType.INTEGER
        assert sql_type_from_name("bigint") == SqlType.BIGINT
        assert sql_type_from_name("VARCHAR(20)") == SqlType.VARCHAR
        assert sql_type_from_name("NUMERIC(10, 2)") == SqlType.NUMERIC

    def test_dialect_names(self):
        assert sql_type_from_name("VARCHAR2(30)") == SqlType.VARCHAR
        assert sql_type_from_name("uniqueidentifier") == SqlType.UUID
        assert sql_type_from_name("bit") == SqlType.BOOLEAN
        assert sql_type_from_name("bytea") == SqlType.BINARY
        assert sql_type_from_name("timestamptz") == SqlType.TIMESTAMP_TZ

    def test_multi_word_names(self):
        assert sql_type_from_name("double  precision") == SqlType.DOUBLE
        assert sql_type_from_name("timestamp with time zone") == SqlType.TIMESTAMP_TZ
        assert sql_type_from_name("character varying(40)") == SqlType.VARCHAR

    def test_arrays(self):
        assert sql_type_from_name("int[]") == SqlType.ARRAY
        assert sql_type_from_name("_int4") == SqlType.ARRAY

    def test_unknown_is_other(self):
        assert sql_type_from_name("geometry") == SqlType.OTHER
        assert sql_type_from_name("") == SqlType.OTHER

    def test_categories(self):
        assert SqlType.DECIMAL.category == "numeric"
        assert SqlType.NCHAR.category == "text"
        assert SqlType.TIME.category == "datetime"
        assert SqlType.UUID.category == "other"
        assert SqlType.SMALLINT.is_integer
        assert not SqlType.REAL.is_integer
        assert SqlType.CHAR.is_fixed_length


class TestForeignKey:
    """Tests for ForeignKey validation."""

    def test_default_name_is_derived(self):
        fk = ForeignKey("customers", ["customer_id"], ["id"])
        assert fk.name == "fk_customers_customer_id"
        assert fk.columns == ("customer_id",)

    def test_composite_name_sorts_columns(self):
        fk = ForeignKey("parts", ["b", "a"], ["x", "y"])
        assert fk.name == "fk_parts_a__b"
        assert fk.column_mapping == {"b": "x", "a": "y"}

    def test_arity_mismatch(self):
        with pytest.raises(SchemaError):
            ForeignKey("parts", ["a", "b"], ["x"])

    def test_no_columns(self):
        with pytest.raises(SchemaError):
            ForeignKey("parts", [], [])


class TestTable:
    """Tests for Table normalization."""

    def test_primary_key_from_column_flags(self):
        table = Table(
            name="t",
            columns=[Column("id", SqlType.INTEGER, primary_key=True), Column("name")],
        )
        assert table.primary_key == ["id"]

    def test_primary_key_columns_become_not_null(self):
        table = Table(
            name="t",
            columns=[Column("ID", SqlType.INTEGER), Column("name")],
            primary_key=["id"],
        )
        assert table.primary_key == ["ID"]
        assert table.column("id").primary_key
        assert not table.column("id").nullable

    def test_key_names_are_canonicalized(self):
        table = Table(
            name="orders",
            columns=[Column("Id", SqlType.INTEGER), Column("CustomerId", SqlType.INTEGER)],
            primary_key=["id"],
            foreign_keys=[ForeignKey("customers", ["customerid"], ["id"])],
            unique_keys=[["CUSTOMERID"]],
        )
        assert table.foreign_keys[0].columns == ("CustomerId",)
        assert table.unique_keys == [["CustomerId"]]
        assert table.fk_column_names() == {"CustomerId"}

    def test_unknown_key_column(self):
        with pytest.raises(SchemaError):
            Table(name="t", columns=[Column("id")], primary_key=["missing"])

    def test_with_uuid_columns(self):
        table = Table(name="t", columns=[Column("id", primary_key=True), Column("code")])
        changed = table.with_uuid_columns(["ID"])
        assert changed.column("id").is_uuid
        assert not table.column("id").is_uuid
        assert table.with_uuid_columns([]) is table


class TestRow:
    """Tests for Row helpers."""

    def test_key(self):
        row = Row(values={"a": 1, "b": "x"})
        assert row.key(["b", "a"]) == ("x", 1)
        assert row.get("missing") is None
