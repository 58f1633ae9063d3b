"""Tests for the constraint-aware value generator."""

from datetime import date, datetime, time
from decimal import Decimal
from uuid import UUID

import pytest

from dbseed.errors import GenerationError
from dbseed.generator.constraint_parser import ParsedConstraint
from dbseed.generator.context import GenerationContext
from dbseed.generator.value_generator import ValueGenerator
from dbseed.model.schema import Column, SqlType
from dbseed.model.values import SqlKeyword


class TestGenerateValue:
    """Tests for ValueGenerator.generate_value()."""

    def setup_method(self):
        self.context = GenerationContext(seed=42)
        self.gen = ValueGenerator(self.context)

    def values(self, column, constraint=None, n=200):
        return [self.gen.generate_value(column, constraint, i) for i in range(n)]

    def test_not_null_column_never_null(self):
        col = Column("name", SqlType.VARCHAR, nullable=False, length=30)
        assert all(v is not None for v in self.values(col))

    def test_nullable_column_gets_some_nulls(self):
        col = Column("note", SqlType.VARCHAR, nullable=True, length=30)
        nulls = sum(1 for v in self.values(col, n=1000) if v is None)
        assert 200 < nulls < 400  # ~30% nulls with some variance

    def test_primary_key_never_null(self):
        col = Column("id", SqlType.INTEGER, nullable=True, primary_key=True)
        values = self.values(col, n=50)
        assert values == list(range(1, 51))

    def test_integer_bounds(self):
        col = Column("age", SqlType.INTEGER, nullable=False)
        values = self.values(col, ParsedConstraint(min=18, max=65))
        assert all(isinstance(v, int) and 18 <= v <= 65 for v in values)

    def test_strict_integer_bounds(self):
        col = Column("qty", SqlType.SMALLINT, nullable=False)
        c = ParsedConstraint(min=0.0000001, max=9.9999)
        assert all(1 <= v <= 9 for v in self.values(col, c))

    def test_integer_only_lower_bound(self):
        col = Column("qty", SqlType.TINYINT, nullable=False)
        values = self.values(col, ParsedConstraint(min=100))
        assert all(100 <= v <= 127 for v in values)

    def test_decimal_bounds_and_scale(self):
        col = Column("price", SqlType.DECIMAL, nullable=False, length=6, scale=2)
        values = self.values(col, ParsedConstraint(min=0.5, max=10))
        for v in values:
            assert isinstance(v, Decimal)
            assert Decimal("0.5") <= v <= Decimal("10")
            assert v.as_tuple().exponent == -2

    def test_decimal_precision_default_range(self):
        col = Column("price", SqlType.NUMERIC, nullable=False, length=4, scale=2)
        assert all(Decimal(0) <= v <= Decimal("99.99") for v in self.values(col))

    def test_float_bounds(self):
        col = Column("ratio", SqlType.DOUBLE, nullable=False)
        values = self.values(col, ParsedConstraint(min=0.25, max=0.75))
        assert all(isinstance(v, float) and 0.25 <= v <= 0.75 for v in values)

    def test_column_hints_fill_missing_bounds(self):
        col = Column("score", SqlType.INTEGER, nullable=False, min_value=5, max_value=8)
        assert all(5 <= v <= 8 for v in self.values(col))

    def test_allowed_values_from_constraint(self):
        col = Column("status", SqlType.VARCHAR, nullable=False, length=10)
        values = self.values(col, ParsedConstraint(allowed_values=frozenset({"new", "paid"})))
        assert set(values) == {"new", "paid"}

    def test_allowed_values_are_converted(self):
        col = Column("level", SqlType.INTEGER, nullable=False)
        values = self.values(col, ParsedConstraint(allowed_values=frozenset({"1", "2"})))
        assert set(values) == {1, 2}

    def test_column_allowed_values_win(self):
        col = Column("kind", SqlType.VARCHAR, nullable=False, allowed_values=frozenset({"x"}))
        values = self.values(col, ParsedConstraint(allowed_values=frozenset({"y"})), n=20)
        assert set(values) == {"x"}

    def test_text_length(self):
        col = Column("title", SqlType.VARCHAR, nullable=False, length=8)
        assert all(isinstance(v, str) and len(v) <= 8 for v in self.values(col))

    def test_check_length_overrides(self):
        col = Column("title", SqlType.TEXT, nullable=False)
        assert all(len(v) <= 4 for v in self.values(col, ParsedConstraint(max_length=4)))

    def test_char_is_padded(self):
        col = Column("code", SqlType.CHAR, nullable=False, length=10)
        assert all(len(v) == 10 for v in self.values(col))

    def test_country_codes(self):
        alpha2 = Column("country", SqlType.CHAR, nullable=False, length=2)
        alpha3 = Column("country3", SqlType.VARCHAR, nullable=False, length=3)
        assert all(len(v) == 2 and v.isupper() for v in self.values(alpha2, n=20))
        assert all(len(v) == 3 and v.isupper() for v in self.values(alpha3, n=20))

    def test_iban_like(self):
        col = Column("iban", SqlType.VARCHAR, nullable=False, length=24)
        for v in self.values(col, n=20):
            assert len(v) == 24
            assert v.startswith("ES") and v[2:].isdigit()

    def test_dictionary_words(self):
        gen = ValueGenerator(self.context, dictionary_words=["alpha"], use_latin_dictionary=False)
        col = Column("tag", SqlType.VARCHAR, nullable=False, length=100)
        for i in range(20):
            assert set(gen.generate_value(col, None, i).split()) == {"alpha"}

    def test_uuid_values_are_unique(self):
        col = Column("guid", SqlType.UUID, nullable=False)
        values = self.values(col, n=500)
        assert all(isinstance(v, UUID) and v.version == 4 for v in values)
        assert len(set(values)) == 500

    def test_uuid_flag_on_text_column(self):
        col = Column("ref", SqlType.VARCHAR, nullable=False, is_uuid=True)
        assert isinstance(self.gen.generate_value(col, None, 0), UUID)

    def test_uuid_allowed_literals_used_once(self):
        literal = "12345678-1234-4234-8234-123456789abc"
        col = Column("guid", SqlType.UUID, nullable=False)
        c = ParsedConstraint(allowed_values=frozenset({literal}))
        first = self.gen.generate_value(col, c, 0)
        second = self.gen.generate_value(col, c, 1)
        assert first == UUID(literal)
        assert second != first

    def test_uuid_limit(self):
        self.context.used_uuids.update(UUID(int=i) for i in range(5))
        with pytest.raises(GenerationError):
            self.context.new_uuid(limit=5)

    def test_other_types(self):
        cases = {
            SqlType.BOOLEAN: bool,
            SqlType.DATE: date,
            SqlType.TIMESTAMP: datetime,
            SqlType.TIME: time,
            SqlType.BINARY: bytes,
            SqlType.ARRAY: list,
        }
        for sql_type, expected in cases.items():
            col = Column("c", sql_type, nullable=False)
            assert isinstance(self.gen.generate_value(col, None, 0), expected)

    def test_timestamp_tz_is_aware(self):
        col = Column("ts", SqlType.TIMESTAMP_TZ, nullable=False)
        assert self.gen.generate_value(col, None, 0).tzinfo is not None

    def test_seed_is_reproducible(self):
        col = Column("name", SqlType.VARCHAR, nullable=True, length=40)
        a = ValueGenerator(GenerationContext(seed=7))
        b = ValueGenerator(GenerationContext(seed=7))
        assert [a.generate_value(col, None, i) for i in range(50)] == [
            b.generate_value(col, None, i) for i in range(50)
        ]


class TestSoftDelete:
    """Tests for soft-delete values."""

    def setup_method(self):
        self.gen = ValueGenerator(GenerationContext(seed=1))

    def test_schema_default(self):
        col = Column("deleted_at", SqlType.TIMESTAMP)
        assert self.gen.generate_soft_delete_value(col, True, None) is SqlKeyword.DEFAULT

    def test_fixed_value(self):
        col = Column("is_deleted", SqlType.BOOLEAN)
        assert self.gen.generate_soft_delete_value(col, False, "false") is False
        assert self.gen.generate_soft_delete_value(col, False, "NULL") is None


class TestNumericHelpers:
    """Tests for the static numeric helpers."""

    def test_outside_bounds(self):
        c = ParsedConstraint(min=1, max=10)
        assert ValueGenerator.is_numeric_outside_bounds(0, c)
        assert ValueGenerator.is_numeric_outside_bounds(Decimal("10.5"), c)
        assert ValueGenerator.is_numeric_outside_bounds("abc", c)
        assert not ValueGenerator.is_numeric_outside_bounds("5", c)
        assert not ValueGenerator.is_numeric_outside_bounds(None, c)
        assert not ValueGenerator.is_numeric_outside_bounds(SqlKeyword.DEFAULT, c)
        assert not ValueGenerator.is_numeric_outside_bounds(99, ParsedConstraint.empty())

    def test_within_bounds_non_numeric(self):
        gen = ValueGenerator(GenerationContext(seed=1))
        col = Column("name", SqlType.VARCHAR)
        assert gen.generate_numeric_within_bounds(col, ParsedConstraint(min=1, max=2)) is None

    def test_convert_literal(self):
        convert = ValueGenerator.convert_literal
        assert convert("42", Column("n", SqlType.INTEGER)) == 42
        assert convert("4.5", Column("n", SqlType.INTEGER)) is None
        assert convert("4.50", Column("n", SqlType.DECIMAL)) == Decimal("4.50")
        assert convert("2024-01-31", Column("d", SqlType.DATE)) == date(2024, 1, 31)
        assert convert("yes", Column("b", SqlType.BOOLEAN)) is True
        assert convert("maybe", Column("b", SqlType.BOOLEAN)) is None
        assert convert(" NULL ", Column("s", SqlType.VARCHAR)) is None
        assert convert("hello", Column("s", SqlType.VARCHAR)) == "hello"
        assert convert(7, Column("s", SqlType.VARCHAR)) == 7
