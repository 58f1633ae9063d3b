"""Constraint-aware value generator for a single cell.

Given a column and the constraint inferred from its CHECK clauses, produces
one value that respects, in priority order: nullability, UUID uniqueness,
allowed values, numeric bounds, and finally type-driven defaults with length
normalization for text.
"""

from __future__ import annotations

import logging
import math
from datetime import date, datetime, time, timedelta, timezone
from decimal import ROUND_CEILING, ROUND_FLOOR, Decimal
from typing import Any, Optional, Sequence
from uuid import UUID

from dbseed.generator.constraint_parser import ParsedConstraint
from dbseed.generator.context import GenerationContext
from dbseed.model.schema import INTEGER_RANGES, Column, SqlType
from dbseed.model.values import SqlKeyword, Value

logger = logging.getLogger(__name__)

UUID_GENERATION_LIMIT = 1_000_000
DEFAULT_INT_MAX = 10_000
DEFAULT_LONG_MAX = 1_000_000
DEFAULT_DECIMAL_MAX = 1_000
DEFAULT_STRING_LENGTH = 255
NULL_PROBABILITY = 0.3
DATE_RANGE_DAYS = 3650
TIMESTAMP_RANGE_SECONDS = 31_536_000
MAX_DICTIONARY_WORDS = 5
IBAN_LENGTH = 24

_TRUE_LITERALS = {"true", "t", "1", "yes", "y", "on"}
_FALSE_LITERALS = {"false", "f", "0", "no", "n", "off"}


class ValueGenerator:
    """Generates single column values for one run.

    Args:
        context: Per-run random sources and UUID registry.
        dictionary_words: Optional word list for text columns.
        use_latin_dictionary: Mix Faker lorem words into text when a
            dictionary is present (always used when it is not).
        numeric_scale: Decimal places for decimals without declared precision
            and for floating point columns.
    """

    def __init__(
        self,
        context: GenerationContext,
        dictionary_words: Sequence[str] = (),
        use_latin_dictionary: bool = True,
        numeric_scale: int = 2,
    ):
        self.context = context
        self.rng = context.rng
        self.py_rng = context.py_rng
        self.faker = context.faker
        self.dictionary_words = list(dictionary_words)
        self.use_latin_dictionary = use_latin_dictionary
        self.numeric_scale = numeric_scale

    # ------------------------------------------------------------------ #
    # Entry points
    # ------------------------------------------------------------------ #

    def generate_value(
        self, column: Column, constraint: Optional[ParsedConstraint], row_index: int
    ) -> Value:
        """Generate one value for ``column`` honoring ``constraint``."""
        constraint = constraint or ParsedConstraint.empty()

        if column.nullable and not column.primary_key and self.rng.random() < NULL_PROBABILITY:
            return None

        if column.is_uuid or column.sql_type == SqlType.UUID:
            return self._generate_uuid(column, constraint)

        if column.allowed_values:
            return self._pick_allowed(column, column.allowed_values)
        if constraint.allowed_values:
            return self._pick_allowed(column, constraint.allowed_values)

        effective = self._effective_constraint(column, constraint)
        if effective.has_bounds:
            value = self.generate_numeric_within_bounds(column, effective)
            if value is not None:
                return value

        return self._generate_default(column, constraint, row_index)

    def generate_soft_delete_value(
        self, column: Column, use_schema_default: bool, value: Optional[str]
    ) -> Value:
        """Value for a soft-delete column: the DEFAULT keyword or a fixed literal."""
        if use_schema_default:
            return SqlKeyword.DEFAULT
        return self.convert_literal(value, column)

    def generate_numeric_within_bounds(
        self, column: Column, constraint: ParsedConstraint
    ) -> Optional[Value]:
        """Draw a numeric value inside ``[constraint.min, constraint.max]``.

        Missing bounds fall back to the type defaults. Reversed bounds are
        swapped. Non-numeric columns return None.
        """
        if not column.is_numeric:
            return None
        if column.sql_type.is_integer:
            return self._bounded_integer(column, constraint.min, constraint.max)
        if column.sql_type.is_exact_decimal:
            return self._bounded_decimal(column, constraint.min, constraint.max)
        return self._bounded_float(column, constraint.min, constraint.max)

    @staticmethod
    def is_numeric_outside_bounds(value: Any, constraint: Optional[ParsedConstraint]) -> bool:
        """True when a numeric value violates the constraint's bounds.

        Non-numeric text counts as outside; None and keywords never do.
        """
        if constraint is None or not constraint.has_bounds:
            return False
        if value is None or isinstance(value, (SqlKeyword, bool)):
            return False
        if isinstance(value, str):
            try:
                number = float(value)
            except ValueError:
                return True
        elif isinstance(value, (int, float, Decimal)):
            number = float(value)
        else:
            return False
        if math.isnan(number):
            return True
        if constraint.min is not None and number < constraint.min:
            return True
        if constraint.max is not None and number > constraint.max:
            return True
        return False

    @staticmethod
    def convert_literal(value: Any, column: Column) -> Value:
        """Coerce a literal (usually text from config or CHECK) to the column type.

        ``None`` and ``"NULL"`` become None, as does anything unparsable.
        """
        if value is None:
            return None
        if not isinstance(value, str):
            return value
        text = value.strip()
        if text.upper() == "NULL":
            return None
        sql_type = column.sql_type
        try:
            if sql_type.is_integer:
                number = Decimal(text)
                if number != number.to_integral_value():
                    return None
                return int(number)
            if sql_type.is_exact_decimal:
                return Decimal(text)
            if sql_type in (SqlType.REAL, SqlType.FLOAT, SqlType.DOUBLE):
                return float(text)
            if sql_type == SqlType.BOOLEAN:
                low = text.lower()
                if low in _TRUE_LITERALS:
                    return True
                if low in _FALSE_LITERALS:
                    return False
                return None
            if sql_type == SqlType.DATE:
                return date.fromisoformat(text)
            if sql_type == SqlType.TIME:
                return time.fromisoformat(text)
            if sql_type in (SqlType.TIMESTAMP, SqlType.TIMESTAMP_TZ):
                return datetime.fromisoformat(text)
            if sql_type == SqlType.UUID or column.is_uuid:
                return UUID(text)
        except (ValueError, ArithmeticError):
            return None
        return value

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _generate_uuid(self, column: Column, constraint: ParsedConstraint) -> UUID:
        for literals in (column.allowed_values, constraint.allowed_values):
            candidates = []
            for literal in sorted(literals, key=str):
                try:
                    candidate = literal if isinstance(literal, UUID) else UUID(str(literal).strip())
                except ValueError:
                    continue
                if candidate not in self.context.used_uuids:
                    candidates.append(candidate)
            while candidates:
                pick = candidates.pop(self.py_rng.randrange(len(candidates)))
                if self.context.claim_uuid(pick):
                    return pick
        return self.context.new_uuid(UUID_GENERATION_LIMIT)

    def _pick_allowed(self, column: Column, allowed) -> Value:
        literal = self.py_rng.choice(sorted(allowed, key=str))
        converted = self.convert_literal(literal, column)
        if converted is None and not (isinstance(literal, str) and literal.strip().upper() == "NULL"):
            return literal
        return converted

    def _effective_constraint(
        self, column: Column, constraint: ParsedConstraint
    ) -> ParsedConstraint:
        if column.min_value is None and column.max_value is None:
            return constraint
        lower = constraint.min if constraint.min is not None else column.min_value
        upper = constraint.max if constraint.max is not None else column.max_value
        return ParsedConstraint(
            min=lower,
            max=upper,
            allowed_values=constraint.allowed_values,
            max_length=constraint.max_length,
        )

    def _generate_default(
        self, column: Column, constraint: ParsedConstraint, row_index: int
    ) -> Value:
        sql_type = column.sql_type
        if column.is_text:
            return self._generate_text(column, constraint)
        if sql_type.is_integer:
            if column.primary_key:
                return row_index + 1
            return self._bounded_integer(column, None, None)
        if sql_type.is_exact_decimal:
            return self._bounded_decimal(column, None, None)
        if sql_type in (SqlType.REAL, SqlType.FLOAT, SqlType.DOUBLE):
            return self._bounded_float(column, None, None)
        if sql_type == SqlType.BOOLEAN:
            return bool(self.py_rng.random() < 0.5)
        if sql_type == SqlType.DATE:
            return date.today() - timedelta(days=self.py_rng.randint(0, DATE_RANGE_DAYS))
        if sql_type in (SqlType.TIMESTAMP, SqlType.TIMESTAMP_TZ):
            now = datetime.now(timezone.utc) if sql_type == SqlType.TIMESTAMP_TZ else datetime.now()
            offset = timedelta(seconds=self.py_rng.randint(0, TIMESTAMP_RANGE_SECONDS))
            return now.replace(microsecond=0) - offset
        if sql_type == SqlType.TIME:
            return time(
                self.py_rng.randint(0, 23), self.py_rng.randint(0, 59), self.py_rng.randint(0, 59)
            )
        if sql_type == SqlType.ARRAY:
            return self.faker.words(nb=self.py_rng.randint(1, 3))
        if sql_type == SqlType.BINARY:
            size = column.length if 0 < column.length < 16 else 16
            return bytes(self.py_rng.getrandbits(8) for _ in range(size))
        return row_index

    # -- numbers -------------------------------------------------------- #

    def _integer_defaults(self, column: Column) -> tuple[int, int]:
        if column.sql_type == SqlType.BIGINT:
            return 1, DEFAULT_LONG_MAX
        type_lo, type_hi = INTEGER_RANGES[column.sql_type]
        return max(1, type_lo), min(DEFAULT_INT_MAX, type_hi)

    def _bounded_integer(
        self, column: Column, lower: Optional[float], upper: Optional[float]
    ) -> int:
        default_lo, default_hi = self._integer_defaults(column)
        span = default_hi - default_lo
        lo = math.ceil(lower) if lower is not None else None
        hi = math.floor(upper) if upper is not None else None
        if lo is None and hi is None:
            lo, hi = default_lo, default_hi
        elif hi is None:
            hi = max(default_hi, lo + span)
        elif lo is None:
            lo = min(default_lo, hi - span)
        if lo > hi:
            lo, hi = hi, lo
        type_lo, type_hi = INTEGER_RANGES[column.sql_type]
        lo = min(max(lo, type_lo), type_hi)
        hi = min(max(hi, type_lo), type_hi)
        return int(self.rng.integers(lo, hi, endpoint=True))

    def _decimal_scale(self, column: Column) -> int:
        if column.sql_type.is_exact_decimal and column.length > 0:
            return max(column.scale, 0)
        return self.numeric_scale

    def _decimal_default_max(self, column: Column, scale: int) -> Decimal:
        if column.length > 0:
            return Decimal(10) ** (column.length - scale) - Decimal(10) ** -scale
        return Decimal(DEFAULT_DECIMAL_MAX)

    def _bounded_decimal(
        self, column: Column, lower: Optional[float], upper: Optional[float]
    ) -> Decimal:
        scale = self._decimal_scale(column)
        precision_max = self._decimal_default_max(column, scale)
        hi = Decimal(repr(upper)) if upper is not None else precision_max
        if column.length > 0:
            hi = min(hi, precision_max)
        if lower is not None:
            lo = Decimal(repr(lower))
        else:
            lo = Decimal(1) if Decimal(1) <= hi else Decimal(0)
            if lo > hi:
                lo = hi - Decimal(DEFAULT_DECIMAL_MAX)
        if lo > hi:
            lo, hi = hi, lo
        factor = Decimal(10) ** scale
        lo_units = int((lo * factor).to_integral_value(rounding=ROUND_CEILING))
        hi_units = int((hi * factor).to_integral_value(rounding=ROUND_FLOOR))
        if lo_units > hi_units:
            lo_units, hi_units = hi_units, lo_units
        units = self.py_rng.randint(lo_units, hi_units)
        return Decimal(units).scaleb(-scale)

    def _bounded_float(
        self, column: Column, lower: Optional[float], upper: Optional[float]
    ) -> float:
        lo = lower if lower is not None else (1.0 if upper is None or upper >= 1.0 else upper - DEFAULT_DECIMAL_MAX)
        hi = upper if upper is not None else max(float(DEFAULT_DECIMAL_MAX), lo + DEFAULT_DECIMAL_MAX)
        if lo > hi:
            lo, hi = hi, lo
        value = round(float(self.rng.uniform(lo, hi)), self.numeric_scale)
        return min(max(value, lo), hi)

    # -- text ----------------------------------------------------------- #

    def _target_length(self, column: Column, constraint: ParsedConstraint) -> int:
        if constraint.max_length is not None and constraint.max_length >= 0:
            return constraint.max_length
        if column.length > 0:
            return column.length
        return DEFAULT_STRING_LENGTH

    def _generate_text(self, column: Column, constraint: ParsedConstraint) -> str:
        length = self._target_length(column, constraint)
        if length == 2:
            text = self.faker.country_code(representation="alpha-2")
        elif length == 3:
            text = self.faker.country_code(representation="alpha-3")
        elif length == IBAN_LENGTH:
            text = "ES" + "".join(str(self.py_rng.randint(0, 9)) for _ in range(IBAN_LENGTH - 2))
        else:
            text = " ".join(self._words(self.py_rng.randint(1, MAX_DICTIONARY_WORDS)))
        text = text[:length]
        if column.sql_type.is_fixed_length:
            text = text.ljust(length)
        return text

    def _words(self, count: int) -> list[str]:
        use_lorem = not self.dictionary_words or (
            self.use_latin_dictionary and self.py_rng.random() < 0.5
        )
        if use_lorem:
            return self.faker.words(nb=count)
        return [self.py_rng.choice(self.dictionary_words) for _ in range(count)]

