"""CHECK constraint parser — infers per-column bounds, allowed values and lengths.

Works on the raw CHECK clause text as the catalog reports it, which varies by
dialect:
- PostgreSQL: ((age >= 18)), ((status)::text = ANY ((ARRAY['a'::character varying])::text[]))
- MySQL: (`age` between 18 and 65), (`status` in (_utf8mb4'a',_utf8mb4'b'))
- SQL Server / Oracle: ([age]>=(18)), status IN ('a','b')

Parsing strategy: regex matching per column, tolerant of qualified names,
quoted identifiers and ``::type`` casts. Clauses that cannot be understood
are ignored; the parser never raises on malformed input.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

_NUMBER = r"[-+]?\d+(?:\.\d+)?(?:[eE][-+]?\d+)?"
_CAST = r"(?:\s*::\s*\w+(?:\s+(?:varying|precision|without\s+time\s+zone|with\s+time\s+zone))?(?:\[\])?)"
# A numeric literal, optionally quoted or cast: 18, '18', (18)::numeric
_NUM_LITERAL = rf"\(*'?({_NUMBER})'?\)*{_CAST}?\)*"


@dataclass(frozen=True)
class CheckExpression:
    """A raw CHECK clause plus the normalized forms used for matching."""

    original: str
    no_parens: str
    no_parens_low: str

    @classmethod
    def of(cls, raw: str) -> CheckExpression:
        no_parens = re.sub(r"[()]+", " ", raw)
        return cls(original=raw, no_parens=no_parens, no_parens_low=no_parens.lower())


def build_check_expressions(raw_checks: Optional[Iterable[Optional[str]]]) -> list[CheckExpression]:
    """Wrap raw CHECK clauses, dropping blank entries."""
    if not raw_checks:
        return []
    return [CheckExpression.of(c) for c in raw_checks if c is not None and c.strip()]


@dataclass(frozen=True)
class ParsedConstraint:
    """Constraint knowledge for one column. All fields optional."""

    min: Optional[float] = None
    max: Optional[float] = None
    allowed_values: frozenset = frozenset()
    max_length: Optional[int] = None

    @classmethod
    def empty(cls) -> ParsedConstraint:
        return cls()

    @property
    def has_bounds(self) -> bool:
        return self.min is not None or self.max is not None

    @property
    def has_allowed_values(self) -> bool:
        return bool(self.allowed_values)


@dataclass(frozen=True)
class MultiColumnConstraint:
    """A DNF CHECK over several columns: the row must match one combination."""

    columns: tuple[str, ...]
    allowed_combinations: tuple[dict, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class _ColumnPatterns:
    between: re.Pattern
    comparison: re.Pattern
    reversed_comparison: re.Pattern
    equality: re.Pattern
    in_list: re.Pattern
    any_array: re.Pattern
    length: re.Pattern


@lru_cache(maxsize=1024)
def _patterns_for(column_name: str) -> _ColumnPatterns:
    name = re.escape(column_name)
    # (?<![\w.]) keeps "age" from matching inside "max_age" or "t.page"
    col = rf"(?<![\w.])\(*(?:[`\"\[]?\w+[`\"\]]?\.)*[`\"\[]?{name}[`\"\]]?(?!\w)\)*{_CAST}?\)*"
    flags = re.IGNORECASE
    return _ColumnPatterns(
        between=re.compile(
            rf"{col}\s*BETWEEN\s+{_NUM_LITERAL}\s+AND\s+{_NUM_LITERAL}", flags
        ),
        comparison=re.compile(rf"{col}\s*(>=|<=|<>|!=|>|<|=)\s*{_NUM_LITERAL}", flags),
        reversed_comparison=re.compile(
            rf"(?<![\w.'])'?({_NUMBER})'?\s*(>=|<=|>|<)\s*{col}", flags
        ),
        equality=re.compile(
            rf"{col}\s*=\s*(?!ANY\b)(N?'(?:[^']|'')*'|\"[^\"]*\"|[\w+\-.]+)", flags
        ),
        in_list=re.compile(rf"{col}\s+(NOT\s+)?IN\s*\(([^)]*)\)", flags),
        any_array=re.compile(rf"{col}\s*=\s*ANY\s*ARRAY\s*\[([^\]]*)\]", flags),
        length=re.compile(
            rf"\b(?:char_length|character_length|length|len)\s*\(\s*{col}\s*\)\s*(<=|<|=)\s*\(*(\d+)\)*",
            flags,
        ),
    )


def _unquote(literal: str) -> str:
    value = literal.strip()
    # MySQL charset introducers: _utf8mb4'a'
    value = re.sub(r"^_\w+(?=')", "", value)
    if value[:2].upper() == "N'":
        value = value[1:]
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        value = value[1:-1].replace("''", "'")
    return value


def _split_literals(text: str) -> list[str]:
    """Split a comma list of SQL literals, respecting quoted commas."""
    items = re.findall(r"(?:_\w+)?N?'(?:[^']|'')*'|[^,\s][^,]*", text)
    return [i.strip() for i in items if i.strip()]


def _is_number(text: str) -> bool:
    return re.fullmatch(_NUMBER, text.strip()) is not None


class ConstraintParser:
    """Extracts a ParsedConstraint for a single column from CHECK clauses."""

    def __init__(self, column_name: str):
        self.column_name = column_name
        self._patterns = _patterns_for(column_name)

    def parse(
        self, check_expressions: Iterable[CheckExpression], column_length: int = 0
    ) -> ParsedConstraint:
        """Intersect every clause that mentions the column.

        Bounds tighten (max of mins, min of maxes), allowed values accumulate,
        the smallest length wins. A positive ``column_length`` overrides a
        looser CHECK-derived length.
        """
        lower: Optional[float] = None
        upper: Optional[float] = None
        allowed: set[str] = set()
        max_length: Optional[int] = None

        def raise_lower(v: float):
            nonlocal lower
            lower = v if lower is None else max(lower, v)

        def drop_upper(v: float):
            nonlocal upper
            upper = v if upper is None else min(upper, v)

        name_low = self.column_name.lower()
        p = self._patterns
        for expr in check_expressions:
            if name_low not in expr.no_parens_low:
                continue
            # joint combinations are enforced by the row generator, not per column
            if is_multi_column_clause(expr.original):
                continue

            for m in p.between.finditer(expr.no_parens):
                a, b = float(m.group(1)), float(m.group(2))
                raise_lower(min(a, b))
                drop_upper(max(a, b))

            for m in p.comparison.finditer(expr.original):
                op, v = m.group(1), float(m.group(2))
                if op == ">=":
                    raise_lower(v)
                elif op == ">":
                    raise_lower(math.nextafter(v, math.inf))
                elif op == "<=":
                    drop_upper(v)
                elif op == "<":
                    drop_upper(math.nextafter(v, -math.inf))
                elif op == "=":
                    raise_lower(v)
                    drop_upper(v)

            for m in p.reversed_comparison.finditer(expr.original):
                v, op = float(m.group(1)), m.group(2)
                # "18 <= age" bounds age from below
                if op == "<=":
                    raise_lower(v)
                elif op == "<":
                    raise_lower(math.nextafter(v, math.inf))
                elif op == ">=":
                    drop_upper(v)
                elif op == ">":
                    drop_upper(math.nextafter(v, -math.inf))

            for m in p.equality.finditer(expr.original):
                literal = m.group(1)
                if _is_number(literal):
                    continue  # handled as a bound above
                allowed.add(_unquote(literal))

            for m in p.in_list.finditer(expr.original):
                if m.group(1):
                    continue  # NOT IN excludes, nothing to add
                for item in _split_literals(re.sub(_CAST, "", m.group(2))):
                    allowed.add(_unquote(item))

            for m in p.any_array.finditer(expr.no_parens):
                for item in _split_literals(re.sub(_CAST, "", m.group(1))):
                    allowed.add(_unquote(item))

            for m in p.length.finditer(expr.original):
                op, n = m.group(1), int(m.group(2))
                limit = n - 1 if op == "<" else n
                max_length = limit if max_length is None else min(max_length, limit)

        if column_length and column_length > 0:
            if max_length is None or column_length < max_length:
                max_length = column_length

        if lower is None and upper is None and not allowed and max_length is None:
            return ParsedConstraint.empty()
        return ParsedConstraint(
            min=lower, max=upper, allowed_values=frozenset(allowed), max_length=max_length
        )


# --------------------------------------------------------------------------- #
# Multi-column (DNF) constraints
# --------------------------------------------------------------------------- #

_CONDITION_STRICT = re.compile(
    r"^\(*\s*[`\"\[]?(\w+)[`\"\]]?\s*\)*" + _CAST + r"?\s*=\s*"
    r"(N?'(?:[^']|'')*'|" + _NUMBER + r")" + _CAST + r"?\s*\)*$",
    re.IGNORECASE,
)
_CONDITION_RELAXED = re.compile(
    r"^\(*\s*(?:\w+\.)*[`\"\[]?(\w+)[`\"\]]?\s*\)*" + _CAST + r"?\s*=\s*"
    r"\(*\s*(N?'(?:[^']|'')*'|[\w+\-.]+)\s*\)*" + _CAST + r"?\s*\)*$",
    re.IGNORECASE,
)


def _strip_outer_parens(text: str) -> str:
    text = text.strip()
    while text.startswith("(") and text.endswith(")"):
        depth = 0
        wraps = True
        for i, ch in enumerate(text):
            if ch == "(":
                depth += 1
            elif ch == ")":
                depth -= 1
                if depth == 0 and i != len(text) - 1:
                    wraps = False
                    break
        if not wraps:
            break
        text = text[1:-1].strip()
    return text


def _split_top_level(text: str, keyword: str) -> list[str]:
    """Split on a boolean keyword outside parentheses and quotes."""
    parts: list[str] = []
    depth = 0
    in_quote = False
    start = 0
    i = 0
    kw_len = len(keyword)
    low = text.lower()
    while i < len(text):
        ch = text[i]
        if ch == "'":
            in_quote = not in_quote
        elif not in_quote:
            if ch == "(":
                depth += 1
            elif ch == ")":
                depth -= 1
            elif (
                depth == 0
                and low.startswith(keyword, i)
                and (i == 0 or not (text[i - 1].isalnum() or text[i - 1] == "_"))
                and (i + kw_len >= len(text) or not (text[i + kw_len].isalnum() or text[i + kw_len] == "_"))
            ):
                parts.append(text[start:i])
                i += kw_len
                start = i
                continue
        i += 1
    parts.append(text[start:])
    return [p.strip() for p in parts if p.strip()]


def _parse_condition(condition: str) -> Optional[tuple[str, str]]:
    condition = _strip_outer_parens(condition)
    m = _CONDITION_STRICT.match(condition) or _CONDITION_RELAXED.match(condition)
    if not m:
        return None
    return m.group(1), _unquote(m.group(2))


def parse_multi_column_constraints(
    raw_checks: Optional[Iterable[Optional[str]]],
) -> list[MultiColumnConstraint]:
    """Parse clauses shaped like ``(a='x' AND b=1) OR (a='y' AND b=2)``.

    Each OR branch must be a conjunction of ``column = literal`` conditions
    over the same column set; otherwise the whole clause is skipped.
    """
    results: list[MultiColumnConstraint] = []
    for raw in raw_checks or []:
        if raw is None or not raw.strip():
            continue
        low = raw.lower()
        if "=" not in raw or not re.search(r"\b(and|or)\b", low):
            continue

        body = re.sub(r"^\s*CHECK\b", "", raw.strip(), flags=re.IGNORECASE)
        body = _strip_outer_parens(body)

        combinations: list[dict[str, str]] = []
        column_set: Optional[frozenset] = None
        ordered_columns: list[str] = []
        valid = True
        for branch in _split_top_level(body, "or"):
            combo: dict[str, str] = {}
            for condition in _split_top_level(_strip_outer_parens(branch), "and"):
                parsed = _parse_condition(condition)
                if parsed is None:
                    valid = False
                    break
                combo[parsed[0]] = parsed[1]
            if not valid:
                break
            keys = frozenset(k.lower() for k in combo)
            if column_set is None:
                column_set = keys
                ordered_columns = list(combo)
            elif keys != column_set:
                valid = False
                break
            combinations.append(combo)

        if not valid or not combinations or len(ordered_columns) < 2:
            logger.debug(f"Skipping CHECK clause as multi-column constraint: {raw}")
            continue
        results.append(MultiColumnConstraint(
            columns=tuple(ordered_columns),
            allowed_combinations=tuple(combinations),
        ))
    return results


@lru_cache(maxsize=1024)
def is_multi_column_clause(raw: str) -> bool:
    """True when ``raw`` parses as a DNF constraint over two or more columns."""
    return bool(parse_multi_column_constraints([raw]))
