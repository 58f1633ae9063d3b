"""DDL parser — builds Table metadata from CREATE TABLE and ALTER TABLE scripts.

What the generator needs is kept: column types and lengths, nullability,
identity columns, primary and unique keys, foreign keys (inline, table level or
added later by ALTER TABLE ... ADD CONSTRAINT) and CHECK clauses as raw text.
Indexes, grants, storage clauses and everything else are skipped.

Vendor spellings accepted: NUMBER/VARCHAR2 (Oracle), [bracketed] names and
IDENTITY (SQL Server), SERIAL/BYTEA/arrays and ALTER TABLE ONLY (PostgreSQL),
backtick names and AUTO_INCREMENT (MySQL). A table that cannot be turned into
valid metadata becomes a parse warning instead of failing the whole script.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from dbseed.errors import SchemaError
from dbseed.model.schema import Column, ForeignKey, SqlType, Table, sql_type_from_name
from dbseed.source_loader.base import BaseParser, InputFormat, ParsedSchema, mark_one_to_one

logger = logging.getLogger(__name__)

_QUOTES = r'[\[\]`"]'


def _clean_identifier(raw: str) -> str:
    return re.sub(_QUOTES, "", raw.strip())


def _balanced(text: str, open_index: int) -> Optional[tuple[str, int]]:
    """Return (content, end_index) of the parenthesized group opening at ``open_index``."""
    depth = 0
    in_quote = False
    for i in range(open_index, len(text)):
        ch = text[i]
        if ch == "'":
            in_quote = not in_quote
        elif not in_quote:
            if ch == "(":
                depth += 1
            elif ch == ")":
                depth -= 1
                if depth == 0:
                    return text[open_index + 1:i], i
    return None


@dataclass
class _ForeignKeyDraft:
    columns: list[str]
    referenced_table: str
    referenced_columns: list[str]
    name: str = ""


@dataclass
class _TableDraft:
    name: str
    schema: Optional[str] = None
    columns: list[dict] = field(default_factory=list)
    primary_key: list[str] = field(default_factory=list)
    identity_columns: list[str] = field(default_factory=list)
    foreign_keys: list[_ForeignKeyDraft] = field(default_factory=list)
    checks: list[str] = field(default_factory=list)
    unique_keys: list[list[str]] = field(default_factory=list)


class DDLParser(BaseParser):
    """Parses SQL DDL into ParsedSchema tables."""

    # Multi-word SQL types that should be captured as a single type token
    MULTI_WORD_TYPES = {
        "double precision", "character varying", "long raw",
        "timestamp with time zone", "timestamp without time zone",
        "time with time zone", "time without time zone",
    }

    def can_parse(self, content: str) -> bool:
        return bool(re.search(r"\b(CREATE|ALTER)\s+TABLE\b", content, re.IGNORECASE))

    def parse(self, content: str, **kwargs) -> ParsedSchema:
        source_name = kwargs.get("source_name", "DDL Import")
        dialect = kwargs.get("dialect") or self._detect_dialect(content)
        content = self._strip_comments(content)

        drafts: list[_TableDraft] = []
        warnings: list[str] = []

        for raw_name, body in self._extract_create_tables(content):
            table_name, schema_name = self._parse_table_name(raw_name)
            draft = _TableDraft(name=table_name, schema=schema_name)
            self._parse_table_body(draft, body, warnings)
            drafts.append(draft)

        self._apply_alter_statements(content, drafts, warnings)

        tables = []
        for draft in drafts:
            try:
                tables.append(mark_one_to_one(self._build_table(draft, drafts)))
            except SchemaError as exc:
                warnings.append(str(exc))
                logger.warning(f"Skipping table {draft.name}: {exc}")

        return ParsedSchema(
            source_name=source_name,
            tables=tables,
            input_format=InputFormat.DDL,
            dialect=dialect,
            parse_warnings=warnings,
        )

    def _detect_dialect(self, content: str) -> str:
        upper = content.upper()
        if "VARCHAR2" in upper or re.search(r"\bNUMBER\s*\(", upper):
            return "oracle"
        if "[DBO]" in upper or "NVARCHAR" in upper or "IDENTITY" in upper:
            return "sqlserver"
        if re.search(r"\b(BIG)?SERIAL\b", upper) or "BYTEA" in upper:
            return "postgresql"
        if "AUTO_INCREMENT" in upper or "ENGINE=" in upper or "`" in content:
            return "mysql"
        return "unknown"

    def _strip_comments(self, content: str) -> str:
        content = re.sub(r"/\*.*?\*/", " ", content, flags=re.DOTALL)
        return re.sub(r"--[^\n]*", " ", content)

    def _extract_create_tables(self, content: str) -> list[tuple[str, str]]:
        """Extract (table_name, body) pairs from CREATE TABLE statements.

        Uses paren-depth matching instead of regex to correctly handle
        nested parentheses in type definitions like NUMBER(10,2) and
        CHECK constraints like CHECK (status IN ('a','b')).
        """
        results = []
        header_pattern = re.compile(
            r"CREATE\s+(?:GLOBAL\s+|LOCAL\s+)?(?:TEMP(?:ORARY)?\s+)?TABLE\s+"
            r"(?:IF\s+NOT\s+EXISTS\s+)?([^\s(]+)\s*\(",
            re.IGNORECASE,
        )
        for header in header_pattern.finditer(content):
            group = _balanced(content, header.end() - 1)
            if group is not None:
                results.append((header.group(1), group[0]))
        return results

    def _parse_table_name(self, raw_name: str) -> tuple[str, Optional[str]]:
        """Extract table name and schema from qualified name."""
        parts = _clean_identifier(raw_name).split(".")
        if len(parts) >= 2:
            return parts[-1], parts[-2]
        return parts[0], None

    def _split_column_definitions(self, body: str) -> list[str]:
        """Split CREATE TABLE body on commas, respecting parenthesized sub-expressions."""
        elements = []
        current: list[str] = []
        depth = 0
        in_quote = False
        for char in body:
            if char == "'":
                in_quote = not in_quote
            if not in_quote and char == "(":
                depth += 1
            elif not in_quote and char == ")":
                depth -= 1
            elif not in_quote and char == "," and depth == 0:
                elements.append("".join(current))
                current = []
                continue
            current.append(char)
        if current:
            elements.append("".join(current))
        return elements

    def _extract_parens_list(self, element: str) -> list[str]:
        """Extract comma-separated names from the first (...) in a constraint."""
        m = re.search(r"\(([^)]+)\)", element)
        if m:
            return [_clean_identifier(n) for n in m.group(1).split(",") if n.strip()]
        return []

    # ------------------------------------------------------------------ #
    # Table body
    # ------------------------------------------------------------------ #

    def _parse_table_body(self, draft: _TableDraft, body: str, warnings: list[str]):
        """Parse column definitions and constraints inside CREATE TABLE (...)."""
        for element in self._split_column_definitions(body):
            element = element.strip()
            if not element:
                continue
            if self._parse_table_constraint(draft, element, warnings):
                continue
            self._parse_column_definition(draft, element, warnings)

    def _parse_table_constraint(
        self, draft: _TableDraft, element: str, warnings: list[str]
    ) -> bool:
        """Handle PRIMARY KEY / UNIQUE / FOREIGN KEY / CHECK elements. False if not one."""
        constraint_name = ""
        named = re.match(r"CONSTRAINT\s+(\S+)\s+(.*)$", element, re.IGNORECASE | re.DOTALL)
        if named:
            constraint_name = _clean_identifier(named.group(1))
            element = named.group(2).strip()
        upper = element.upper()

        if re.match(r"PRIMARY\s+KEY\b", upper):
            draft.primary_key = self._extract_parens_list(element)
            return True

        if re.match(r"FOREIGN\s+KEY\b", upper):
            fk = self._parse_fk_clause(element, constraint_name)
            if fk:
                draft.foreign_keys.append(fk)
            else:
                warnings.append(f"Table {draft.name}: could not parse foreign key: {element[:80]}")
            return True

        if re.match(r"UNIQUE\b", upper):
            cols = self._extract_parens_list(element)
            if cols:
                draft.unique_keys.append(cols)
            return True

        if re.match(r"CHECK\b", upper):
            check = self._extract_check(element)
            if check:
                draft.checks.append(check)
            return True

        if named:
            warnings.append(f"Table {draft.name}: unsupported constraint {constraint_name}")
            return True

        # MySQL index definitions
        if re.match(
            r"(?:FULLTEXT\s+|SPATIAL\s+)?(?:INDEX|KEY)\b(?:\s+[`\"]?\w+[`\"]?)?\s*\(\s*[`\"\[]?[A-Za-z_]",
            upper,
        ):
            return True
        return False

    def _extract_check(self, text: str) -> Optional[str]:
        m = re.search(r"\bCHECK\s*\(", text, re.IGNORECASE)
        if not m:
            return None
        group = _balanced(text, m.end() - 1)
        return group[0].strip() if group else None

    def _parse_fk_clause(self, element: str, name: str = "") -> Optional[_ForeignKeyDraft]:
        """Parse: FOREIGN KEY (a, b) REFERENCES parent (x, y)."""
        m = re.search(
            r"FOREIGN\s+KEY\s*\(([^)]+)\)\s*REFERENCES\s+([^\s(]+)\s*(?:\(([^)]+)\))?",
            element,
            re.IGNORECASE,
        )
        if not m:
            return None
        ref_table = _clean_identifier(m.group(2)).split(".")[-1]
        ref_cols = [_clean_identifier(c) for c in m.group(3).split(",")] if m.group(3) else []
        return _ForeignKeyDraft(
            columns=[_clean_identifier(c) for c in m.group(1).split(",")],
            referenced_table=ref_table,
            referenced_columns=ref_cols,
            name=name,
        )

    def _parse_column_definition(self, draft: _TableDraft, element: str, warnings: list[str]):
        """Parse a single column definition line."""
        stripped = element.strip()
        name_match = re.match(r'^([`"\[]?\w+[`"\]]?)\s+', stripped)
        if not name_match:
            warnings.append(f"Table {draft.name}: could not parse column: {stripped[:80]}")
            return

        col_name = _clean_identifier(name_match.group(1))
        rest = stripped[name_match.end():]

        # Extract type: check for multi-word types first
        raw_type = ""
        type_args = None
        rest_lower = rest.lower()
        for mwt in sorted(self.MULTI_WORD_TYPES, key=len, reverse=True):
            if rest_lower.startswith(mwt):
                raw_type = mwt
                rest = rest[len(mwt):].strip()
                break

        if not raw_type:
            type_match = re.match(r'[`"\[]?([A-Za-z_]\w*)[`"\]]?', rest)
            if not type_match:
                warnings.append(f"Table {draft.name}: no type for column {col_name}")
                return
            raw_type = type_match.group(1).lower()
            rest = rest[type_match.end():].strip()

        # Extract optional (precision,scale) or (length)
        if rest.startswith("("):
            paren_end = rest.find(")")
            if paren_end > 0:
                type_args = rest[1:paren_end]
                rest = rest[paren_end + 1:].strip()

        is_array = False
        if rest.startswith("[]"):
            is_array = True
            rest = rest[2:].strip()

        modifiers_original = rest        # preserve case for value extraction
        modifiers = rest.upper()          # uppercase for keyword detection

        sql_type = SqlType.ARRAY if is_array else sql_type_from_name(raw_type)
        length = 0
        scale = 0
        if type_args:
            parts = [p.strip() for p in type_args.split(",")]
            if sql_type.is_exact_decimal:
                length = int(parts[0]) if parts[0].isdigit() else 0
                scale = int(parts[1]) if len(parts) > 1 and parts[1].lstrip("-").isdigit() else 0
            elif sql_type.category == "text" or sql_type == SqlType.BINARY:
                if parts[0].isdigit():
                    length = int(parts[0])
            # INT(11) in MySQL is display width, ignored

        # Oracle NUMBER(p,0) and NUMBER(p) are integers
        if raw_type == "number" and type_args and scale == 0 and length and length <= 18:
            sql_type = SqlType.INTEGER if length <= 9 else SqlType.BIGINT
            length = 0

        nullable = "NOT NULL" not in modifiers
        if re.search(r"\bPRIMARY\s+KEY\b", modifiers):
            draft.primary_key = [col_name]
            nullable = False
        if re.search(r"\bUNIQUE\b", modifiers):
            draft.unique_keys.append([col_name])
        if any(kw in modifiers for kw in ("IDENTITY", "AUTO_INCREMENT")) or raw_type in (
            "serial", "bigserial", "smallserial",
        ):
            draft.identity_columns.append(col_name)

        check = self._extract_check(modifiers_original)
        if check:
            draft.checks.append(check)

        # Inline REFERENCES: extract from original case
        ref_match = re.search(
            r"REFERENCES\s+([^\s(]+)\s*(?:\(([^)]+)\))?",
            modifiers_original,
            re.IGNORECASE,
        )
        if ref_match:
            draft.foreign_keys.append(_ForeignKeyDraft(
                columns=[col_name],
                referenced_table=_clean_identifier(ref_match.group(1)).split(".")[-1],
                referenced_columns=(
                    [_clean_identifier(ref_match.group(2))] if ref_match.group(2) else []
                ),
            ))

        draft.columns.append({
            "name": col_name,
            "sql_type": sql_type,
            "nullable": nullable,
            "is_uuid": sql_type == SqlType.UUID
            or (sql_type.category == "text" and col_name.lower().endswith("guid")),
            "length": length,
            "scale": scale,
        })

    # ------------------------------------------------------------------ #
    # ALTER TABLE
    # ------------------------------------------------------------------ #

    def _apply_alter_statements(
        self, content: str, drafts: list[_TableDraft], warnings: list[str]
    ):
        """Apply ALTER TABLE ... ADD [CONSTRAINT n] FOREIGN KEY / UNIQUE / CHECK / PRIMARY KEY."""
        pattern = re.compile(
            r"ALTER\s+TABLE\s+(?:ONLY\s+)?(?:IF\s+EXISTS\s+)?(\S+)\s+ADD\s+(.*?)(?:;|$)",
            re.IGNORECASE | re.DOTALL,
        )
        by_name = {d.name.lower(): d for d in drafts}
        for m in pattern.finditer(content):
            table_name, _ = self._parse_table_name(m.group(1))
            draft = by_name.get(table_name.lower())
            if draft is None:
                warnings.append(f"ALTER TABLE on unknown table {table_name}")
                continue
            clause = m.group(2).strip()
            if not self._parse_table_constraint(draft, clause, warnings):
                warnings.append(f"Table {draft.name}: unsupported ALTER clause: {clause[:80]}")

    # ------------------------------------------------------------------ #
    # Assembly
    # ------------------------------------------------------------------ #

    def _build_table(self, draft: _TableDraft, drafts: list[_TableDraft]) -> Table:
        primary_key = draft.primary_key or draft.identity_columns[:1]
        pk_lower = {c.lower() for c in primary_key}
        columns = [
            Column(**{**c, "nullable": c["nullable"] and c["name"].lower() not in pk_lower})
            for c in draft.columns
        ]
        by_name = {d.name.lower(): d for d in drafts}
        foreign_keys = []
        for fk in draft.foreign_keys:
            ref_cols = fk.referenced_columns
            if not ref_cols:
                parent = by_name.get(fk.referenced_table.lower())
                parent_pk = (parent.primary_key or parent.identity_columns[:1]) if parent else []
                ref_cols = parent_pk if len(parent_pk) == len(fk.columns) else ["id"] * len(fk.columns)
            foreign_keys.append(ForeignKey(
                referenced_table=fk.referenced_table,
                columns=tuple(fk.columns),
                referenced_columns=tuple(ref_cols),
                name=fk.name,
            ))
        return Table(
            name=draft.name,
            columns=columns,
            primary_key=primary_key,
            foreign_keys=foreign_keys,
            checks=draft.checks,
            unique_keys=draft.unique_keys,
            schema=draft.schema,
        )
