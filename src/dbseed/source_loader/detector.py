"""Schema source detection: DDL script, JSON/YAML definition, or database URL."""

from __future__ import annotations

import os
import re
from typing import Optional

from dbseed.source_loader.base import InputFormat

EXTENSION_FORMATS = {
    ".sql": InputFormat.DDL,
    ".ddl": InputFormat.DDL,
    ".json": InputFormat.SCHEMA_JSON,
    ".yaml": InputFormat.SCHEMA_YAML,
    ".yml": InputFormat.SCHEMA_YAML,
}

# dialect[+driver]://... as accepted by sqlalchemy.create_engine
_URL_RE = re.compile(r"^[a-z][a-z0-9]*(\+[a-z0-9_]+)?://\S*$", re.IGNORECASE)
_DDL_RE = re.compile(r"\b(CREATE|ALTER)\s+TABLE\b", re.IGNORECASE)
_YAML_TABLES_RE = re.compile(r"^tables:", re.MULTILINE)


class FormatDetector:
    """Decides which loader handles a schema source."""

    @classmethod
    def detect(cls, content: str, filename: Optional[str] = None) -> InputFormat:
        """Detect the source format.

        A database URL wins over everything else; then the file extension;
        then the content itself.
        """
        stripped = content.strip()
        if _URL_RE.match(stripped):
            return InputFormat.CATALOG

        if filename:
            ext = os.path.splitext(filename)[1].lower()
            if ext in EXTENSION_FORMATS:
                return EXTENSION_FORMATS[ext]

        return cls._sniff(stripped)

    @staticmethod
    def _sniff(stripped: str) -> InputFormat:
        if not stripped:
            return InputFormat.UNKNOWN
        if stripped.startswith("{") and '"tables"' in stripped:
            return InputFormat.SCHEMA_JSON
        if _YAML_TABLES_RE.search(stripped):
            return InputFormat.SCHEMA_YAML
        if _DDL_RE.search(stripped):
            return InputFormat.DDL
        return InputFormat.UNKNOWN
