"""Routes schema input to the matching parser."""

from __future__ import annotations

import logging
from typing import Optional

from dbseed.source_loader.base import InputFormat, ParsedSchema
from dbseed.source_loader.catalog_reader import CatalogReader
from dbseed.source_loader.ddl_parser import DDLParser
from dbseed.source_loader.detector import FormatDetector
from dbseed.source_loader.schema_definition_parser import SchemaDefinitionParser

logger = logging.getLogger(__name__)


def load_schema(
    content: str,
    filename: Optional[str] = None,
    schema: Optional[str] = None,
) -> ParsedSchema:
    """Parse DDL text, a JSON/YAML definition, or reflect a database URL.

    Raises:
        ValueError: The input format could not be recognized.
    """
    fmt = FormatDetector.detect(content, filename)
    logger.info(f"Loading schema from {filename or 'input'} as {fmt.value}")
    source_name = filename or "input"

    if fmt == InputFormat.DDL:
        return DDLParser().parse(content, source_name=source_name)
    if fmt in (InputFormat.SCHEMA_JSON, InputFormat.SCHEMA_YAML):
        return SchemaDefinitionParser().parse(content, source_name=source_name)
    if fmt == InputFormat.CATALOG:
        return CatalogReader(content.strip(), schema=schema).read()
    raise ValueError(f"Unrecognized schema input format for {source_name}")
