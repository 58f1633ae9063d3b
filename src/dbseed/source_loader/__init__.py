"""Schema source loaders — DDL, JSON/YAML definitions and live catalogs."""

from dbseed.source_loader.base import BaseParser, InputFormat, ParsedSchema
from dbseed.source_loader.catalog_reader import CatalogReader
from dbseed.source_loader.ddl_parser import DDLParser
from dbseed.source_loader.detector import FormatDetector
from dbseed.source_loader.loader import load_schema
from dbseed.source_loader.schema_definition_parser import SchemaDefinitionParser
