"""Generation engine — constraint inference, ordering, values, rows and FK resolution."""

from dbseed.generator.constraint_parser import (
    CheckExpression,
    ConstraintParser,
    MultiColumnConstraint,
    ParsedConstraint,
    build_check_expressions,
    parse_multi_column_constraints,
)
from dbseed.generator.context import GenerationContext
from dbseed.generator.dependency_graph import (
    DependencyGraph,
    SortResult,
    TableDependency,
    requires_deferred,
)
from dbseed.generator.engine import DataGenerator, GenerationOptions, GenerationResult
from dbseed.generator.fk_resolver import ForeignKeyResolver
from dbseed.generator.row_generator import RowGenerator
from dbseed.generator.value_generator import ValueGenerator
