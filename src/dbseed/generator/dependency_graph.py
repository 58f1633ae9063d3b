"""Dependency graph builder — orders tables so parents are generated first.

Foreign keys form a directed graph (child -> parent). Cycles are collapsed
with Tarjan's strongly connected components algorithm, and the resulting
DAG of components is sorted topologically so every parent component precedes
its children. Ties are broken by the catalog order of the input tables, which
makes the result identical across runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

import networkx as nx

from dbseed.model.schema import Table

logger = logging.getLogger(__name__)


@dataclass
class TableDependency:
    """Represents a table and its FK dependencies in the generation graph."""

    table_name: str
    depends_on: list[str] = field(default_factory=list)
    referenced_by: list[str] = field(default_factory=list)
    generation_order: int = 0
    scc_id: int = 0
    is_cyclic: bool = False


@dataclass
class SortResult:
    """Generation order plus the FK cycles found in the schema."""

    ordered: list[str] = field(default_factory=list)
    cycles: list[list[str]] = field(default_factory=list)
    scc_ids: dict[str, int] = field(default_factory=dict)

    def is_cyclic(self, table_name: str) -> bool:
        return any(table_name in group for group in self.cycles)

    def cycle_of(self, table_name: str) -> Optional[list[str]]:
        for group in self.cycles:
            if table_name in group:
                return group
        return None

    def position(self, table_name: str) -> int:
        return self.ordered.index(table_name)


class DependencyGraph:
    """Builds the FK graph for a set of tables and computes a generation order."""

    def __init__(self, tables: Sequence[Table]):
        self.tables = list(tables)
        self.graph = nx.DiGraph()
        self.dependencies: dict[str, TableDependency] = {}
        self._catalog_index: dict[str, int] = {}
        self._build_graph()

    def _build_graph(self):
        by_lower = {}
        for i, table in enumerate(self.tables):
            self._catalog_index[table.name] = i
            by_lower[table.name.lower()] = table.name
            self.graph.add_node(table.name)
            self.dependencies[table.name] = TableDependency(table_name=table.name)

        for table in self.tables:
            for fk in table.foreign_keys:
                parent = by_lower.get(fk.referenced_table.lower())
                if parent is None:
                    logger.warning(
                        f"Table {table.name}: FK {fk.name} references unknown table "
                        f"{fk.referenced_table}; ignoring it for ordering"
                    )
                    continue
                self.graph.add_edge(table.name, parent)
                dep = self.dependencies[table.name]
                if parent not in dep.depends_on:
                    dep.depends_on.append(parent)
                parent_dep = self.dependencies[parent]
                if table.name not in parent_dep.referenced_by:
                    parent_dep.referenced_by.append(table.name)

    def sort(self) -> SortResult:
        """Return tables in dependency-safe generation order.

        Components of the condensation are emitted parents first; a component
        with several tables keeps its members in catalog order.
        """
        if not self.tables:
            return SortResult()

        components = [
            sorted(members, key=self._catalog_index.__getitem__)
            for members in nx.strongly_connected_components(self.graph)
        ]
        condensed = nx.condensation(self.graph, scc=components)

        def component_key(node: int) -> int:
            return self._catalog_index[components[node][0]]

        # condensed edges point child -> parent; reversing puts parents first
        component_order = list(
            nx.lexicographical_topological_sort(condensed.reverse(), key=component_key)
        )

        result = SortResult()
        for scc_id, node in enumerate(component_order):
            members = components[node]
            cyclic = len(members) > 1 or self.graph.has_edge(members[0], members[0])
            if cyclic:
                result.cycles.append(list(members))
            for name in members:
                result.scc_ids[name] = scc_id
                dep = self.dependencies[name]
                dep.scc_id = scc_id
                dep.is_cyclic = cyclic
                dep.generation_order = len(result.ordered)
                result.ordered.append(name)

        logger.info(f"Generation order: {result.ordered}")
        if result.cycles:
            logger.info(f"FK cycles detected: {result.cycles}")
        return result


def fk_is_nullable(table: Table, columns: Sequence[str]) -> bool:
    """True when every FK column exists and accepts NULL."""
    for name in columns:
        col = table.column(name)
        if col is None or not col.nullable:
            return False
    return True


def requires_deferred(sort_result: SortResult, tables: Sequence[Table]) -> bool:
    """True when the non-deferred policy cannot handle some cycle.

    That is the case when a non-nullable FK inside a cycle points at a parent
    that is not generated before the child (itself, or a later member).
    """
    by_name = {t.name: t for t in tables}
    by_lower = {t.name.lower(): t.name for t in tables}
    position = {name: i for i, name in enumerate(sort_result.ordered)}
    for group in sort_result.cycles:
        for name in group:
            table = by_name.get(name)
            if table is None:
                continue
            for fk in table.foreign_keys:
                parent = by_lower.get(fk.referenced_table.lower())
                if parent is None or parent not in group:
                    continue
                if position[parent] < position[name]:
                    continue
                if not fk_is_nullable(table, fk.columns):
                    return True
    return False
