"""Build an entity graph from structural descriptors."""

from __future__ import annotations

import logging

from impactgraph.graph.store import CodeEntity, EntityGraph
from impactgraph.parser.models import EntityDescriptor, EntityKind

logger = logging.getLogger("impactgraph.graph")


class GraphBuilder:
    """Builds and maintains an entity graph.

    The graph has two kinds of nodes:
    - Class nodes: one per descriptor (class, interface, or module container)
    - Method nodes: one per method, id ``<class id>.<method name>``

    Edges point from an entity to what it depends on: supertypes, injected
    dependency types, the owning class (for methods) and call targets.

    Construction is best effort. References that cannot be resolved against
    the current graph are dropped and counted, never raised, because an
    incremental pass only sees the descriptors of the changed files.
    """

    def __init__(self, graph: EntityGraph | None = None) -> None:
        self.graph = graph if graph is not None else EntityGraph()
        self.last_build_stats: dict = {}
        self._suffix_index: dict[str, list[str]] = {}

    def build(self, descriptors: list[EntityDescriptor], *, full: bool) -> EntityGraph:
        """Build (``full=True``) or merge (``full=False``) descriptors into the graph.

        A full build discards the whole graph first. An incremental build
        replaces only the given entities and re-derives their edges, leaving
        unrelated nodes and edges in place.
        """
        if full:
            self.graph.clear()

        self.last_build_stats = {
            "mode": "full" if full else "incremental",
            "descriptors": len(descriptors),
            "nodes_added": 0,
            "nodes_replaced": 0,
            "edges_added": 0,
            "unresolved_refs": 0,
        }

        self._add_nodes(descriptors)
        self._rebuild_suffix_index()
        self._add_structural_edges(descriptors)
        self._add_call_edges(descriptors)

        logger.info(
            f"Graph {self.last_build_stats['mode']} build: "
            f"{len(descriptors)} descriptors, {self.graph.size()} nodes, "
            f"{self.graph.edge_count()} edges, "
            f"{self.last_build_stats['unresolved_refs']} unresolved refs"
        )
        return self.graph

    # ------------------------------------------------------------------
    # Pass 1: nodes
    # ------------------------------------------------------------------

    def _add_nodes(self, descriptors: list[EntityDescriptor]) -> None:
        for desc in descriptors:
            self._upsert(
                CodeEntity(
                    id=desc.name,
                    kind=EntityKind.CLASS,
                    display_name=desc.simple_name,
                    markers=frozenset(desc.markers),
                    file_path=desc.file_path,
                )
            )
            for method in desc.methods:
                self._upsert(
                    CodeEntity(
                        id=f"{desc.name}.{method.name}",
                        kind=EntityKind.METHOD,
                        display_name=method.name,
                        markers=frozenset(method.markers),
                        outbound_call_names=tuple(method.called_names),
                        file_path=desc.file_path,
                    )
                )

    def _upsert(self, entity: CodeEntity) -> None:
        if self.graph.upsert_node(entity):
            self.last_build_stats["nodes_replaced"] += 1
        else:
            self.last_build_stats["nodes_added"] += 1

    # ------------------------------------------------------------------
    # Pass 2: structural edges
    # ------------------------------------------------------------------

    def _add_structural_edges(self, descriptors: list[EntityDescriptor]) -> None:
        for desc in descriptors:
            for type_name in desc.supertypes + desc.injected_dependency_types:
                target = self.resolve_type(type_name)
                if target is None:
                    self.last_build_stats["unresolved_refs"] += 1
                    continue
                self._edge(desc.name, target)

            for method in desc.methods:
                self._edge(f"{desc.name}.{method.name}", desc.name)

    def resolve_type(self, type_name: str) -> str | None:
        """Resolve a type reference to a class node id.

        Exact id first; otherwise match the unqualified name against the last
        segment of known class ids. The loose match tolerates partially
        resolved imports and picks the first candidate in id order.
        """
        if not type_name:
            return None
        entity = self.graph.node(type_name)
        if entity is not None and entity.kind is EntityKind.CLASS:
            return type_name
        simple = type_name.rsplit(".", 1)[-1]
        candidates = self._suffix_index.get(simple)
        return candidates[0] if candidates else None

    def _rebuild_suffix_index(self) -> None:
        index: dict[str, list[str]] = {}
        for entity in self.graph.entities():
            if entity.kind is EntityKind.CLASS:
                index.setdefault(entity.display_name, []).append(entity.id)
        for ids in index.values():
            ids.sort()
        self._suffix_index = index

    # ------------------------------------------------------------------
    # Pass 3: call edges
    # ------------------------------------------------------------------

    def _add_call_edges(self, descriptors: list[EntityDescriptor]) -> None:
        for desc in descriptors:
            for method in desc.methods:
                method_id = f"{desc.name}.{method.name}"
                for called in method.called_names:
                    if called in self.graph:
                        self._edge(method_id, called)
                    else:
                        self.last_build_stats["unresolved_refs"] += 1

    def _edge(self, from_id: str, to_id: str) -> None:
        if self.graph.add_edge(from_id, to_id):
            self.last_build_stats["edges_added"] += 1
        else:
            self.last_build_stats["unresolved_refs"] += 1

    def get_stats(self) -> dict:
        """Graph statistics merged with the counters of the last build."""
        return {**self.graph.get_stats(), **self.last_build_stats}
