"""In-memory entity graph: a pure adjacency store of classes and methods.

Nodes are keyed by a stable string id (``pkg.Class`` or ``pkg.Class.method``)
and carry a ``CodeEntity`` payload. Edges are directed, unlabeled and
deduplicated. The store holds no traversal logic; see ``graph.query``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import networkx as nx

from impactgraph.parser.models import EntityKind, Marker

logger = logging.getLogger("impactgraph.graph")


@dataclass(frozen=True)
class CodeEntity:
    """A graph node. Identity is ``id`` alone."""

    id: str
    kind: EntityKind
    display_name: str
    markers: frozenset[Marker] = field(default_factory=frozenset)
    outbound_call_names: tuple[str, ...] = ()
    file_path: str = ""

    @property
    def complexity(self) -> int:
        return len(self.outbound_call_names)

    @property
    def is_critical(self) -> bool:
        return any(m.is_critical for m in self.markers)


class EntityGraph:
    """Directed graph of code entities backed by a ``networkx.DiGraph``.

    Every operation degrades instead of raising: unknown ids give empty
    results, and edges to or from unknown ids are dropped.
    """

    def __init__(self) -> None:
        self._graph = nx.DiGraph()

    def upsert_node(self, entity: CodeEntity) -> bool:
        """Insert or replace an entity by id.

        Replacing discards the node's outbound edges (the builder re-derives
        them from the new content); inbound edges are kept.

        Returns:
            True if an entity with this id already existed.
        """
        existed = self._graph.has_node(entity.id)
        if existed:
            self._graph.remove_edges_from(list(self._graph.out_edges(entity.id)))
        self._graph.add_node(entity.id, entity=entity)
        logger.debug(f"{'Replaced' if existed else 'Added'} node {entity.id}")
        return existed

    def add_edge(self, from_id: str, to_id: str) -> bool:
        """Add a directed edge. Returns False if either endpoint is missing."""
        if not self._graph.has_node(from_id):
            logger.warning(f"Dropping edge {from_id} -> {to_id}: source not in graph")
            return False
        if not self._graph.has_node(to_id):
            logger.warning(f"Dropping edge {from_id} -> {to_id}: target not in graph")
            return False
        self._graph.add_edge(from_id, to_id)
        return True

    def neighbors(self, entity_id: str) -> list[str]:
        if not self._graph.has_node(entity_id):
            return []
        return list(self._graph.successors(entity_id))

    def node(self, entity_id: str) -> CodeEntity | None:
        data = self._graph.nodes.get(entity_id)
        return data.get("entity") if data else None

    def size(self) -> int:
        return self._graph.number_of_nodes()

    def edge_count(self) -> int:
        return self._graph.number_of_edges()

    def has_edge(self, from_id: str, to_id: str) -> bool:
        return self._graph.has_edge(from_id, to_id)

    def entity_ids(self) -> list[str]:
        return list(self._graph.nodes)

    def entities(self) -> list[CodeEntity]:
        return [data["entity"] for _, data in self._graph.nodes(data=True)]

    def ids_for_file(self, file_path: str) -> list[str]:
        """Ids of entities whose source is ``file_path``."""
        return [e.id for e in self.entities() if e.file_path == file_path]

    def clear(self) -> None:
        self._graph.clear()
        logger.info("Graph cleared")

    def get_stats(self) -> dict:
        """Get graph statistics."""
        node_types: dict[str, int] = {}
        critical = 0
        for entity in self.entities():
            node_types[entity.kind.value] = node_types.get(entity.kind.value, 0) + 1
            if entity.is_critical:
                critical += 1

        return {
            "total_nodes": self.size(),
            "total_edges": self.edge_count(),
            "node_types": node_types,
            "classes": node_types.get(EntityKind.CLASS.value, 0),
            "methods": node_types.get(EntityKind.METHOD.value, 0),
            "critical_entities": critical,
        }

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, entity_id: object) -> bool:
        return isinstance(entity_id, str) and self._graph.has_node(entity_id)

    def __repr__(self) -> str:
        return f"EntityGraph(nodes={self.size()}, edges={self.edge_count()})"
