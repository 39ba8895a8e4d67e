"""Impact propagation over the entity graph."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field

from impactgraph.graph.store import EntityGraph
from impactgraph.parser.models import Marker

logger = logging.getLogger("impactgraph.graph")


@dataclass
class ImpactReport:
    """Transitive impact of a change set.

    ``complexity`` and ``markers`` are snapshots taken while traversing, so
    they reflect the graph at analysis time, not at node creation.
    """

    changed_ids: list[str]
    impacted_ids: list[str]
    depth: int
    reach_by_source: dict[str, list[str]] = field(default_factory=dict)
    complexity: dict[str, int] = field(default_factory=dict)
    markers: dict[str, frozenset[Marker]] = field(default_factory=dict)
    comment_only_override: bool = False
    critical_method_override: bool = False

    @property
    def affected_ids(self) -> list[str]:
        """Impacted entities that were not themselves changed."""
        changed = set(self.changed_ids)
        return [i for i in self.impacted_ids if i not in changed]

    @property
    def affected_count(self) -> int:
        return len(self.impacted_ids) - len(self.changed_ids)


class ImpactPropagator:
    """Multi-source breadth-first traversal computing the blast radius.

    Each changed id is traversed independently so that per-source reach and
    depth are exact; the report carries their union and the maximum depth.
    """

    def __init__(self, graph: EntityGraph) -> None:
        self.graph = graph

    def reach(self, source: str) -> tuple[list[str], int]:
        """BFS from ``source``, one frontier at a time.

        Returns:
            (visited ids in BFS order, index of the deepest non-empty level).
            An unknown source gives ``([], 0)``; a source without neighbors
            gives ``([source], 0)``.
        """
        if source not in self.graph:
            return [], 0

        visited = {source}
        order = [source]
        frontier = deque([source])
        depth = 0
        while True:
            next_frontier: deque[str] = deque()
            while frontier:
                current = frontier.popleft()
                for neighbor in self.graph.neighbors(current):
                    if neighbor not in visited:
                        visited.add(neighbor)
                        order.append(neighbor)
                        next_frontier.append(neighbor)
            if not next_frontier:
                return order, depth
            depth += 1
            frontier = next_frontier

    def analyze(self, changed_ids: list[str]) -> ImpactReport:
        """Traverse from every changed id and snapshot complexity and markers."""
        changed = list(dict.fromkeys(changed_ids))
        reach_by_source: dict[str, list[str]] = {}
        complexity: dict[str, int] = {}
        markers: dict[str, frozenset[Marker]] = {}
        impacted: dict[str, None] = dict.fromkeys(changed)
        max_depth = 0

        for source in changed:
            order, depth = self.reach(source)
            if not order:
                logger.debug(f"Changed id {source} is not in the graph")
            reach_by_source[source] = order
            max_depth = max(max_depth, depth)
            for entity_id in order:
                impacted.setdefault(entity_id, None)
                if entity_id in complexity:
                    continue
                entity = self.graph.node(entity_id)
                complexity[entity_id] = entity.complexity if entity else 0
                markers[entity_id] = entity.markers if entity else frozenset()

        report = ImpactReport(
            changed_ids=changed,
            impacted_ids=list(impacted),
            depth=max_depth,
            reach_by_source=reach_by_source,
            complexity=complexity,
            markers=markers,
        )
        logger.info(
            f"Impact analysis: {len(changed)} changed, "
            f"{report.affected_count} affected, depth {max_depth}"
        )
        return report
