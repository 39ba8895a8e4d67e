"""Entity graph: storage, construction and impact propagation."""

from impactgraph.graph.builder import GraphBuilder
from impactgraph.graph.query import ImpactPropagator, ImpactReport
from impactgraph.graph.registry import GraphRegistry
from impactgraph.graph.store import CodeEntity, EntityGraph

__all__ = [
    "CodeEntity",
    "EntityGraph",
    "GraphBuilder",
    "GraphRegistry",
    "ImpactPropagator",
    "ImpactReport",
]
