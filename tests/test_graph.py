"""Tests for the entity graph: store, builder and registry."""

from __future__ import annotations

import threading
from pathlib import Path

from impactgraph.graph.builder import GraphBuilder
from impactgraph.graph.registry import GraphRegistry
from impactgraph.graph.store import CodeEntity, EntityGraph
from impactgraph.parser.core import parse_directory
from impactgraph.parser.models import EntityDescriptor, EntityKind, Marker, MethodDescriptor


def _entity(entity_id: str, calls: tuple[str, ...] = (), **kwargs) -> CodeEntity:
    return CodeEntity(
        id=entity_id,
        kind=kwargs.pop("kind", EntityKind.METHOD),
        display_name=entity_id.rsplit(".", 1)[-1],
        outbound_call_names=calls,
        **kwargs,
    )


class TestEntityGraph:
    def test_unknown_ids_degrade(self):
        graph = EntityGraph()
        graph.upsert_node(_entity("a"))

        assert graph.neighbors("missing") == []
        assert graph.node("missing") is None
        assert graph.add_edge("missing", "a") is False
        assert graph.add_edge("a", "missing") is False
        assert graph.edge_count() == 0
        assert "missing" not in graph

    def test_upsert_is_idempotent(self):
        graph = EntityGraph()
        entity = _entity("a", ("x", "y"))
        assert graph.upsert_node(entity) is False
        assert graph.upsert_node(entity) is True

        assert graph.size() == 1
        assert len(graph) == 1
        assert graph.node("a") == entity

    def test_upsert_replaces_content(self):
        graph = EntityGraph()
        graph.upsert_node(_entity("a", ("x",)))
        graph.upsert_node(_entity("a", ("x", "y", "z")))

        assert graph.size() == 1
        assert graph.node("a").complexity == 3

    def test_upsert_drops_outbound_keeps_inbound(self):
        graph = EntityGraph()
        for entity_id in ("a", "b", "c"):
            graph.upsert_node(_entity(entity_id))
        graph.add_edge("a", "b")
        graph.add_edge("b", "c")

        graph.upsert_node(_entity("b"))

        assert graph.has_edge("a", "b")
        assert not graph.has_edge("b", "c")

    def test_edges_are_a_set(self):
        graph = EntityGraph()
        graph.upsert_node(_entity("a"))
        graph.upsert_node(_entity("b"))

        assert graph.add_edge("a", "b") is True
        assert graph.add_edge("a", "b") is True
        assert graph.edge_count() == 1
        assert graph.neighbors("a") == ["b"]

    def test_ids_for_file_and_clear(self):
        graph = EntityGraph()
        graph.upsert_node(_entity("a", file_path="one.py"))
        graph.upsert_node(_entity("b", file_path="two.py"))

        assert graph.ids_for_file("one.py") == ["a"]

        graph.clear()
        assert graph.size() == 0
        assert graph.entity_ids() == []

    def test_stats(self):
        graph = EntityGraph()
        graph.upsert_node(_entity("pkg.C", kind=EntityKind.CLASS))
        graph.upsert_node(_entity("pkg.C.m", markers=frozenset({Marker.SCHEDULED})))
        graph.add_edge("pkg.C.m", "pkg.C")

        stats = graph.get_stats()
        assert stats["classes"] == 1
        assert stats["methods"] == 1
        assert stats["total_edges"] == 1
        assert stats["critical_entities"] == 1


class TestGraphBuilder:
    def test_nodes_and_markers(self, service_descriptors):
        builder = GraphBuilder()
        graph = builder.build(service_descriptors, full=True)

        assert graph.size() == 7
        place = graph.node("app.OrderService.place")
        assert place.kind is EntityKind.METHOD
        assert place.markers == frozenset({Marker.TRANSACTIONAL})
        assert place.complexity == 2
        assert graph.node("app.OrderService").kind is EntityKind.CLASS

    def test_structural_edges(self, service_descriptors):
        graph = GraphBuilder().build(service_descriptors, full=True)

        # method -> owner
        assert graph.has_edge("app.OrderService.place", "app.OrderService")
        # injected type by exact id
        assert graph.has_edge("app.OrderController", "app.OrderService")
        # injected type by unqualified suffix
        assert graph.has_edge("app.OrderService", "app.OrderRepository")

    def test_call_edges_exact_only(self, service_descriptors):
        builder = GraphBuilder()
        graph = builder.build(service_descriptors, full=True)

        assert graph.has_edge("app.OrderService.place", "app.OrderService.validate")
        assert graph.has_edge("app.OrderService.place", "app.OrderRepository.save")
        assert graph.has_edge("app.OrderController.create", "app.OrderService.place")
        # java.util.Objects.requireNonNull is unknown
        assert builder.last_build_stats["unresolved_refs"] == 1

    def test_supertype_edges(self):
        descriptors = [
            EntityDescriptor(name="pkg.Base", kind="interface"),
            EntityDescriptor(name="pkg.Impl", supertypes=["pkg.Base", "other.Missing"]),
        ]
        builder = GraphBuilder()
        graph = builder.build(descriptors, full=True)

        assert graph.has_edge("pkg.Impl", "pkg.Base")
        assert builder.last_build_stats["unresolved_refs"] == 1

    def test_full_build_clears(self, service_descriptors, make_chain):
        builder = GraphBuilder()
        builder.build(service_descriptors, full=True)
        graph = builder.build(make_chain(2), full=True)

        assert "app.OrderService" not in graph
        assert graph.entity_ids() == ["chain.Chain", "chain.Chain.m0", "chain.Chain.m1"]

    def test_incremental_replaces_only_given(self, service_descriptors):
        builder = GraphBuilder()
        graph = builder.build(service_descriptors, full=True)
        edges_before = graph.edge_count()

        changed = EntityDescriptor(
            name="app.OrderService",
            file_path="app/OrderService.java",
            injected_dependency_types=["OrderRepository"],
            methods=[
                MethodDescriptor(
                    name="place",
                    class_name="app.OrderService",
                    called_names=["app.OrderRepository.save"],
                    start_line=5,
                    end_line=12,
                ),
            ],
        )
        builder.build([changed], full=False)

        assert builder.last_build_stats["mode"] == "incremental"
        assert builder.last_build_stats["nodes_replaced"] == 2
        # caller edge into the replaced method survives
        assert graph.has_edge("app.OrderController.create", "app.OrderService.place")
        assert not graph.has_edge("app.OrderService.place", "app.OrderService.validate")
        assert graph.node("app.OrderService.place").markers == frozenset()
        # stale method from the old version of the file is kept
        assert "app.OrderService.validate" in graph
        assert graph.edge_count() == edges_before - 1

    def test_incremental_links_to_existing_nodes(self, service_descriptors):
        builder = GraphBuilder()
        graph = builder.build(service_descriptors[:2], full=True)
        builder.build(service_descriptors[2:], full=False)

        assert graph.has_edge("app.OrderController.create", "app.OrderService.place")
        assert graph.has_edge("app.OrderController", "app.OrderService")

    def test_build_from_parsed_project(self, tmp_project: Path):
        builder = GraphBuilder()
        graph = builder.build(parse_directory(tmp_project), full=True)

        assert graph.has_edge("shop.api.OrderController.create", "shop.service.OrderService.place")
        assert graph.has_edge("shop.service.OrderService.place", "shop.repository.OrderRepository.save")
        assert graph.has_edge("shop.service.OrderService", "shop.repository.OrderRepository")
        assert graph.node("shop.service.OrderService.place").is_critical

        stats = builder.get_stats()
        assert stats["classes"] > 0
        assert stats["methods"] > 0
        assert stats["mode"] == "full"


class TestGraphRegistry:
    def test_one_graph_per_repo(self):
        registry = GraphRegistry()
        with registry.locked("a/one") as first:
            first.upsert_node(_entity("x"))
        with registry.locked("a/two") as second:
            assert second.size() == 0
        with registry.locked("a/one") as again:
            assert again is first

        assert registry.repositories() == ["a/one", "a/two"]
        assert registry.peek("a/three") is None

    def test_lock_excludes_same_repo(self):
        registry = GraphRegistry()
        inside = threading.Event()
        release = threading.Event()
        order: list[str] = []

        def holder():
            with registry.locked("a/one"):
                inside.set()
                release.wait(timeout=5)
                order.append("holder")

        def waiter():
            with registry.locked("a/one"):
                order.append("waiter")

        t1 = threading.Thread(target=holder)
        t1.start()
        inside.wait(timeout=5)
        t2 = threading.Thread(target=waiter)
        t2.start()
        t2.join(timeout=0.2)
        assert order == []
        release.set()
        t1.join(timeout=5)
        t2.join(timeout=5)

        assert order == ["holder", "waiter"]
