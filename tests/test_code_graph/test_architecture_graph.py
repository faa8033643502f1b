"""Tests for the NetworkX export of resolved graphs."""
from __future__ import annotations

import pytest

from src.code_graph.services.analysis_pipeline import AnalysisPipeline
from src.code_graph.services.architecture_graph import ArchitectureGraph
from src.shared.models.facts import FactSet
from src.shared.models.graph import EdgeType, NodeType


@pytest.fixture()
def graph(shop_facts: FactSet) -> ArchitectureGraph:
    return AnalysisPipeline().analyze(shop_facts, namespace="shop::baseline")


class TestFromResolved:
    def test_node_and_edge_counts(self, graph: ArchitectureGraph):
        stats = graph.stats()
        assert stats.namespace == "shop::baseline"
        assert stats.nodes_by_type == {
            "component": 7, "database_table": 1, "endpoint": 3,
            "external_call": 1, "method": 10, "topic": 3,
        }
        assert stats.node_count == 25
        assert stats.edges_by_type == {
            "ACCESSES": 1, "CALLS": 4, "CONSUMES_FROM": 2, "EXTERNAL_CALL": 1,
            "HANDLED_BY": 3, "HAS_METHOD": 10, "PRODUCES_TO": 2, "RESOLVES_TO": 1,
        }
        assert stats.edge_count == 24

    def test_external_call_and_skip_counts(self, graph: ArchitectureGraph):
        stats = graph.stats()
        assert stats.resolved_external_calls == 1
        assert stats.unresolved_external_calls == 0
        assert stats.skipped_invocations == 1

    def test_node_attributes(self, graph: ArchitectureGraph):
        method = graph.get_node("method:com.shop.order.OrderService.placeOrder(OrderRequest)")
        assert method["node_type"] == NodeType.METHOD.value
        assert method["class_name"] == "OrderService"
        assert method["kind"] == "service_method"
        component = graph.get_node("component:com.shop.order.OrderRepository")
        assert component["kind"] == "data_accessor"
        assert component["table_id"] == "table:orders"
        assert graph.get_node("missing") is None

    def test_edges_are_keyed_by_type(self, graph: ArchitectureGraph):
        relationships = graph.relationships()
        key = (
            "method:com.shop.order.OrderController.create(OrderRequest)",
            "method:com.shop.order.OrderService.placeOrder(OrderRequest)",
            EdgeType.CALLS.value,
        )
        assert key in relationships
        resolves = list(graph.edges_of_type(EdgeType.RESOLVES_TO))
        assert resolves[0][1] == "endpoint:GET:/api/inventory/{*}"
        assert resolves[0][2] == {"score": 10}

    def test_topics_view(self, graph: ArchitectureGraph):
        topics = {t.name: t for t in graph.topics()}
        assert topics["audit-log"].lacks_consumers
        assert topics["payment-events"].lacks_producers
        assert topics["order-events"].consumer_details == [
            "OrderEventsListener.onOrderEvent (line 12) [group: billing]",
        ]


class TestSerialization:
    def test_json_round_trip(self, graph: ArchitectureGraph):
        restored = ArchitectureGraph.from_json(graph.to_json(), namespace="copy")
        assert restored.namespace == "copy"
        assert restored.to_dict() == graph.to_dict()
        assert restored.stats().edges_by_type == graph.stats().edges_by_type

    def test_round_trip_keeps_graph_attributes(self, graph: ArchitectureGraph):
        restored = ArchitectureGraph.from_dict(graph.to_dict())
        assert restored.graph.graph["project_id"] == "shop"
        assert restored.graph.is_multigraph() and restored.graph.is_directed()

    def test_empty_graph(self):
        empty = ArchitectureGraph(namespace="e")
        assert empty.stats().node_count == 0
        assert ArchitectureGraph.from_json(empty.to_json()).number_of_nodes() == 0
