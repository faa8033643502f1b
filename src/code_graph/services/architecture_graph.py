"""NetworkX MultiDiGraph form of a resolved architecture graph."""
from __future__ import annotations

import json
from collections import Counter
from typing import Any, Iterator

import networkx as nx

from src.shared.models.common import GraphStats
from src.shared.models.graph import EdgeType, NodeType, ResolvedGraph, TopicNode

# Attributes the snapshot diff compares per node type. Source positions
# are stored but not compared: moving code is not an architectural change.
COMPARED_PROPERTIES: dict[str, tuple[str, ...]] = {
    NodeType.COMPONENT.value: ("name", "qualified_name", "package", "kind", "base_path", "table_id"),
    NodeType.METHOD.value: ("name", "class_name", "qualified_class", "signature", "kind"),
    NodeType.ENDPOINT.value: ("http_method", "path", "component_name", "handler_method_name"),
    NodeType.EXTERNAL_CALL.value: (
        "client_kind", "http_method", "url", "resolved", "target_endpoint_id",
        "target_component", "target_handler_method", "target_service",
    ),
    NodeType.TOPIC.value: ("name", "producers", "consumers"),
    NodeType.DATABASE_TABLE.value: ("name", "entity_class", "database_type", "operations"),
}


class ArchitectureGraph:
    """Wraps an ``nx.MultiDiGraph`` whose edge keys are relationship types.

    Node attributes always include ``node_type``. Between any two nodes
    there is at most one edge per relationship type, so ``(source, target,
    type)`` identifies a relationship.
    """

    def __init__(self, graph: nx.MultiDiGraph | None = None, namespace: str = "") -> None:
        self.graph: nx.MultiDiGraph = graph if graph is not None else nx.MultiDiGraph()
        self.namespace = namespace

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.graph

    def number_of_nodes(self) -> int:
        return self.graph.number_of_nodes()

    def number_of_edges(self) -> int:
        return self.graph.number_of_edges()

    def add_node(self, node_id: str, node_type: NodeType | str, **attrs: Any) -> None:
        node_type = node_type.value if isinstance(node_type, NodeType) else node_type
        self.graph.add_node(node_id, node_type=node_type, **attrs)

    def add_edge(self, u: str, v: str, edge_type: EdgeType | str, **attrs: Any) -> None:
        key = edge_type.value if isinstance(edge_type, EdgeType) else edge_type
        self.graph.add_edge(u, v, key=key, **attrs)

    def get_node(self, node_id: str) -> dict[str, Any] | None:
        if node_id in self.graph:
            return dict(self.graph.nodes[node_id])
        return None

    def nodes_of_type(self, node_type: NodeType | str) -> Iterator[tuple[str, dict[str, Any]]]:
        wanted = node_type.value if isinstance(node_type, NodeType) else node_type
        for node_id, data in self.graph.nodes(data=True):
            if data.get("node_type") == wanted:
                yield node_id, data

    def edges_of_type(self, edge_type: EdgeType | str) -> Iterator[tuple[str, str, dict[str, Any]]]:
        wanted = edge_type.value if isinstance(edge_type, EdgeType) else edge_type
        for u, v, key, data in self.graph.edges(keys=True, data=True):
            if key == wanted:
                yield u, v, data

    def compared_properties(self, node_id: str) -> dict[str, Any]:
        """The subset of *node_id*'s attributes that identifies a change."""
        data = self.graph.nodes[node_id]
        fields = COMPARED_PROPERTIES.get(data.get("node_type"), ())
        return {name: data.get(name) for name in fields}

    def relationships(self) -> dict[tuple[str, str, str], dict[str, Any]]:
        return {
            (u, v, key): dict(data)
            for u, v, key, data in self.graph.edges(keys=True, data=True)
        }

    def call_edges(self) -> list[tuple[str, str]]:
        return [(u, v) for u, v, _ in self.edges_of_type(EdgeType.CALLS)]

    def topics(self) -> list[TopicNode]:
        return [
            TopicNode(
                id=node_id,
                name=data["name"],
                scope_key=data.get("scope_key", ""),
                producers=list(data.get("producers", [])),
                consumers=list(data.get("consumers", [])),
                producer_details=list(data.get("producer_details", [])),
                consumer_details=list(data.get("consumer_details", [])),
            )
            for node_id, data in self.nodes_of_type(NodeType.TOPIC)
        ]

    def stats(self) -> GraphStats:
        node_types = Counter(d.get("node_type", "unknown") for _, d in self.graph.nodes(data=True))
        edge_types = Counter(key for _, _, key in self.graph.edges(keys=True))
        resolved = sum(1 for _, d in self.nodes_of_type(NodeType.EXTERNAL_CALL) if d.get("resolved"))
        return GraphStats(
            namespace=self.namespace,
            node_count=self.number_of_nodes(),
            edge_count=self.number_of_edges(),
            nodes_by_type=dict(sorted(node_types.items())),
            edges_by_type=dict(sorted(edge_types.items())),
            resolved_external_calls=resolved,
            unresolved_external_calls=node_types.get(NodeType.EXTERNAL_CALL.value, 0) - resolved,
            skipped_invocations=self.graph.graph.get("skipped_invocations", 0),
        )

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    @classmethod
    def from_resolved(cls, resolved: ResolvedGraph, namespace: str = "") -> "ArchitectureGraph":
        """Export a resolved graph; nodes and edges are added in id order."""
        arch = cls(namespace=namespace)
        arch.graph.graph["project_id"] = resolved.project_id
        arch.graph.graph["skipped_invocations"] = len(resolved.skipped)

        for comp_id in sorted(resolved.components):
            comp = resolved.components[comp_id]
            arch.add_node(comp_id, NodeType.COMPONENT, **comp.model_dump(exclude={"id"}, mode="json"))
        for table_id in sorted(resolved.tables):
            table = resolved.tables[table_id]
            arch.add_node(table_id, NodeType.DATABASE_TABLE, **table.model_dump(exclude={"id"}))
        for method_id in sorted(resolved.methods):
            method = resolved.methods[method_id]
            arch.add_node(
                method_id,
                NodeType.METHOD,
                name=method.method_name,
                class_name=method.class_name,
                qualified_class=method.qualified_class,
                signature=method.signature,
                kind=method.kind.value,
                line_start=method.line_start,
                line_end=method.line_end,
            )
        for endpoint_id in sorted(resolved.endpoints):
            endpoint = resolved.endpoints[endpoint_id]
            arch.add_node(endpoint_id, NodeType.ENDPOINT, **endpoint.model_dump(exclude={"id", "handler_method_id"}))
        for call_id in sorted(resolved.external_calls):
            call = resolved.external_calls[call_id]
            arch.add_node(call_id, NodeType.EXTERNAL_CALL, **call.model_dump(exclude={"id", "source_method_id"}))
        for topic_id in sorted(resolved.topics):
            topic = resolved.topics[topic_id]
            arch.add_node(topic_id, NodeType.TOPIC, **topic.model_dump(exclude={"id"}))

        for comp_id in sorted(resolved.components):
            table_id = resolved.components[comp_id].table_id
            if table_id:
                arch.add_edge(comp_id, table_id, EdgeType.ACCESSES)
        for method_id in sorted(resolved.methods):
            method = resolved.methods[method_id]
            arch.add_edge(method.component_id, method_id, EdgeType.HAS_METHOD)
            for target in method.calls:
                arch.add_edge(method_id, target, EdgeType.CALLS)
            for call_id in method.external_call_ids:
                arch.add_edge(method_id, call_id, EdgeType.EXTERNAL_CALL)
            for topic_id in method.produces_to:
                arch.add_edge(method_id, topic_id, EdgeType.PRODUCES_TO)
            for topic_id in method.consumes_from:
                arch.add_edge(method_id, topic_id, EdgeType.CONSUMES_FROM)
        for endpoint_id in sorted(resolved.endpoints):
            handler = resolved.endpoints[endpoint_id].handler_method_id
            if handler:
                arch.add_edge(endpoint_id, handler, EdgeType.HANDLED_BY)
        for call_id in sorted(resolved.external_calls):
            call = resolved.external_calls[call_id]
            if call.resolved and call.target_endpoint_id:
                arch.add_edge(call_id, call.target_endpoint_id, EdgeType.RESOLVES_TO, score=call.match_score)
        return arch

    def to_dict(self) -> dict[str, Any]:
        return nx.node_link_data(self.graph, edges="edges")

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict[str, Any], namespace: str = "") -> "ArchitectureGraph":
        graph = nx.node_link_graph(data, directed=True, multigraph=True, edges="edges")
        return cls(graph=graph, namespace=namespace)

    @classmethod
    def from_json(cls, payload: str, namespace: str = "") -> "ArchitectureGraph":
        return cls.from_dict(json.loads(payload), namespace=namespace)
