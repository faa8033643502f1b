"""Aggregation of message-topic producers and consumers."""
from __future__ import annotations

import logging
from typing import Iterable

from src.code_graph.services import canonical_ids
from src.code_graph.services.call_graph_builder import canonical_order
from src.shared.models.analysis import TopicReport
from src.shared.models.facts import Component, FactSet, Method, TopicCallFact, TopicDirection
from src.shared.models.graph import ResolvedGraph, TopicNode

logger = logging.getLogger(__name__)


def producer_detail(component: str, method: str, line: int | None) -> str:
    if line is None:
        return f"{component}.{method}"
    return f"{component}.{method} (line {line})"


def consumer_detail(component: str, method: str, line: int | None, group: str | None) -> str:
    detail = producer_detail(component, method, line)
    if group:
        detail += f" [group: {group}]"
    return detail


def orphan_producers(topics: Iterable[TopicNode]) -> list[TopicNode]:
    """Topics with consumers but no producer: the producing side is orphaned."""
    return sorted((t for t in topics if t.lacks_producers), key=lambda t: t.name)


def orphan_consumers(topics: Iterable[TopicNode]) -> list[TopicNode]:
    """Topics with producers but no consumer: the consuming side is orphaned."""
    return sorted((t for t in topics if t.lacks_consumers), key=lambda t: t.name)


def build_topic_report(topics: Iterable[TopicNode]) -> TopicReport:
    topics = sorted(topics, key=lambda t: t.name)
    return TopicReport(
        topics=[t.model_dump() for t in topics],
        orphan_producers=[t.model_dump() for t in orphan_producers(topics)],
        orphan_consumers=[t.model_dump() for t in orphan_consumers(topics)],
    )


class TopicLinker:
    """Links methods of a resolved graph to the topics they produce or consume.

    A topic node is created the first time any method references it and
    then only extended, so producers and consumers from every component
    of the project end up on the same node.
    """

    def __init__(self, graph: ResolvedGraph) -> None:
        self._graph = graph

    def link(self, fact_set: FactSet) -> int:
        """Attach every topic call in *fact_set*; returns the number linked."""
        linked = 0
        for component in canonical_order(fact_set.components):
            for method in component.methods:
                node_id = canonical_ids.method_id(
                    component.qualified_name, method.name,
                    method.parameter_types, method.signature,
                )
                node = self._graph.methods.get(node_id)
                if node is None:
                    continue
                for call in method.topic_calls:
                    self._link_call(component, method, node_id, call)
                    linked += 1

        orphans = len(self.orphan_producers()) + len(self.orphan_consumers())
        logger.info(
            "Linked %d topic calls across %d topics for project %s (%d orphaned)",
            linked, len(self._graph.topics), self._graph.project_id, orphans,
        )
        return linked

    def _link_call(
        self, component: Component, method: Method, node_id: str, call: TopicCallFact
    ) -> None:
        topic = self.topic(call.topic)
        node = self._graph.methods[node_id]
        if call.direction == TopicDirection.PRODUCE:
            node.link("produces_to", topic.id)
            _append_unique(topic.producers, component.name)
            _append_unique(
                topic.producer_details,
                producer_detail(component.name, method.name, call.line),
            )
        else:
            node.link("consumes_from", topic.id)
            _append_unique(topic.consumers, component.name)
            _append_unique(
                topic.consumer_details,
                consumer_detail(component.name, method.name, call.line, call.consumer_group),
            )

    def topic(self, name: str) -> TopicNode:
        """Return the topic called *name*, creating it on first reference."""
        topic_id = canonical_ids.topic_id(name)
        topic = self._graph.topics.get(topic_id)
        if topic is None:
            topic = TopicNode(id=topic_id, name=name, scope_key=self._graph.project_id)
            self._graph.topics[topic_id] = topic
        return topic

    def orphan_producers(self) -> list[TopicNode]:
        return orphan_producers(self._graph.topics.values())

    def orphan_consumers(self) -> list[TopicNode]:
        return orphan_consumers(self._graph.topics.values())

    def report(self) -> TopicReport:
        return build_topic_report(self._graph.topics.values())


def _append_unique(values: list[str], value: str) -> None:
    if value not in values:
        values.append(value)
