"""Structured change set between a baseline and a candidate graph."""
from __future__ import annotations

import logging
from collections import Counter
from typing import Any

from src.code_graph.services.architecture_graph import ArchitectureGraph
from src.code_graph.services.canonical_ids import relationship_id
from src.code_graph.services.cycle_detector import CircularDependencyDetector
from src.shared.models.analysis import (
    ChangeType,
    Cycle,
    DiffSummary,
    GraphDiff,
    NodeChange,
    PropertyDiff,
    RelationshipChange,
    Severity,
)

logger = logging.getLogger(__name__)


def compare_properties(old: dict[str, Any], new: dict[str, Any]) -> list[PropertyDiff]:
    """Per-field inequality, in sorted field order."""
    diffs = []
    for name in sorted(set(old) | set(new)):
        old_value, new_value = old.get(name), new.get(name)
        if old_value != new_value:
            diffs.append(PropertyDiff(name=name, old_value=old_value, new_value=new_value))
    return diffs


class GraphDiffer:
    """Compares two graphs without modifying either."""

    def __init__(self, detector: CircularDependencyDetector | None = None) -> None:
        self._detector = detector or CircularDependencyDetector()

    def diff(self, baseline: ArchitectureGraph, candidate: ArchitectureGraph) -> GraphDiff:
        result = GraphDiff(baseline=baseline.namespace, candidate=candidate.namespace)
        self._diff_nodes(baseline, candidate, result)
        self._diff_relationships(baseline, candidate, result)
        result.cycles = self._detector.detect_and_compare(baseline, candidate)
        result.summary = self.summarize(result)
        logger.info(
            "Diff %s -> %s: nodes +%d ~%d -%d, relationships +%d ~%d -%d, new cycles %d",
            result.baseline, result.candidate,
            result.summary.nodes_added, result.summary.nodes_modified,
            result.summary.nodes_removed, result.summary.relationships_added,
            result.summary.relationships_modified, result.summary.relationships_removed,
            result.summary.new_cycles,
        )
        return result

    def _diff_nodes(
        self, baseline: ArchitectureGraph, candidate: ArchitectureGraph, result: GraphDiff
    ) -> None:
        old_ids = set(baseline.graph.nodes)
        new_ids = set(candidate.graph.nodes)

        for node_id in sorted(new_ids - old_ids):
            result.added_nodes.append(self._node_change(candidate, node_id, ChangeType.ADDED))
        for node_id in sorted(old_ids - new_ids):
            result.removed_nodes.append(self._node_change(baseline, node_id, ChangeType.REMOVED))
        for node_id in sorted(old_ids & new_ids):
            old_type = baseline.graph.nodes[node_id].get("node_type")
            new_type = candidate.graph.nodes[node_id].get("node_type")
            diffs = compare_properties(
                baseline.compared_properties(node_id),
                candidate.compared_properties(node_id),
            )
            if old_type != new_type:
                diffs.insert(0, PropertyDiff(name="node_type", old_value=old_type, new_value=new_type))
            if diffs:
                change = self._node_change(candidate, node_id, ChangeType.MODIFIED)
                change.property_diffs = diffs
                result.modified_nodes.append(change)

    @staticmethod
    def _node_change(graph: ArchitectureGraph, node_id: str, change_type: ChangeType) -> NodeChange:
        data = graph.graph.nodes[node_id]
        return NodeChange(
            node_id=node_id,
            node_type=data.get("node_type", "unknown"),
            name=data.get("name") or data.get("path") or data.get("url"),
            change_type=change_type,
        )

    def _diff_relationships(
        self, baseline: ArchitectureGraph, candidate: ArchitectureGraph, result: GraphDiff
    ) -> None:
        old = baseline.relationships()
        new = candidate.relationships()

        def change(triple: tuple[str, str, str], change_type: ChangeType) -> RelationshipChange:
            source, target, rel_type = triple
            return RelationshipChange(
                relationship_id=relationship_id(rel_type, source, target),
                source_id=source, target_id=target,
                relationship_type=rel_type, change_type=change_type,
            )

        for triple in sorted(new.keys() - old.keys()):
            result.added_relationships.append(change(triple, ChangeType.ADDED))
        for triple in sorted(old.keys() - new.keys()):
            result.removed_relationships.append(change(triple, ChangeType.REMOVED))
        for triple in sorted(old.keys() & new.keys()):
            diffs = compare_properties(old[triple], new[triple])
            if diffs:
                modified = change(triple, ChangeType.MODIFIED)
                modified.property_diffs = diffs
                result.modified_relationships.append(modified)

    @staticmethod
    def summarize(result: GraphDiff) -> DiffSummary:
        new_cycles: list[Cycle] = result.new_cycles
        return DiffSummary(
            nodes_added=len(result.added_nodes),
            nodes_modified=len(result.modified_nodes),
            nodes_removed=len(result.removed_nodes),
            relationships_added=len(result.added_relationships),
            relationships_modified=len(result.modified_relationships),
            relationships_removed=len(result.removed_relationships),
            total_cycles=len(result.cycles),
            new_cycles=len(new_cycles),
            new_error_cycles=sum(1 for c in new_cycles if c.severity == Severity.ERROR),
            added_by_type=dict(Counter(c.node_type for c in result.added_nodes)),
            modified_by_type=dict(Counter(c.node_type for c in result.modified_nodes)),
            removed_by_type=dict(Counter(c.node_type for c in result.removed_nodes)),
        )
