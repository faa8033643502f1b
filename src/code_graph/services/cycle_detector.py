"""Circular dependency detection at component and method granularity."""
from __future__ import annotations

import logging
from typing import Iterable, Mapping

from src.code_graph.services.architecture_graph import ArchitectureGraph
from src.shared.constants import CYCLE_WALK_LIMIT
from src.shared.models.analysis import Cycle, CycleEdge, CycleKind, Severity

logger = logging.getLogger(__name__)

Adjacency = Mapping[str, Iterable[str]]


def canonical_signature(cycle: list[str]) -> str:
    """Rotation-independent key: drop the closing node, start at the smallest."""
    nodes = list(cycle)
    if len(nodes) > 1 and nodes[0] == nodes[-1]:
        nodes = nodes[:-1]
    if not nodes:
        return ""
    pivot = nodes.index(min(nodes))
    return " -> ".join(nodes[pivot:] + nodes[:pivot])


def _reconstruct(
    current: str, target: str, parent: dict[str, str], limit: int
) -> list[str] | None:
    """Walk parent pointers from *current* back to *target*.

    Returns the closed cycle, or ``None`` when the chain breaks or exceeds
    *limit* steps; a half-built cycle is never reported.
    """
    path = [current]
    node = current
    steps = 0
    while node != target:
        node = parent.get(node)
        steps += 1
        if node is None or steps > limit:
            logger.debug("Discarding cycle through %s: parent walk did not reach %s", current, target)
            return None
        path.append(node)
    path.reverse()
    path.append(target)
    return path


def find_cycles(
    adjacency: Adjacency,
    start_order: Iterable[str] | None = None,
    walk_limit: int = CYCLE_WALK_LIMIT,
) -> list[list[str]]:
    """Depth-first cycle search with a recursion-stack set and parent pointers.

    Roots are tried in *start_order* first, then in sorted order; neighbors
    are visited in sorted order. Cycles are deduplicated by
    :func:`canonical_signature`, keeping the first one found.
    """
    neighbors = {node: sorted(set(targets)) for node, targets in adjacency.items()}
    roots = list(dict.fromkeys(list(start_order or []) + sorted(neighbors)))

    visited: set[str] = set()
    on_stack: set[str] = set()
    parent: dict[str, str] = {}
    seen: set[str] = set()
    cycles: list[list[str]] = []

    for root in roots:
        if root in visited:
            continue
        visited.add(root)
        on_stack.add(root)
        stack = [(root, iter(neighbors.get(root, ())))]
        while stack:
            node, pending = stack[-1]
            descended = False
            for nxt in pending:
                if nxt not in visited:
                    visited.add(nxt)
                    on_stack.add(nxt)
                    parent[nxt] = node
                    stack.append((nxt, iter(neighbors.get(nxt, ()))))
                    descended = True
                    break
                if nxt in on_stack:
                    cycle = _reconstruct(node, nxt, parent, walk_limit)
                    if cycle is None:
                        continue
                    signature = canonical_signature(cycle)
                    if signature not in seen:
                        seen.add(signature)
                        cycles.append(cycle)
            if not descended:
                stack.pop()
                on_stack.discard(node)
    return cycles


def _owner(data: dict) -> str | None:
    """Owning component of a method node, qualified where the node says so."""
    return data.get("qualified_class") or data.get("class_name")


class CircularDependencyDetector:
    """Finds component cycles (ERROR) and cross-component method cycles (WARNING)."""

    def __init__(self, walk_limit: int = CYCLE_WALK_LIMIT) -> None:
        self._walk_limit = walk_limit

    def detect(self, graph: ArchitectureGraph) -> list[Cycle]:
        cycles = self.component_cycles(graph) + self.method_cycles(graph)
        logger.info(
            "Cycle detection on %s: %d component, %d method cycles",
            graph.namespace or "graph",
            sum(1 for c in cycles if c.kind == CycleKind.COMPONENT),
            sum(1 for c in cycles if c.kind == CycleKind.METHOD),
        )
        return cycles

    def component_cycles(self, graph: ArchitectureGraph) -> list[Cycle]:
        adjacency: dict[str, set[str]] = {}
        display: dict[str, str] = {}
        # First call (in id order) between two components, kept as edge detail.
        examples: dict[tuple[str, str], tuple[str, str]] = {}
        for source, target in sorted(graph.call_edges()):
            src = graph.graph.nodes[source]
            dst = graph.graph.nodes[target]
            a, b = _owner(src), _owner(dst)
            if not a or not b or a == b:
                continue
            display[a] = src.get("class_name") or a
            display[b] = dst.get("class_name") or b
            adjacency.setdefault(a, set()).add(b)
            examples.setdefault((a, b), (src.get("name"), dst.get("name")))

        cycles = []
        for nodes in find_cycles(adjacency, walk_limit=self._walk_limit):
            edges = []
            for a, b in zip(nodes, nodes[1:]):
                source_method, target_method = examples.get((a, b), (None, None))
                edges.append(CycleEdge(
                    source_class=display[a], source_method=source_method,
                    target_class=display[b], target_method=target_method,
                ))
            cycles.append(Cycle(
                kind=CycleKind.COMPONENT,
                nodes=nodes,
                edges=edges,
                severity=Severity.ERROR,
                signature=canonical_signature(nodes),
            ))
        return cycles

    def method_cycles(self, graph: ArchitectureGraph) -> list[Cycle]:
        adjacency: dict[str, set[str]] = {}
        # key -> (owning component, display class name, method name)
        owners: dict[str, tuple[str, str, str]] = {}
        for source, target in graph.call_edges():
            keys = []
            for node_id in (source, target):
                data = graph.graph.nodes[node_id]
                owner = _owner(data)
                key = f"{owner}.{data.get('name')}"
                owners[key] = (owner, data.get("class_name") or owner, data.get("name"))
                keys.append(key)
            adjacency.setdefault(keys[0], set()).add(keys[1])

        cycles = []
        for nodes in find_cycles(adjacency, walk_limit=self._walk_limit):
            if len({owners[n][0] for n in nodes}) < 2:
                continue
            edges = [
                CycleEdge(
                    source_class=owners[a][1], source_method=owners[a][2],
                    target_class=owners[b][1], target_method=owners[b][2],
                )
                for a, b in zip(nodes, nodes[1:])
            ]
            cycles.append(Cycle(
                kind=CycleKind.METHOD,
                nodes=nodes,
                edges=edges,
                severity=Severity.WARNING,
                signature=canonical_signature(nodes),
            ))
        return cycles

    def detect_and_compare(
        self, baseline: ArchitectureGraph | None, candidate: ArchitectureGraph
    ) -> list[Cycle]:
        """Candidate cycles, flagged ``new_in_candidate`` when the baseline lacks them.

        Component and method cycles are compared within their own kind.
        """
        known: set[tuple[CycleKind, str]] = set()
        if baseline is not None:
            known = {(c.kind, c.signature) for c in self.detect(baseline)}
        cycles = self.detect(candidate)
        for cycle in cycles:
            cycle.new_in_candidate = (cycle.kind, cycle.signature) not in known
        new = sum(1 for c in cycles if c.new_in_candidate)
        if new:
            logger.warning("Candidate %s introduces %d new cycles", candidate.namespace, new)
        return cycles
