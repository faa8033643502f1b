"""End-to-end analysis of one fact set: bind, resolve, match, link, export."""
from __future__ import annotations

import logging

from src.code_graph.services.architecture_graph import ArchitectureGraph
from src.code_graph.services.binding import DependencyBinder
from src.code_graph.services.call_graph_builder import CallGraphBuilder
from src.code_graph.services.cycle_detector import CircularDependencyDetector
from src.code_graph.services.external_call_matcher import ExternalCallMatcher
from src.code_graph.services.graph_diff import GraphDiffer
from src.code_graph.services.topic_linker import TopicLinker
from src.shared.logging import bind_run_id, run_id_var
from src.shared.models.analysis import Cycle, GraphDiff
from src.shared.models.facts import FactSet
from src.shared.models.graph import ResolvedGraph
from src.shared.utils import short_id

logger = logging.getLogger(__name__)


class AnalysisPipeline:
    """Caller-facing entry point: ``build_graph`` -> ``detect_cycles`` -> ``diff``.

    The pipeline holds no per-run state; every call builds its own index
    and graph, so one instance serves concurrent runs.
    """

    def __init__(
        self,
        binder: DependencyBinder | None = None,
        builder: CallGraphBuilder | None = None,
        matcher: ExternalCallMatcher | None = None,
        detector: CircularDependencyDetector | None = None,
    ) -> None:
        self._binder = binder or DependencyBinder()
        self._builder = builder or CallGraphBuilder()
        self._matcher = matcher or ExternalCallMatcher()
        self._detector = detector or CircularDependencyDetector()
        self._differ = GraphDiffer(self._detector)

    def bind(self, fact_set: FactSet) -> FactSet:
        return self._binder.bind(fact_set)

    def build_graph(self, fact_set: FactSet) -> ResolvedGraph:
        """Resolve calls, match external calls and link topics.

        Raises:
            BindingIncompleteError: *fact_set* has not been through
                :meth:`bind`.
        """
        resolved = self._builder.build(fact_set)
        self._matcher.resolve_all(resolved)
        TopicLinker(resolved).link(fact_set)
        resolved.seal()
        return resolved

    def analyze(self, fact_set: FactSet, namespace: str = "") -> ArchitectureGraph:
        """Full run over unbound or bound facts, exported as an architecture graph."""
        run_id = run_id_var.get() or short_id()
        with bind_run_id(run_id):
            logger.info(
                "Analysis started: project=%s namespace=%s components=%d",
                fact_set.project_id, namespace, len(fact_set.components),
            )
            if not fact_set.binding_complete:
                fact_set = self.bind(fact_set)
            resolved = self.build_graph(fact_set)
            graph = ArchitectureGraph.from_resolved(resolved, namespace=namespace)
            logger.info(
                "Analysis finished: project=%s nodes=%d edges=%d",
                fact_set.project_id, graph.number_of_nodes(), graph.number_of_edges(),
            )
            return graph

    def detect_cycles(self, graph: ArchitectureGraph) -> list[Cycle]:
        return self._detector.detect(graph)

    def diff(self, baseline: ArchitectureGraph, candidate: ArchitectureGraph) -> GraphDiff:
        return self._differ.diff(baseline, candidate)
