"""Graph resolution and change-detection services."""

from src.code_graph.services.analysis_pipeline import AnalysisPipeline
from src.code_graph.services.architecture_graph import ArchitectureGraph
from src.code_graph.services.binding import DependencyBinder
from src.code_graph.services.call_graph_builder import CallGraphBuilder
from src.code_graph.services.cycle_detector import CircularDependencyDetector
from src.code_graph.services.external_call_matcher import ExternalCallMatcher
from src.code_graph.services.graph_diff import GraphDiffer
from src.code_graph.services.resolution_index import ResolutionIndex
from src.code_graph.services.topic_linker import TopicLinker

__all__ = [
    "AnalysisPipeline",
    "ArchitectureGraph",
    "DependencyBinder",
    "CallGraphBuilder",
    "CircularDependencyDetector",
    "ExternalCallMatcher",
    "GraphDiffer",
    "ResolutionIndex",
    "TopicLinker",
]
