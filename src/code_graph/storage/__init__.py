"""Graph snapshot and candidate run storage."""

from src.code_graph.storage.candidate_run_store import CandidateRunStore
from src.code_graph.storage.graph_store import GraphStore

__all__ = [
    "CandidateRunStore",
    "GraphStore",
]
