"""Cycle, diff, matching and candidate-run models."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from src.shared.models.facts import FactSet


class Severity(str, Enum):
    ERROR = "ERROR"
    WARNING = "WARNING"


class CycleKind(str, Enum):
    COMPONENT = "component"
    METHOD = "method"


class CycleEdge(BaseModel):
    """One hop of a cycle: ``source_class.source_method -> target_class.target_method``.

    Method names are ``None`` on component-level cycles.
    """
    source_class: str
    target_class: str
    source_method: str | None = None
    target_method: str | None = None

    model_config = {"from_attributes": True}


class Cycle(BaseModel):
    """A closed walk; ``nodes[0] == nodes[-1]``."""
    kind: CycleKind
    nodes: list[str]
    edges: list[CycleEdge] = Field(default_factory=list)
    severity: Severity
    new_in_candidate: bool = False
    signature: str = ""

    model_config = {"from_attributes": True}

    @property
    def length(self) -> int:
        return max(len(self.nodes) - 1, 0)


class ChangeType(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


class PropertyDiff(BaseModel):
    name: str
    old_value: Any = None
    new_value: Any = None

    model_config = {"from_attributes": True}


class NodeChange(BaseModel):
    node_id: str
    node_type: str
    name: str | None = None
    change_type: ChangeType
    property_diffs: list[PropertyDiff] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class RelationshipChange(BaseModel):
    """A relationship identified by its ``(source, target, type)`` triple.

    ``relationship_id`` is the same triple in ``{type}:{source}->{target}`` form.
    """
    relationship_id: str = ""
    source_id: str
    target_id: str
    relationship_type: str
    change_type: ChangeType
    property_diffs: list[PropertyDiff] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class DiffSummary(BaseModel):
    nodes_added: int = 0
    nodes_modified: int = 0
    nodes_removed: int = 0
    relationships_added: int = 0
    relationships_modified: int = 0
    relationships_removed: int = 0
    total_cycles: int = 0
    new_cycles: int = 0
    new_error_cycles: int = 0
    added_by_type: dict[str, int] = Field(default_factory=dict)
    modified_by_type: dict[str, int] = Field(default_factory=dict)
    removed_by_type: dict[str, int] = Field(default_factory=dict)

    model_config = {"from_attributes": True}

    @property
    def has_changes(self) -> bool:
        return any((
            self.nodes_added, self.nodes_modified, self.nodes_removed,
            self.relationships_added, self.relationships_modified,
            self.relationships_removed, self.new_cycles,
        ))


class GraphDiff(BaseModel):
    """Change set between a baseline and a candidate graph."""
    baseline: str
    candidate: str
    added_nodes: list[NodeChange] = Field(default_factory=list)
    modified_nodes: list[NodeChange] = Field(default_factory=list)
    removed_nodes: list[NodeChange] = Field(default_factory=list)
    added_relationships: list[RelationshipChange] = Field(default_factory=list)
    modified_relationships: list[RelationshipChange] = Field(default_factory=list)
    removed_relationships: list[RelationshipChange] = Field(default_factory=list)
    cycles: list[Cycle] = Field(default_factory=list)
    summary: DiffSummary = Field(default_factory=DiffSummary)

    model_config = {"from_attributes": True}

    @property
    def new_cycles(self) -> list[Cycle]:
        return [c for c in self.cycles if c.new_in_candidate]


class MatchResult(BaseModel):
    """Outcome of matching one outbound call against local endpoints."""
    resolved: bool = False
    score: int = 0
    endpoint_id: str | None = None
    matched_path: str | None = None
    target_service: str | None = None
    reason: str | None = None

    model_config = {"from_attributes": True}


class RunStatus(str, Enum):
    PENDING = "pending"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED)


class CandidateRun(BaseModel):
    """Tracking record of one proposed-change analysis."""
    run_id: str
    project_id: str
    branch: str
    base_branch: str = "main"
    change_ref: str | None = None
    status: RunStatus = RunStatus.PENDING
    error_message: str | None = None
    created_at: datetime
    completed_at: datetime | None = None
    expires_at: datetime
    diff: GraphDiff | None = None

    model_config = {"from_attributes": True}


class CandidateRunRequest(BaseModel):
    """Body of ``POST /api/projects/{project_id}/candidates``."""
    branch: str = Field(..., min_length=1)
    base_branch: str = "main"
    change_ref: str | None = None
    facts: FactSet


class TopicReport(BaseModel):
    """Topics of one graph plus the two orphan views."""
    topics: list[dict[str, Any]] = Field(default_factory=list)
    orphan_producers: list[dict[str, Any]] = Field(default_factory=list)
    orphan_consumers: list[dict[str, Any]] = Field(default_factory=list)
