"""Resolved graph models produced by one analysis run."""
from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, PrivateAttr

from src.shared.models.facts import ComponentKind


class MethodKind(str, Enum):
    """Graph role of a resolved method."""
    SERVICE_METHOD = "service_method"
    REPOSITORY_METHOD = "repository_method"
    LISTENER_METHOD = "listener_method"
    ENDPOINT_HANDLER = "endpoint_handler"


class NodeType(str, Enum):
    COMPONENT = "component"
    METHOD = "method"
    ENDPOINT = "endpoint"
    EXTERNAL_CALL = "external_call"
    TOPIC = "topic"
    DATABASE_TABLE = "database_table"


class EdgeType(str, Enum):
    """Relationship types, used as edge keys in the architecture graph."""
    HAS_METHOD = "HAS_METHOD"
    CALLS = "CALLS"
    HANDLED_BY = "HANDLED_BY"
    EXTERNAL_CALL = "EXTERNAL_CALL"
    RESOLVES_TO = "RESOLVES_TO"
    PRODUCES_TO = "PRODUCES_TO"
    CONSUMES_FROM = "CONSUMES_FROM"
    ACCESSES = "ACCESSES"


class ComponentNode(BaseModel):
    id: str
    name: str
    qualified_name: str
    package: str = ""
    kind: ComponentKind
    base_path: str | None = None
    line_start: int | None = None
    line_end: int | None = None
    table_id: str | None = None

    model_config = {"from_attributes": True}


class MethodNode(BaseModel):
    """Graph form of a method.

    ``calls`` holds outgoing CALLS targets in discovery order. The node
    accepts new calls only until the run seals it.
    """
    id: str
    class_name: str
    qualified_class: str
    component_id: str
    method_name: str
    signature: str | None = None
    kind: MethodKind
    line_start: int | None = None
    line_end: int | None = None
    calls: list[str] = Field(default_factory=list)
    external_call_ids: list[str] = Field(default_factory=list)
    produces_to: list[str] = Field(default_factory=list)
    consumes_from: list[str] = Field(default_factory=list)

    model_config = {"from_attributes": True}

    _sealed: bool = PrivateAttr(default=False)

    @property
    def key(self) -> tuple[str, str]:
        """Cycle-safety key: ``(qualified class, method name)``."""
        return (self.qualified_class, self.method_name)

    @property
    def sealed(self) -> bool:
        return self._sealed

    def add_call(self, target_id: str) -> bool:
        """Record a CALLS edge; returns False if it already existed."""
        self._check_open()
        if target_id in self.calls:
            return False
        self.calls.append(target_id)
        return True

    def link(self, attribute: str, target_id: str) -> None:
        self._check_open()
        targets: list[str] = getattr(self, attribute)
        if target_id not in targets:
            targets.append(target_id)

    def seal(self) -> None:
        self._sealed = True

    def _check_open(self) -> None:
        if self._sealed:
            raise RuntimeError(f"Method node {self.id} is read-only after the run completed")


class EndpointNode(BaseModel):
    """An HTTP entry point exposed by a handler method."""
    id: str
    http_method: str | None = None
    path: str
    component_name: str = ""
    handler_method_id: str | None = None
    handler_method_name: str | None = None

    model_config = {"from_attributes": True}


class ExternalCallNode(BaseModel):
    """An outbound call site; resolved in place by the external call matcher."""
    id: str
    source_method_id: str
    client_kind: str = "http"
    http_method: str | None = None
    url: str | None = None
    line: int | None = None
    resolved: bool = False
    target_endpoint_id: str | None = None
    target_component: str | None = None
    target_handler_method: str | None = None
    target_service: str | None = None
    resolution_reason: str | None = None
    match_score: int = 0

    model_config = {"from_attributes": True}


class TopicNode(BaseModel):
    """Aggregated producers and consumers of one message topic."""
    id: str
    name: str
    scope_key: str
    producers: list[str] = Field(default_factory=list)
    consumers: list[str] = Field(default_factory=list)
    producer_details: list[str] = Field(default_factory=list)
    consumer_details: list[str] = Field(default_factory=list)

    model_config = {"from_attributes": True}

    @property
    def lacks_consumers(self) -> bool:
        """Produced to, never consumed."""
        return bool(self.producers) and not self.consumers

    @property
    def lacks_producers(self) -> bool:
        """Consumed from, never produced to."""
        return bool(self.consumers) and not self.producers


class DatabaseTableNode(BaseModel):
    id: str
    name: str
    entity_class: str | None = None
    database_type: str | None = None
    operations: list[str] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class SkippedInvocation(BaseModel):
    """A raw invocation no resolution step could match."""
    source_method_id: str
    method_name: str
    declared_type: str | None = None
    line: int | None = None
    reason: str

    model_config = {"from_attributes": True}


class ResolvedGraph(BaseModel):
    """Everything one analysis run resolved, keyed by canonical id."""
    project_id: str
    components: dict[str, ComponentNode] = Field(default_factory=dict)
    methods: dict[str, MethodNode] = Field(default_factory=dict)
    endpoints: dict[str, EndpointNode] = Field(default_factory=dict)
    external_calls: dict[str, ExternalCallNode] = Field(default_factory=dict)
    topics: dict[str, TopicNode] = Field(default_factory=dict)
    tables: dict[str, DatabaseTableNode] = Field(default_factory=dict)
    skipped: list[SkippedInvocation] = Field(default_factory=list)

    model_config = {"from_attributes": True}

    def call_edges(self) -> list[tuple[str, str]]:
        return [
            (method.id, target)
            for method in self.methods.values()
            for target in method.calls
        ]

    def seal(self) -> None:
        for method in self.methods.values():
            method.seal()
