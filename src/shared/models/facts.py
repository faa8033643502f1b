"""Extractor fact models: the immutable input of one analysis run."""
from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from src.shared.constants import UNKNOWN_TOPIC


class ComponentKind(str, Enum):
    """Classification the extractor assigns to a class-like unit."""
    ENTRY_POINT_HANDLER = "entry_point_handler"
    BUSINESS_SERVICE = "business_service"
    DATA_ACCESSOR = "data_accessor"
    MESSAGE_LISTENER = "message_listener"
    CONFIGURATION = "configuration"


class InjectionType(str, Enum):
    """How a dependency reaches its field."""
    CONSTRUCTOR = "constructor"
    FIELD = "field"
    SETTER = "setter"
    UNKNOWN = "unknown"


class TopicDirection(str, Enum):
    PRODUCE = "produce"
    CONSUME = "consume"


_FROZEN = {"from_attributes": True, "frozen": True}


class InjectedDependency(BaseModel):
    """A field populated by the dependency-injection container.

    ``resolved_type`` is the fully-qualified concrete component chosen by
    the binding pass. It stays ``None`` when no component in the run
    satisfies ``declared_type``.
    """
    field_name: str
    declared_type: str
    resolved_type: str | None = None
    injection_type: InjectionType = InjectionType.UNKNOWN

    model_config = _FROZEN


class RawInvocation(BaseModel):
    """A syntactic method call captured before cross-component resolution."""
    method_name: str
    declared_type_simple: str | None = None
    declared_type_qualified: str | None = None
    target_field_name: str | None = None
    self_call: bool = False
    line: int | None = None

    model_config = _FROZEN


class ExternalCallFact(BaseModel):
    """An outbound HTTP call site (REST template, HTTP client, feign...)."""
    client_kind: str = "http"
    http_method: str | None = None
    url: str | None = None
    line: int | None = None

    model_config = _FROZEN


class TopicCallFact(BaseModel):
    """A message produced to, or consumed from, a topic."""
    topic: str = UNKNOWN_TOPIC
    direction: TopicDirection
    consumer_group: str | None = None
    line: int | None = None

    model_config = _FROZEN

    @field_validator("topic", mode="before")
    @classmethod
    def _blank_topic(cls, value: str | None) -> str:
        if value is None or not str(value).strip():
            return UNKNOWN_TOPIC
        return str(value).strip()


class Method(BaseModel):
    """A method as seen by the extractor."""
    name: str
    signature: str | None = None
    parameter_types: list[str] = Field(default_factory=list)
    return_type: str | None = None
    line_start: int | None = None
    line_end: int | None = None
    http_method: str | None = None
    path: str | None = None
    invocations: list[RawInvocation] = Field(default_factory=list)
    external_calls: list[ExternalCallFact] = Field(default_factory=list)
    topic_calls: list[TopicCallFact] = Field(default_factory=list)

    model_config = _FROZEN


class TableAccess(BaseModel):
    """Database table a data accessor reads or writes."""
    table_name: str
    entity_class: str | None = None
    database_type: str | None = None
    operations: list[str] = Field(default_factory=list)

    model_config = _FROZEN


class Component(BaseModel):
    """A classified class-like unit with its injected fields and methods."""
    name: str
    qualified_name: str
    package: str = ""
    kind: ComponentKind
    implemented_interfaces: list[str] = Field(default_factory=list)
    dependencies: dict[str, InjectedDependency] = Field(default_factory=dict)
    methods: list[Method] = Field(default_factory=list)
    base_path: str | None = None
    table_access: TableAccess | None = None
    line_start: int | None = None
    line_end: int | None = None

    model_config = _FROZEN


class FactSet(BaseModel):
    """All extractor facts for one analysis run.

    ``interface_map`` maps an interface name (qualified or simple) to the
    qualified names of its implementations. ``binding_complete`` is set
    only by the binding pass: a value supplied in input data is dropped,
    and call resolution refuses fact sets where it is still ``False``.
    """
    project_id: str = Field(..., min_length=1)
    components: list[Component] = Field(default_factory=list)
    interface_map: dict[str, list[str]] = Field(default_factory=dict)
    binding_complete: bool = False

    model_config = _FROZEN

    @model_validator(mode="before")
    @classmethod
    def _drop_binding_flag(cls, data: Any) -> Any:
        if isinstance(data, dict) and "binding_complete" in data:
            data = {k: v for k, v in data.items() if k != "binding_complete"}
        return data

    def component_names(self) -> set[str]:
        return {c.qualified_name for c in self.components}
