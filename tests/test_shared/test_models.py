"""Tests for the fact, graph and analysis Pydantic models."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from src.shared.constants import UNKNOWN_TOPIC
from src.shared.models.analysis import (
    CandidateRun,
    Cycle,
    CycleKind,
    DiffSummary,
    GraphDiff,
    RunStatus,
    Severity,
)
from src.shared.models.common import HealthStatus
from src.shared.models.facts import (
    Component,
    ComponentKind,
    FactSet,
    Method,
    RawInvocation,
    TopicCallFact,
    TopicDirection,
)
from src.shared.models.graph import MethodKind, MethodNode, TopicNode


class TestFactModels:
    def test_component_is_frozen(self):
        component = Component(
            name="A", qualified_name="x.A", kind=ComponentKind.BUSINESS_SERVICE
        )
        with pytest.raises(ValidationError):
            component.name = "B"

    def test_raw_invocation_defaults(self):
        raw = RawInvocation(method_name="run")
        assert raw.self_call is False
        assert raw.target_field_name is None

    @pytest.mark.parametrize("blank", ["", "   ", None])
    def test_blank_topic_becomes_unknown(self, blank):
        call = TopicCallFact(topic=blank, direction=TopicDirection.PRODUCE)
        assert call.topic == UNKNOWN_TOPIC

    def test_fact_set_requires_project(self):
        with pytest.raises(ValidationError):
            FactSet(project_id="")

    def test_fact_set_from_json(self):
        facts = FactSet.model_validate({
            "project_id": "p",
            "components": [{
                "name": "A",
                "qualified_name": "x.A",
                "kind": "business_service",
                "methods": [{"name": "run", "invocations": [{"method_name": "go"}]}],
            }],
        })
        assert facts.binding_complete is False
        assert facts.components[0].methods[0].invocations[0].method_name == "go"
        assert facts.component_names() == {"x.A"}

    def test_binding_flag_cannot_be_supplied(self):
        facts = FactSet.model_validate({"project_id": "p", "binding_complete": True})
        assert facts.binding_complete is False

    def test_method_defaults(self):
        method = Method(name="run")
        assert method.invocations == []
        assert method.http_method is None


class TestMethodNode:
    def _node(self) -> MethodNode:
        return MethodNode(
            id="method:x.A.run()", class_name="A", qualified_class="x.A",
            component_id="component:x.A", method_name="run",
            kind=MethodKind.SERVICE_METHOD,
        )

    def test_add_call_is_idempotent(self):
        node = self._node()
        assert node.add_call("method:x.B.go()") is True
        assert node.add_call("method:x.B.go()") is False
        assert node.calls == ["method:x.B.go()"]

    def test_sealed_node_rejects_calls(self):
        node = self._node()
        node.seal()
        assert node.sealed
        with pytest.raises(RuntimeError):
            node.add_call("method:x.B.go()")

    def test_key(self):
        assert self._node().key == ("x.A", "run")


class TestTopicNode:
    def test_missing_side_flags(self):
        topic = TopicNode(id="topic:t", name="t", scope_key="p", producers=["A"])
        assert topic.lacks_consumers
        assert not topic.lacks_producers


class TestAnalysisModels:
    def test_cycle_length(self):
        cycle = Cycle(
            kind=CycleKind.COMPONENT, nodes=["A", "B", "A"], severity=Severity.ERROR
        )
        assert cycle.length == 2
        assert cycle.new_in_candidate is False

    def test_summary_has_changes(self):
        assert not DiffSummary().has_changes
        assert DiffSummary(relationships_removed=1).has_changes

    def test_graph_diff_json_round_trip(self):
        diff = GraphDiff(
            baseline="p::baseline", candidate="p::candidate::1",
            cycles=[Cycle(kind=CycleKind.METHOD, nodes=["A.x", "B.y", "A.x"],
                          severity=Severity.WARNING, new_in_candidate=True)],
        )
        restored = GraphDiff.model_validate_json(diff.model_dump_json())
        assert restored.new_cycles[0].nodes == ["A.x", "B.y", "A.x"]

    def test_run_status_terminal(self):
        assert RunStatus.COMPLETED.is_terminal
        assert RunStatus.FAILED.is_terminal
        assert not RunStatus.PENDING.is_terminal
        assert not RunStatus.ANALYZING.is_terminal

    def test_candidate_run_defaults(self):
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        run = CandidateRun(
            run_id="ab12cd34", project_id="p", branch="feature",
            created_at=now, expires_at=now,
        )
        assert run.status == RunStatus.PENDING
        assert run.base_branch == "main"


class TestHealthStatus:
    def test_valid(self, sample_health_status: HealthStatus):
        assert sample_health_status.status == "healthy"

    def test_invalid_status(self):
        with pytest.raises(ValidationError):
            HealthStatus(status="exploded", service_name="s", version="1", uptime_seconds=0)
