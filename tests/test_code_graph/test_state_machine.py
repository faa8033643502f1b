"""Tests for the candidate run lifecycle."""
from __future__ import annotations

from datetime import timedelta

import pytest

from src.code_graph.services.state_machine import (
    STATES,
    TRANSITIONS,
    RunLifecycle,
    create_run_machine,
)
from src.shared.errors import InvalidTransitionError
from src.shared.models.analysis import CandidateRun, GraphDiff, RunStatus
from src.shared.utils import utc_now


class _Recorder:
    def __init__(self) -> None:
        self.updates: list[CandidateRun] = []

    def update(self, run: CandidateRun) -> None:
        self.updates.append(run.model_copy())


def _run(status: RunStatus = RunStatus.PENDING) -> CandidateRun:
    now = utc_now()
    return CandidateRun(
        run_id="r1", project_id="shop", branch="feature", status=status,
        created_at=now, expires_at=now + timedelta(hours=1),
    )


def _diff() -> GraphDiff:
    return GraphDiff(baseline="shop::baseline", candidate="shop::candidate::r1")


class TestDefinition:
    def test_states_match_run_status(self):
        assert STATES == ["pending", "analyzing", "completed", "failed"]

    def test_failed_is_reachable_from_both_open_states(self):
        fail = next(t for t in TRANSITIONS if t["trigger"] == "fail")
        assert fail["source"] == ["pending", "analyzing"]

    def test_machine_calls_persist(self):
        class Model:
            persisted = 0

            def persist(self):
                self.persisted += 1

        model = Model()
        create_run_machine(model)
        model.start()
        assert model.state == "analyzing"
        assert model.persisted == 1


class TestRunLifecycle:
    def test_happy_path(self):
        recorder = _Recorder()
        lifecycle = RunLifecycle(_run(), recorder)
        lifecycle.begin()
        assert lifecycle.status == RunStatus.ANALYZING
        assert lifecycle.run.completed_at is None

        lifecycle.complete(_diff())
        assert lifecycle.status == RunStatus.COMPLETED
        assert lifecycle.run.diff is not None
        assert lifecycle.run.completed_at is not None
        assert [u.status for u in recorder.updates] == [RunStatus.ANALYZING, RunStatus.COMPLETED]

    def test_abort_records_message(self):
        recorder = _Recorder()
        lifecycle = RunLifecycle(_run(), recorder)
        lifecycle.begin()
        lifecycle.abort("parse error")
        assert recorder.updates[-1].status == RunStatus.FAILED
        assert recorder.updates[-1].error_message == "parse error"
        assert recorder.updates[-1].completed_at is not None

    def test_pending_run_can_fail(self):
        lifecycle = RunLifecycle(_run(), _Recorder())
        lifecycle.abort("interrupted")
        assert lifecycle.status == RunStatus.FAILED

    def test_cannot_complete_before_starting(self):
        recorder = _Recorder()
        lifecycle = RunLifecycle(_run(), recorder)
        with pytest.raises(InvalidTransitionError):
            lifecycle.complete(_diff())
        assert lifecycle.run.diff is None
        assert recorder.updates == []

    @pytest.mark.parametrize("status", [RunStatus.COMPLETED, RunStatus.FAILED])
    def test_terminal_states_are_final(self, status: RunStatus):
        lifecycle = RunLifecycle(_run(status), _Recorder())
        with pytest.raises(InvalidTransitionError):
            lifecycle.begin()
        with pytest.raises(InvalidTransitionError):
            lifecycle.abort("late")
        assert lifecycle.run.error_message is None

    def test_resumes_from_stored_state(self):
        lifecycle = RunLifecycle(_run(RunStatus.ANALYZING), _Recorder())
        lifecycle.complete(_diff())
        assert lifecycle.status == RunStatus.COMPLETED
