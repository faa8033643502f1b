"""Candidate run lifecycle using the ``transitions`` library.

PENDING -> ANALYZING -> COMPLETED, with FAILED reachable from either
non-terminal state. Every state change is written to the run store
before the trigger returns.
"""
from __future__ import annotations

import logging
from typing import Any, Protocol

from transitions import Machine

from src.shared.errors import InvalidTransitionError
from src.shared.models.analysis import CandidateRun, GraphDiff, RunStatus
from src.shared.utils import utc_now

logger = logging.getLogger(__name__)

STATES: list[str] = [status.value for status in RunStatus]

TRANSITIONS: list[dict[str, Any]] = [
    {"trigger": "start", "source": RunStatus.PENDING.value, "dest": RunStatus.ANALYZING.value},
    {"trigger": "finish", "source": RunStatus.ANALYZING.value, "dest": RunStatus.COMPLETED.value},
    {
        "trigger": "fail",
        "source": [RunStatus.PENDING.value, RunStatus.ANALYZING.value],
        "dest": RunStatus.FAILED.value,
    },
]


class RunRecorder(Protocol):
    def update(self, run: CandidateRun) -> None: ...


def create_run_machine(model: Any, initial_state: str = RunStatus.PENDING.value) -> Machine:
    """Create a ``Machine`` bound to *model*.

    *model* must provide a ``persist`` method; it is called after every
    state change.
    """
    return Machine(
        model=model,
        states=STATES,
        transitions=TRANSITIONS,
        initial=initial_state,
        auto_transitions=False,
        after_state_change="persist",
    )


class RunLifecycle:
    """Drives one :class:`CandidateRun` through its states."""

    def __init__(self, run: CandidateRun, recorder: RunRecorder) -> None:
        self.run = run
        self._recorder = recorder
        self.machine = create_run_machine(self, initial_state=run.status.value)

    @property
    def status(self) -> RunStatus:
        return RunStatus(self.state)

    def persist(self) -> None:
        self.run.status = self.status
        if self.status.is_terminal and self.run.completed_at is None:
            self.run.completed_at = utc_now()
        self._recorder.update(self.run)
        logger.info("Candidate run %s is now %s", self.run.run_id, self.status.value)

    def begin(self) -> None:
        self._fire("start")

    def complete(self, diff: GraphDiff) -> None:
        self._check("finish")
        self.run.diff = diff
        self._fire("finish")

    def abort(self, message: str) -> None:
        self._check("fail")
        self.run.error_message = message
        self._fire("fail")

    def _check(self, trigger: str) -> None:
        if trigger not in self.machine.get_triggers(self.state):
            raise InvalidTransitionError(
                f"Cannot {trigger} candidate run {self.run.run_id} in state {self.state}"
            )

    def _fire(self, trigger: str) -> None:
        self._check(trigger)
        getattr(self, trigger)()
