"""Background evaluation of proposed-change branches against the baseline."""
from __future__ import annotations

import logging
import sqlite3
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timedelta

from src.code_graph.services.analysis_pipeline import AnalysisPipeline
from src.code_graph.services.architecture_graph import ArchitectureGraph
from src.code_graph.services.state_machine import RunLifecycle
from src.code_graph.storage.candidate_run_store import CandidateRunStore
from src.code_graph.storage.graph_store import GraphStore
from src.shared.constants import (
    BASELINE_NAMESPACE_FMT,
    CANDIDATE_NAMESPACE_FMT,
    CANDIDATE_TTL_HOURS,
)
from src.shared.errors import ConflictError, NotFoundError
from src.shared.logging import bind_run_id
from src.shared.models.analysis import CandidateRun, CandidateRunRequest
from src.shared.models.facts import FactSet
from src.shared.utils import short_id, utc_now

logger = logging.getLogger(__name__)

INTERRUPTED_MESSAGE = "Run interrupted by a service restart before it finished"


def baseline_namespace(project_id: str) -> str:
    return BASELINE_NAMESPACE_FMT.format(project_id=project_id)


def candidate_namespace(project_id: str, run_id: str) -> str:
    return CANDIDATE_NAMESPACE_FMT.format(project_id=project_id, run_id=run_id)


class CandidateRunService:
    """Submits, tracks, and reclaims candidate runs.

    ``submit`` returns as soon as the PENDING record is stored; the analysis
    runs on a worker thread. A run either completes with its diff stored or
    fails with a message, and its candidate graph is removed on failure.
    """

    def __init__(
        self,
        pipeline: AnalysisPipeline,
        graph_store: GraphStore,
        run_store: CandidateRunStore,
        executor: ThreadPoolExecutor | None = None,
        ttl_hours: int = CANDIDATE_TTL_HOURS,
    ) -> None:
        self._pipeline = pipeline
        self._graphs = graph_store
        self._runs = run_store
        self._executor = executor or ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="candidate-run"
        )
        self._ttl = timedelta(hours=ttl_hours)

    def submit(self, project_id: str, request: CandidateRunRequest) -> tuple[CandidateRun, Future]:
        created = utc_now()
        run = CandidateRun(
            run_id=short_id(),
            project_id=project_id,
            branch=request.branch,
            base_branch=request.base_branch,
            change_ref=request.change_ref,
            created_at=created,
            expires_at=created + self._ttl,
        )
        self._runs.insert(run)
        logger.info(
            "Candidate run %s submitted: project=%s branch=%s base=%s",
            run.run_id, project_id, run.branch, run.base_branch,
        )
        future = self._executor.submit(self.process, run.run_id, request.facts)
        return run, future

    def process(self, run_id: str, facts: FactSet) -> CandidateRun:
        """Analyze *facts* for a stored run; never raises for analysis errors."""
        run = self._require(run_id)
        lifecycle = RunLifecycle(run, self._runs)
        namespace = candidate_namespace(run.project_id, run_id)
        with bind_run_id(run_id):
            try:
                lifecycle.begin()
                candidate = self._pipeline.analyze(facts, namespace=namespace)
                self._graphs.save(candidate, project_id=run.project_id)

                baseline = self._graphs.load(baseline_namespace(run.project_id))
                if baseline is None:
                    logger.warning(
                        "No baseline for project %s; diffing candidate against an empty graph",
                        run.project_id,
                    )
                    baseline = ArchitectureGraph(namespace=baseline_namespace(run.project_id))
                lifecycle.complete(self._pipeline.diff(baseline, candidate))
            except Exception as exc:
                logger.exception("Candidate run %s failed", run_id)
                if not lifecycle.status.is_terminal:
                    lifecycle.abort(str(exc) or exc.__class__.__name__)
                self._drop_graph(namespace)
        return lifecycle.run

    def get(self, project_id: str, run_id: str) -> CandidateRun:
        run = self._require(run_id)
        if run.project_id != project_id:
            raise NotFoundError(f"Candidate run {run_id} not found in project {project_id}")
        return run

    def list_runs(self, project_id: str) -> list[CandidateRun]:
        return self._runs.list_for_project(project_id)

    def delete(self, project_id: str, run_id: str) -> None:
        """Remove a finished run and its graph; in-progress runs are refused."""
        run = self.get(project_id, run_id)
        if not run.status.is_terminal:
            raise ConflictError(f"Candidate run {run_id} is still {run.status.value}")
        self._discard(run)

    def fail_interrupted_runs(self) -> int:
        """Mark runs a previous process left PENDING or ANALYZING as FAILED."""
        runs = self._runs.list_active()
        for run in runs:
            RunLifecycle(run, self._runs).abort(INTERRUPTED_MESSAGE)
            self._graphs.delete(candidate_namespace(run.project_id, run.run_id))
        if runs:
            logger.warning("Marked %d interrupted candidate runs as failed", len(runs))
        return len(runs)

    def sweep_expired(self, now: datetime | None = None) -> int:
        """Delete graph and record of every expired run in a terminal state."""
        now = now or utc_now()
        runs = self._runs.list_sweep_eligible(now)
        for run in runs:
            self._discard(run)
        if runs:
            logger.info("Swept %d expired candidate runs", len(runs))
        return len(runs)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _discard(self, run: CandidateRun) -> None:
        self._graphs.delete(candidate_namespace(run.project_id, run.run_id))
        self._runs.delete(run.run_id)
        logger.debug("Discarded candidate run %s", run.run_id)

    def _drop_graph(self, namespace: str) -> None:
        try:
            self._graphs.delete(namespace)
        except sqlite3.Error:
            # The sweep removes it once the failed run expires.
            logger.exception("Could not remove candidate graph %s", namespace)

    def _require(self, run_id: str) -> CandidateRun:
        run = self._runs.get(run_id)
        if run is None:
            raise NotFoundError(f"Candidate run {run_id} not found")
        return run
