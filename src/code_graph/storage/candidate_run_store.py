"""SQLite persistence of candidate run records."""
from __future__ import annotations

import logging
from datetime import datetime

from src.shared.db.connection import ConnectionPool
from src.shared.models.analysis import CandidateRun, GraphDiff, RunStatus

logger = logging.getLogger(__name__)

_COLUMNS = (
    "run_id, project_id, branch, base_branch, change_ref, status, "
    "error_message, diff_json, created_at, completed_at, expires_at"
)


class CandidateRunStore:
    """CRUD plus the two queries the lifecycle jobs need.

    Timestamps are stored as UTC ISO-8601 strings, so string comparison
    in SQL orders them correctly.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def insert(self, run: CandidateRun) -> None:
        with self._pool.transaction() as conn:
            conn.execute(
                f"INSERT INTO candidate_runs ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                self._to_row(run),
            )

    def update(self, run: CandidateRun) -> None:
        row = self._to_row(run)
        with self._pool.transaction() as conn:
            conn.execute(
                """
                UPDATE candidate_runs
                SET status = ?, error_message = ?, diff_json = ?, completed_at = ?
                WHERE run_id = ?
                """,
                (row[5], row[6], row[7], row[9], run.run_id),
            )

    def get(self, run_id: str) -> CandidateRun | None:
        row = self._pool.get().execute(
            f"SELECT {_COLUMNS} FROM candidate_runs WHERE run_id = ?", (run_id,)
        ).fetchone()
        return self._from_row(row) if row is not None else None

    def list_for_project(self, project_id: str) -> list[CandidateRun]:
        rows = self._pool.get().execute(
            f"SELECT {_COLUMNS} FROM candidate_runs WHERE project_id = ? "
            "ORDER BY created_at DESC, run_id",
            (project_id,),
        ).fetchall()
        return [self._from_row(row) for row in rows]

    def delete(self, run_id: str) -> bool:
        with self._pool.transaction() as conn:
            cursor = conn.execute("DELETE FROM candidate_runs WHERE run_id = ?", (run_id,))
        return cursor.rowcount > 0

    def list_sweep_eligible(self, now: datetime) -> list[CandidateRun]:
        """Runs past expiry that have also reached a terminal state."""
        rows = self._pool.get().execute(
            f"SELECT {_COLUMNS} FROM candidate_runs WHERE expires_at <= ? AND status IN (?, ?)",
            (now.isoformat(), RunStatus.COMPLETED.value, RunStatus.FAILED.value),
        ).fetchall()
        return [self._from_row(row) for row in rows]

    def list_active(self) -> list[CandidateRun]:
        rows = self._pool.get().execute(
            f"SELECT {_COLUMNS} FROM candidate_runs WHERE status IN (?, ?)",
            (RunStatus.PENDING.value, RunStatus.ANALYZING.value),
        ).fetchall()
        return [self._from_row(row) for row in rows]

    @staticmethod
    def _to_row(run: CandidateRun) -> tuple:
        return (
            run.run_id,
            run.project_id,
            run.branch,
            run.base_branch,
            run.change_ref,
            run.status.value,
            run.error_message,
            run.diff.model_dump_json() if run.diff is not None else None,
            run.created_at.isoformat(),
            run.completed_at.isoformat() if run.completed_at else None,
            run.expires_at.isoformat(),
        )

    @staticmethod
    def _from_row(row: object) -> CandidateRun:
        """Convert a ``sqlite3.Row`` to a :class:`CandidateRun`."""
        diff_json = row["diff_json"]
        return CandidateRun(
            run_id=row["run_id"],
            project_id=row["project_id"],
            branch=row["branch"],
            base_branch=row["base_branch"],
            change_ref=row["change_ref"],
            status=RunStatus(row["status"]),
            error_message=row["error_message"],
            diff=GraphDiff.model_validate_json(diff_json) if diff_json else None,
            created_at=datetime.fromisoformat(row["created_at"]),
            completed_at=datetime.fromisoformat(row["completed_at"]) if row["completed_at"] else None,
            expires_at=datetime.fromisoformat(row["expires_at"]),
        )
