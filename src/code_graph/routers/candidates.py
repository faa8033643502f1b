"""Candidate run router: submit, poll and delete proposed-change analyses."""
from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter, Query, Request

from src.shared.errors import ValidationError
from src.shared.models.analysis import CandidateRun, CandidateRunRequest

router = APIRouter(tags=["candidates"])


def _serialize(run: CandidateRun, include_diff: bool) -> dict[str, Any]:
    exclude = None if include_diff else {"diff"}
    data = run.model_dump(mode="json", exclude=exclude)
    if not include_diff and run.diff is not None:
        data["summary"] = run.diff.summary.model_dump()
    return data


@router.post("/api/projects/{project_id}/candidates", status_code=202)
async def submit_candidate(
    request: Request, project_id: str, body: CandidateRunRequest
) -> dict[str, Any]:
    """Queue a candidate analysis; poll the returned run for its outcome."""
    if body.facts.project_id != project_id:
        raise ValidationError(
            f"Fact set belongs to project {body.facts.project_id}, not {project_id}"
        )
    runner = request.app.state.candidate_runner

    def _submit() -> dict[str, Any]:
        run, _ = runner.submit(project_id, body)
        return _serialize(run, include_diff=False)

    return await asyncio.to_thread(_submit)


@router.get("/api/projects/{project_id}/candidates")
async def list_candidates(request: Request, project_id: str) -> list[dict[str, Any]]:
    runner = request.app.state.candidate_runner

    def _list() -> list[dict[str, Any]]:
        return [_serialize(run, include_diff=False) for run in runner.list_runs(project_id)]

    return await asyncio.to_thread(_list)


@router.get("/api/projects/{project_id}/candidates/{run_id}")
async def get_candidate(
    request: Request,
    project_id: str,
    run_id: str,
    include_diff: bool = Query(False, description="Include the full change set"),
) -> dict[str, Any]:
    runner = request.app.state.candidate_runner

    def _get() -> dict[str, Any]:
        return _serialize(runner.get(project_id, run_id), include_diff=include_diff)

    return await asyncio.to_thread(_get)


@router.delete("/api/projects/{project_id}/candidates/{run_id}")
async def delete_candidate(request: Request, project_id: str, run_id: str) -> dict[str, Any]:
    runner = request.app.state.candidate_runner

    def _delete() -> dict[str, Any]:
        runner.delete(project_id, run_id)
        return {"run_id": run_id, "deleted": True}

    return await asyncio.to_thread(_delete)
