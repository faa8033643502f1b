"""Baseline graph router: analyze facts and query the stored graph."""
from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter, Request

from src.code_graph.services.architecture_graph import ArchitectureGraph
from src.code_graph.services.candidate_runner import baseline_namespace
from src.code_graph.services.topic_linker import build_topic_report
from src.shared.errors import NotFoundError, ValidationError
from src.shared.models.facts import FactSet

router = APIRouter(tags=["baseline"])


def _load_baseline(request: Request, project_id: str) -> ArchitectureGraph:
    graph = request.app.state.graph_store.load(baseline_namespace(project_id))
    if graph is None:
        raise NotFoundError(f"No baseline graph for project {project_id}")
    return graph


@router.post("/api/projects/{project_id}/baseline")
async def analyze_baseline(request: Request, project_id: str, facts: FactSet) -> dict[str, Any]:
    """Analyze *facts* synchronously and store the result as the baseline."""
    if facts.project_id != project_id:
        raise ValidationError(
            f"Fact set belongs to project {facts.project_id}, not {project_id}"
        )
    pipeline = request.app.state.pipeline
    graph_store = request.app.state.graph_store

    def _analyze() -> dict[str, Any]:
        graph = pipeline.analyze(facts, namespace=baseline_namespace(project_id))
        graph_store.save(graph, project_id=project_id)
        cycles = pipeline.detect_cycles(graph)
        return {
            "stats": graph.stats().model_dump(),
            "cycles": len(cycles),
        }

    return await asyncio.to_thread(_analyze)


@router.get("/api/projects/{project_id}/baseline/cycles")
async def get_baseline_cycles(request: Request, project_id: str) -> list[dict[str, Any]]:
    pipeline = request.app.state.pipeline

    def _detect() -> list[dict[str, Any]]:
        graph = _load_baseline(request, project_id)
        return [cycle.model_dump(mode="json") for cycle in pipeline.detect_cycles(graph)]

    return await asyncio.to_thread(_detect)


@router.get("/api/projects/{project_id}/baseline/topics")
async def get_baseline_topics(request: Request, project_id: str) -> dict[str, Any]:
    def _report() -> dict[str, Any]:
        graph = _load_baseline(request, project_id)
        return build_topic_report(graph.topics()).model_dump()

    return await asyncio.to_thread(_report)
