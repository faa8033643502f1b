"""Health check router."""
from __future__ import annotations

import asyncio
import sqlite3
import time

from fastapi import APIRouter, Request

from src.shared.constants import CODE_GRAPH_SERVICE_NAME, VERSION
from src.shared.models.common import HealthStatus

router = APIRouter(tags=["health"])


@router.get("/api/health")
async def health(request: Request) -> HealthStatus:
    """Health check with database connectivity and candidate run backlog."""

    def _check() -> HealthStatus:
        db_status = "disconnected"
        details: dict = {}

        pool = getattr(request.app.state, "pool", None)
        if pool:
            try:
                pool.get().execute("SELECT 1")
                db_status = "connected"
            except (sqlite3.Error, OSError, RuntimeError):
                db_status = "disconnected"

        run_store = getattr(request.app.state, "run_store", None)
        if run_store is not None and db_status == "connected":
            details["active_candidate_runs"] = len(run_store.list_active())

        status = "healthy" if db_status == "connected" else "degraded"
        start_time = getattr(request.app.state, "start_time", time.time())

        return HealthStatus(
            status=status,
            service_name=CODE_GRAPH_SERVICE_NAME,
            version=VERSION,
            database=db_status,
            uptime_seconds=time.time() - start_time,
            details=details,
        )

    return await asyncio.to_thread(_check)
