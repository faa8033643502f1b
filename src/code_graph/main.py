"""Code graph service FastAPI application."""
from __future__ import annotations

import asyncio
import contextlib
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from src.shared.config import CodeGraphConfig
from src.shared.constants import CODE_GRAPH_PORT, CODE_GRAPH_SERVICE_NAME, VERSION
from src.shared.db.connection import ConnectionPool
from src.shared.db.schema import init_code_graph_db
from src.shared.errors import register_exception_handlers
from src.shared.logging import TraceIDMiddleware, setup_logging

# Services
from src.code_graph.services.analysis_pipeline import AnalysisPipeline
from src.code_graph.services.candidate_runner import CandidateRunService
from src.code_graph.services.external_call_matcher import ExternalCallMatcher

# Storage
from src.code_graph.storage.candidate_run_store import CandidateRunStore
from src.code_graph.storage.graph_store import GraphStore

# Routers
from src.code_graph.routers.baseline import router as baseline_router
from src.code_graph.routers.candidates import router as candidates_router
from src.code_graph.routers.health import router as health_router

config = CodeGraphConfig()
logger = setup_logging(CODE_GRAPH_SERVICE_NAME, config.log_level)


async def sweep_loop(runner: CandidateRunService, interval_seconds: float) -> None:
    """Reclaim expired candidate runs every *interval_seconds*."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await asyncio.to_thread(runner.sweep_expired)
        except Exception:
            logger.exception("Candidate run sweep failed; retrying next interval")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: open storage, recover runs, start the sweep."""
    app.state.start_time = time.time()

    # Database
    pool = ConnectionPool(config.database_path)
    init_code_graph_db(pool)
    app.state.pool = pool

    # Storage layer
    graph_store = GraphStore(pool)
    run_store = CandidateRunStore(pool)
    app.state.graph_store = graph_store
    app.state.run_store = run_store

    # Core services
    pipeline = AnalysisPipeline(matcher=ExternalCallMatcher(min_score=config.min_match_score))
    executor = ThreadPoolExecutor(
        max_workers=config.candidate_workers, thread_name_prefix="candidate-run"
    )
    runner = CandidateRunService(
        pipeline,
        graph_store,
        run_store,
        executor=executor,
        ttl_hours=config.candidate_ttl_hours,
    )
    app.state.pipeline = pipeline
    app.state.candidate_runner = runner

    runner.fail_interrupted_runs()
    sweep_task = asyncio.create_task(sweep_loop(runner, config.sweep_interval_seconds))

    logger.info(
        "Service started: name=%s version=%s port=%d db=%s",
        CODE_GRAPH_SERVICE_NAME, VERSION, CODE_GRAPH_PORT, config.database_path,
    )
    yield

    sweep_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweep_task
    runner.shutdown(wait=True)
    pool.close()
    logger.info("Service stopped: name=%s", CODE_GRAPH_SERVICE_NAME)


app = FastAPI(
    title="Code Architecture Graph",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(TraceIDMiddleware)
register_exception_handlers(app)

app.include_router(health_router)
app.include_router(baseline_router)
app.include_router(candidates_router)
