"""Code graph routers."""
from src.code_graph.routers.baseline import router as baseline_router
from src.code_graph.routers.candidates import router as candidates_router
from src.code_graph.routers.health import router as health_router

__all__ = [
    "baseline_router",
    "candidates_router",
    "health_router",
]
