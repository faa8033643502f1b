"""Shared configuration management using pydantic-settings."""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings

from src.shared.constants import (
    CANDIDATE_TTL_HOURS,
    MIN_MATCH_SCORE,
    SWEEP_INTERVAL_SECONDS,
)


class SharedConfig(BaseSettings):
    """Base configuration shared across all services."""
    log_level: str = Field(default="info", validation_alias="LOG_LEVEL")
    database_path: str = Field(
        default="./data/code_graph.db", validation_alias="DATABASE_PATH"
    )

    model_config = {
        "populate_by_name": True,
        "extra": "ignore",
    }


class CodeGraphConfig(SharedConfig):
    """Configuration for the code-graph service and its background jobs."""
    candidate_ttl_hours: int = Field(
        default=CANDIDATE_TTL_HOURS, ge=1, validation_alias="CANDIDATE_TTL_HOURS"
    )
    sweep_interval_seconds: int = Field(
        default=SWEEP_INTERVAL_SECONDS,
        ge=1,
        validation_alias="SWEEP_INTERVAL_SECONDS",
    )
    candidate_workers: int = Field(
        default=2, ge=1, validation_alias="CANDIDATE_WORKERS"
    )
    min_match_score: int = Field(
        default=MIN_MATCH_SCORE, ge=1, validation_alias="MIN_MATCH_SCORE"
    )
