"""Shared constants used across the code-graph engine and its service."""
from __future__ import annotations

# Application version
VERSION: str = "1.0.0"

# Service identity
CODE_GRAPH_SERVICE_NAME: str = "code-graph"
CODE_GRAPH_PORT: int = 8000

# Database settings
DB_BUSY_TIMEOUT_MS: int = 30000

# Extractor placeholder for URL fragments it could not evaluate statically
DYNAMIC_PLACEHOLDER: str = "<dynamic>"

# Topic name recorded when the extractor could not determine one
UNKNOWN_TOPIC: str = "<unknown>"

# HTTP verbs that count as "known" for external call matching
KNOWN_HTTP_METHODS: frozenset[str] = frozenset(
    {"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"}
)

# External call match scores
SCORE_EXACT: int = 10
SCORE_PATTERN: int = 8
SCORE_CANDIDATE_SUFFIX: int = 7
SCORE_ENDPOINT_SUFFIX: int = 5
MIN_MATCH_SCORE: int = 3

# Upper bound on parent-pointer walks when reconstructing a cycle
CYCLE_WALK_LIMIT: int = 100

# Candidate (proposed-change) runs
CANDIDATE_TTL_HOURS: int = 24
SWEEP_INTERVAL_SECONDS: int = 3600
BASELINE_NAMESPACE_FMT: str = "{project_id}::baseline"
CANDIDATE_NAMESPACE_FMT: str = "{project_id}::candidate::{run_id}"
