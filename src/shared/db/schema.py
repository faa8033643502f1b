"""Database schema initialization for the code-graph service."""
from __future__ import annotations

from src.shared.db.connection import ConnectionPool


def init_code_graph_db(pool: ConnectionPool) -> None:
    """Initialize graph snapshot and candidate run tables."""
    conn = pool.get()
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS graph_snapshots (
            namespace TEXT PRIMARY KEY,
            project_id TEXT NOT NULL,
            graph_json TEXT NOT NULL,
            node_count INTEGER NOT NULL DEFAULT 0,
            edge_count INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );
        CREATE INDEX IF NOT EXISTS idx_snapshot_project ON graph_snapshots(project_id);

        CREATE TABLE IF NOT EXISTS candidate_runs (
            run_id TEXT PRIMARY KEY,
            project_id TEXT NOT NULL,
            branch TEXT NOT NULL,
            base_branch TEXT NOT NULL DEFAULT 'main',
            change_ref TEXT,
            status TEXT NOT NULL DEFAULT 'pending'
                CHECK(status IN ('pending','analyzing','completed','failed')),
            error_message TEXT,
            diff_json TEXT,
            created_at TEXT NOT NULL,
            completed_at TEXT,
            expires_at TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_crun_project ON candidate_runs(project_id);
        CREATE INDEX IF NOT EXISTS idx_crun_status ON candidate_runs(status);
        CREATE INDEX IF NOT EXISTS idx_crun_expires ON candidate_runs(expires_at);
    """)
    conn.commit()
