"""SQLite-backed storage for architecture graph snapshots by namespace."""
from __future__ import annotations

import logging
from typing import Any

from src.code_graph.services.architecture_graph import ArchitectureGraph
from src.shared.db.connection import ConnectionPool

logger = logging.getLogger(__name__)


class GraphStore:
    """One snapshot per namespace (``{project}::baseline``,
    ``{project}::candidate::{run}``), serialised with
    :func:`networkx.node_link_data` into the ``graph_snapshots`` table.
    Saving a namespace again replaces its snapshot.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def save(self, graph: ArchitectureGraph, project_id: str | None = None) -> None:
        if not graph.namespace:
            raise ValueError("Cannot store a graph without a namespace")
        project_id = project_id or graph.graph.graph.get("project_id") or graph.namespace.split("::", 1)[0]
        with self._pool.transaction() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO graph_snapshots
                    (namespace, project_id, graph_json, node_count, edge_count, created_at)
                VALUES (?, ?, ?, ?, ?, datetime('now'))
                """,
                (
                    graph.namespace,
                    project_id,
                    graph.to_json(),
                    graph.number_of_nodes(),
                    graph.number_of_edges(),
                ),
            )
        logger.debug(
            "Saved graph %s: %d nodes, %d edges",
            graph.namespace, graph.number_of_nodes(), graph.number_of_edges(),
        )

    def load(self, namespace: str) -> ArchitectureGraph | None:
        """Return the stored graph, or ``None`` if the namespace is empty."""
        row = self._pool.get().execute(
            "SELECT graph_json FROM graph_snapshots WHERE namespace = ?",
            (namespace,),
        ).fetchone()
        if row is None:
            return None
        return ArchitectureGraph.from_json(row["graph_json"], namespace=namespace)

    def delete(self, namespace: str) -> bool:
        with self._pool.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM graph_snapshots WHERE namespace = ?", (namespace,)
            )
        deleted = cursor.rowcount > 0
        if deleted:
            logger.debug("Deleted graph %s", namespace)
        return deleted

    def list_namespaces(self, project_id: str) -> list[dict[str, Any]]:
        rows = self._pool.get().execute(
            """
            SELECT namespace, node_count, edge_count, created_at
            FROM graph_snapshots WHERE project_id = ? ORDER BY namespace
            """,
            (project_id,),
        ).fetchall()
        return [dict(row) for row in rows]
