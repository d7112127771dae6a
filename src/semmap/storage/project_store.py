"""SQLite-backed mapping project persistence.

Stores each project as a JSON document alongside its name, depth and
timestamps. All writes use transactions. Designed for single-user CLI usage.
"""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime
from pathlib import Path

from loguru import logger

from semmap.errors import StorageError, UnknownReferenceError
from semmap.models.mapping import MappingProject


class SqliteMappingProjectStore:
    """SQLite-backed persistence for MappingProject documents."""

    def __init__(self, db_path: Path) -> None:
        """Open or create the SQLite database.

        Args:
            db_path: Path to the SQLite database file.
                     Parent directory is created if needed.
        """
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_tables()

    def _ensure_tables(self) -> None:
        """Create tables if they don't exist."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS mapping_projects (
                identifier TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                depth INTEGER NOT NULL,
                project_json TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_mapping_projects_name
                ON mapping_projects(name);
        """)
        self._conn.commit()

    def add(self, project: MappingProject) -> None:
        now = datetime.now(tz=UTC).isoformat()
        try:
            with self._conn:
                self._conn.execute(
                    """INSERT INTO mapping_projects
                       (identifier, name, depth, project_json, created_at, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?)""",
                    (
                        project.identifier,
                        project.name,
                        project.depth,
                        project.model_dump_json(),
                        now,
                        now,
                    ),
                )
        except sqlite3.IntegrityError as e:
            msg = f"Mapping project '{project.identifier}' already exists"
            raise StorageError(msg) from e
        logger.debug("Stored mapping project {id} ({name})", id=project.identifier, name=project.name)

    def update(self, project: MappingProject) -> None:
        now = datetime.now(tz=UTC).isoformat()
        with self._conn:
            cursor = self._conn.execute(
                """UPDATE mapping_projects
                   SET name = ?, depth = ?, project_json = ?, updated_at = ?
                   WHERE identifier = ?""",
                (project.name, project.depth, project.model_dump_json(), now, project.identifier),
            )
        if cursor.rowcount == 0:
            raise UnknownReferenceError("mapping project", project.identifier)

    def delete(self, identifier: str) -> None:
        with self._conn:
            cursor = self._conn.execute(
                "DELETE FROM mapping_projects WHERE identifier = ?", (identifier,)
            )
        if cursor.rowcount == 0:
            raise UnknownReferenceError("mapping project", identifier)

    def get(self, identifier: str) -> MappingProject | None:
        row = self._conn.execute(
            "SELECT project_json FROM mapping_projects WHERE identifier = ?", (identifier,)
        ).fetchone()
        if row is None:
            return None
        return MappingProject.model_validate_json(row["project_json"])

    def get_all(self) -> list[MappingProject]:
        rows = self._conn.execute(
            "SELECT project_json FROM mapping_projects ORDER BY created_at, name"
        ).fetchall()
        return [MappingProject.model_validate_json(row["project_json"]) for row in rows]

    def find_by_name(self, name: str) -> list[MappingProject]:
        rows = self._conn.execute(
            "SELECT project_json FROM mapping_projects WHERE name = ?", (name,)
        ).fetchall()
        return [MappingProject.model_validate_json(row["project_json"]) for row in rows]

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
