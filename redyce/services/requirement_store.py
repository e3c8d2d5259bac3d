"""Requirement store with content-hash deduplication."""

import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from ..clients import SqliteClient
from ..models import Requirement, RequirementPriority, RequirementStatus

logger = logging.getLogger(__name__)

# SQL statements
CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS requirements (
    id TEXT PRIMARY KEY,
    project_id TEXT NOT NULL,
    document_id TEXT NOT NULL,
    code TEXT,
    title TEXT NOT NULL,
    description TEXT NOT NULL,
    category TEXT,
    priority TEXT NOT NULL,
    status TEXT NOT NULL,
    source_page INTEGER,
    source_quote TEXT,
    content_hash TEXT NOT NULL,
    created_at TEXT NOT NULL,
    UNIQUE (project_id, document_id, content_hash)
)
"""

REQUIREMENT_COLUMNS = """id, project_id, document_id, code, title, description, category,
    priority, status, source_page, source_quote, content_hash, created_at"""


class RequirementStore:
    """SQLite-backed requirement table keyed on (project, document, content hash)."""

    def __init__(self, sqlite_client: SqliteClient):
        self._sqlite_client = sqlite_client
        self._sqlite_client.execute_query(CREATE_TABLE_SQL)
        logger.debug("Requirements table initialized")

    def insert_if_absent(self, requirement: Requirement) -> bool:
        """Insert a requirement unless its dedup key already exists.

        An existing row is never overwritten.

        Args:
            requirement: Requirement to insert.

        Returns:
            True if created, False if skipped as a duplicate.
        """
        created_at = requirement.created_at or datetime.now(timezone.utc)
        try:
            self._sqlite_client.execute_query(
                f"INSERT INTO requirements ({REQUIREMENT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    requirement.id or uuid.uuid4().hex,
                    requirement.project_id,
                    requirement.document_id,
                    requirement.code,
                    requirement.title,
                    requirement.description,
                    requirement.category,
                    requirement.priority.value,
                    requirement.status.value,
                    requirement.source_page,
                    requirement.source_quote,
                    requirement.content_hash,
                    created_at.isoformat(),
                ),
            )
        except sqlite3.IntegrityError:
            logger.debug(
                f"Skipping duplicate requirement {requirement.content_hash} "
                f"for document {requirement.document_id}"
            )
            return False
        return True

    def list_for_document(self, document_id: str) -> List[Requirement]:
        result = self._sqlite_client.execute_query(
            f"SELECT {REQUIREMENT_COLUMNS} FROM requirements WHERE document_id = ? ORDER BY created_at, rowid",
            (document_id,),
        )
        return [self._row_to_requirement(row) for row in result]

    def list_for_project(self, project_id: str, limit: Optional[int] = None) -> List[Requirement]:
        """List a project's requirements, most recent first."""
        query = f"SELECT {REQUIREMENT_COLUMNS} FROM requirements WHERE project_id = ? ORDER BY created_at DESC, rowid DESC"
        params: tuple = (project_id,)
        if limit is not None:
            query += " LIMIT ?"
            params = (project_id, limit)
        result = self._sqlite_client.execute_query(query, params)
        return [self._row_to_requirement(row) for row in result]

    def count(self, project_id: str) -> int:
        result = self._sqlite_client.execute_query(
            "SELECT COUNT(*) FROM requirements WHERE project_id = ?",
            (project_id,),
        )
        return result[0][0]

    @staticmethod
    def _row_to_requirement(row) -> Requirement:
        return Requirement(
            id=row[0],
            project_id=row[1],
            document_id=row[2],
            code=row[3],
            title=row[4],
            description=row[5],
            category=row[6],
            priority=RequirementPriority(row[7]),
            status=RequirementStatus(row[8]),
            source_page=row[9],
            source_quote=row[10],
            content_hash=row[11],
            created_at=datetime.fromisoformat(row[12]),
        )
