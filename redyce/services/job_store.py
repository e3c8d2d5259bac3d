"""Durable job records and project locks for the priority manager.

Keeps lock ownership and paused-job cursors across process restarts, and
makes lock acquisition a conditional write so that several application
instances sharing the database cannot hold the same project lock. Locks and
unfinished jobs carry the id of the owning instance and a lease that the
owner renews; an expired lease marks its owner as gone.
"""

import json
import logging
from datetime import datetime
from typing import List, Optional

from ..clients import SqliteClient
from ..models import Job, JobPriority, JobStatus, JobType

logger = logging.getLogger(__name__)

# SQL statements
CREATE_JOBS_SQL = """
CREATE TABLE IF NOT EXISTS jobs (
    id TEXT PRIMARY KEY,
    project_id TEXT NOT NULL,
    type TEXT NOT NULL,
    priority TEXT NOT NULL,
    status TEXT NOT NULL,
    document_ids TEXT,
    user_id TEXT,
    current_document_index INTEGER NOT NULL,
    created_at TEXT NOT NULL,
    started_at TEXT,
    paused_at TEXT,
    completed_at TEXT,
    error TEXT,
    owner TEXT,
    lease_expires_at TEXT
)
"""

CREATE_LOCKS_SQL = """
CREATE TABLE IF NOT EXISTS project_locks (
    project_id TEXT PRIMARY KEY,
    job_id TEXT NOT NULL,
    owner TEXT NOT NULL,
    acquired_at TEXT NOT NULL,
    expires_at TEXT NOT NULL
)
"""

JOB_COLUMNS = """id, project_id, type, priority, status, document_ids, user_id, current_document_index,
    created_at, started_at, paused_at, completed_at, error, owner, lease_expires_at"""


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat(timespec="microseconds") if value else None


def _parse(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class JobStore:
    """SQLite persistence for Job records and per-project locks."""

    def __init__(self, sqlite_client: SqliteClient):
        self._sqlite_client = sqlite_client
        self._sqlite_client.execute_query(CREATE_JOBS_SQL)
        self._sqlite_client.execute_query(CREATE_LOCKS_SQL)
        logger.debug("Job tables initialized")

    def save_job(self, job: Job) -> None:
        """Insert or replace the full job record."""
        self._sqlite_client.execute_query(
            f"INSERT OR REPLACE INTO jobs ({JOB_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                job.id,
                job.project_id,
                job.type.value,
                job.priority.value,
                job.status.value,
                json.dumps(job.document_ids) if job.document_ids is not None else None,
                job.user_id,
                job.current_document_index,
                _iso(job.created_at),
                _iso(job.started_at),
                _iso(job.paused_at),
                _iso(job.completed_at),
                job.error,
                job.owner,
                _iso(job.lease_expires_at),
            ),
        )

    def load_jobs(self) -> List[Job]:
        result = self._sqlite_client.execute_query(
            f"SELECT {JOB_COLUMNS} FROM jobs ORDER BY created_at"
        )
        return [
            Job(
                id=row[0],
                project_id=row[1],
                type=JobType(row[2]),
                priority=JobPriority(row[3]),
                status=JobStatus(row[4]),
                document_ids=json.loads(row[5]) if row[5] is not None else None,
                user_id=row[6],
                current_document_index=row[7],
                created_at=_parse(row[8]),
                started_at=_parse(row[9]),
                paused_at=_parse(row[10]),
                completed_at=_parse(row[11]),
                error=row[12],
                owner=row[13],
                lease_expires_at=_parse(row[14]),
            )
            for row in result
        ]

    def delete_job(self, job_id: str) -> None:
        self._sqlite_client.execute_write("DELETE FROM jobs WHERE id = ?", (job_id,))

    def acquire_lock(
        self,
        project_id: str,
        job_id: str,
        owner: str,
        acquired_at: datetime,
        expires_at: datetime,
        expected_holder: Optional[str] = None,
    ) -> bool:
        """Take the project lock.

        Args:
            project_id: Project to lock.
            job_id: New holder.
            owner: Instance id of the manager taking the lock.
            acquired_at: Acquisition timestamp.
            expires_at: End of the lease unless renewed.
            expected_holder: Current holder being preempted, or None when the
                lock is expected to be free or its lease to have expired.

        Returns:
            True if job_id now holds the lock.
        """
        if expected_holder is None:
            rows = self._sqlite_client.execute_write(
                """INSERT INTO project_locks (project_id, job_id, owner, acquired_at, expires_at)
                   VALUES (?, ?, ?, ?, ?)
                   ON CONFLICT(project_id) DO UPDATE SET
                       job_id = excluded.job_id,
                       owner = excluded.owner,
                       acquired_at = excluded.acquired_at,
                       expires_at = excluded.expires_at
                   WHERE project_locks.expires_at <= excluded.acquired_at""",
                (project_id, job_id, owner, _iso(acquired_at), _iso(expires_at)),
            )
        else:
            rows = self._sqlite_client.execute_write(
                """UPDATE project_locks SET job_id = ?, owner = ?, acquired_at = ?, expires_at = ?
                   WHERE project_id = ? AND job_id = ?""",
                (job_id, owner, _iso(acquired_at), _iso(expires_at), project_id, expected_holder),
            )
        return rows == 1

    def release_lock(self, project_id: str, job_id: str) -> bool:
        """Release the lock if job_id holds it."""
        rows = self._sqlite_client.execute_write(
            "DELETE FROM project_locks WHERE project_id = ? AND job_id = ?",
            (project_id, job_id),
        )
        return rows == 1

    def renew_leases(self, owner: str, expires_at: datetime) -> int:
        """Extend the locks and unfinished jobs of one instance.

        Returns:
            Number of renewed locks.
        """
        expires = _iso(expires_at)
        self._sqlite_client.execute_write(
            "UPDATE jobs SET lease_expires_at = ? WHERE owner = ? AND completed_at IS NULL",
            (expires, owner),
        )
        return self._sqlite_client.execute_write(
            "UPDATE project_locks SET expires_at = ? WHERE owner = ?",
            (expires, owner),
        )

    def lock_holder(self, project_id: str) -> Optional[str]:
        result = self._sqlite_client.execute_query(
            "SELECT job_id FROM project_locks WHERE project_id = ?",
            (project_id,),
        )
        return result[0][0] if result else None
