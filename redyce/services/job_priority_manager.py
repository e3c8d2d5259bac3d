"""Job priority manager with preemption and resumption.

Priorities:
- LOW: requirement extraction (silent, interruptible)
- HIGH: question extraction, answer generation (interactive)

Rules:
- A HIGH job preempts a running LOW job on the same project
- When a HIGH job completes, the LOW job it paused is handed back for resumption
- Completion of any job is announced to the registered listeners

At most one job holds a project's lock at a time. Without a JobStore the
state lives in process memory only and is lost on restart. With one, locks
are shared with the other instances on the same database and leased to the
instance holding them.
"""

import logging
import random
import string
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from ..models import (
    Job,
    JobCompletionEvent,
    JobPriority,
    JobStatus,
    JobType,
    StartResult,
    priority_for,
)
from .job_store import JobStore

logger = logging.getLogger(__name__)

JOB_COMPLETED = "job_completed"
JOB_RESUMED = "job_resumed"

DEFAULT_RETENTION_SECONDS = 60 * 60
DEFAULT_LEASE_SECONDS = 15 * 60

COMPLETION_MESSAGES = {
    JobType.REQUIREMENT_EXTRACTION: "Extraction des exigences terminée",
    JobType.QUESTION_EXTRACTION: "Extraction des questions terminée",
    JobType.ANSWER_GENERATION: "Génération des réponses terminée",
}

_ID_ALPHABET = string.ascii_lowercase + string.digits


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_job_id() -> str:
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"job_{int(time.time() * 1000)}_{suffix}"


class JobPriorityManager:
    """Per-project arbitration between interactive and background jobs."""

    def __init__(
        self,
        store: Optional[JobStore] = None,
        retention_seconds: int = DEFAULT_RETENTION_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
        instance_id: Optional[str] = None,
        lease_seconds: int = DEFAULT_LEASE_SECONDS,
    ):
        """Initialize the manager.

        Args:
            store: Optional durable store for jobs and locks.
            retention_seconds: Age after completion at which cleanup evicts a job.
            clock: Source of the current UTC time.
            instance_id: Owner id written on locks and jobs; a restarted
                instance reusing it takes its jobs back at once.
            lease_seconds: Lifetime of a lock or job lease without heartbeat.
        """
        self._store = store
        self.instance_id = instance_id or uuid.uuid4().hex
        self._lease = timedelta(seconds=lease_seconds)
        self._retention = timedelta(seconds=retention_seconds)
        self._clock = clock
        self._jobs: Dict[str, Job] = {}
        self._project_locks: Dict[str, str] = {}  # project_id -> active job_id
        self._paused_jobs: Dict[str, Job] = {}  # project_id -> job to resume
        self._listeners: Dict[str, List[Callable]] = {JOB_COMPLETED: [], JOB_RESUMED: []}

    # --- Events ---

    def add_listener(self, event: str, callback: Callable) -> None:
        """Subscribe to job_completed (JobCompletionEvent) or job_resumed (Job)."""
        if event not in self._listeners:
            raise ValueError(f"Unknown event: {event}")
        self._listeners[event].append(callback)

    def remove_listener(self, event: str, callback: Callable) -> None:
        if callback in self._listeners.get(event, []):
            self._listeners[event].remove(callback)

    def _emit(self, event: str, payload) -> None:
        for callback in list(self._listeners[event]):
            try:
                callback(payload)
            except Exception:
                logger.exception(f"Listener for {event} failed")

    def _persist(self, job: Job) -> None:
        if self._store is not None:
            if job.completed_at is None:
                job.lease_expires_at = self._clock() + self._lease
            self._store.save_job(job)

    # --- Queries ---

    def get_job(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)

    def get_paused_job(self, project_id: str) -> Optional[Job]:
        return self._paused_jobs.get(project_id)

    def active_job(self, project_id: str) -> Optional[Job]:
        job_id = self._project_locks.get(project_id)
        return self._jobs.get(job_id) if job_id else None

    def has_high_priority_job(self, project_id: str) -> bool:
        """Check whether a HIGH job is running on the project."""
        job = self.active_job(project_id)
        return job is not None and job.priority == JobPriority.HIGH and job.status == JobStatus.RUNNING

    def should_pause_requirement_extraction(self, project_id: str) -> bool:
        return self.has_high_priority_job(project_id)

    # --- Transitions ---

    def register_job(
        self,
        project_id: str,
        job_type: JobType,
        document_ids: Optional[List[str]] = None,
        user_id: Optional[str] = None,
    ) -> str:
        """Create a PENDING job and return its id."""
        job = Job(
            id=generate_job_id(),
            project_id=project_id,
            type=job_type,
            priority=priority_for(job_type),
            status=JobStatus.PENDING,
            created_at=self._clock(),
            document_ids=list(document_ids) if document_ids is not None else None,
            user_id=user_id,
            owner=self.instance_id,
        )
        self._jobs[job.id] = job
        self._persist(job)

        logger.info(f"Registered job {job.id} ({job_type.value}) for project {project_id}")
        return job.id

    def start_job(self, job_id: str) -> StartResult:
        """Try to give a job the project lock.

        A HIGH job preempts a running LOW job, which is paused. Any other
        contention answers can_start=False and the caller must retry later.
        """
        job = self._jobs.get(job_id)
        if job is None:
            logger.error(f"Job {job_id} not found")
            return StartResult(can_start=False)

        active_id = self._project_locks.get(job.project_id)
        active = self._jobs.get(active_id) if active_id else None

        if active is not None and active.id != job.id and active.status == JobStatus.RUNNING:
            if job.priority == JobPriority.HIGH and active.priority == JobPriority.LOW:
                if not self._acquire(job, expected_holder=active.id):
                    return StartResult(can_start=False)
                logger.info(f"Pausing LOW priority job {active.id} for HIGH priority job {job.id}")
                self.pause_job(active.id)
                self._mark_running(job)
                return StartResult(can_start=True, paused_job_id=active.id)

            logger.info(f"Job {job.id} waiting for {active.id} to complete")
            return StartResult(can_start=False)

        if not self._acquire(job, expected_holder=active_id):
            logger.info(f"Job {job.id} waiting: project {job.project_id} is locked by another instance")
            return StartResult(can_start=False)

        self._mark_running(job)
        logger.info(f"Started job {job.id}")
        return StartResult(can_start=True)

    def _acquire(self, job: Job, expected_holder: Optional[str]) -> bool:
        if self._store is not None and expected_holder != job.id:
            now = self._clock()
            if not self._store.acquire_lock(
                job.project_id, job.id, self.instance_id, now, now + self._lease, expected_holder
            ):
                return False
        self._project_locks[job.project_id] = job.id
        return True

    def _mark_running(self, job: Job) -> None:
        job.status = JobStatus.RUNNING
        job.started_at = self._clock()
        if self._paused_jobs.get(job.project_id) is job:
            del self._paused_jobs[job.project_id]
        self._persist(job)

    def pause_job(self, job_id: str, current_document_index: Optional[int] = None) -> None:
        """Pause a job and keep it as the project's resumable job."""
        job = self._jobs.get(job_id)
        if job is None:
            logger.warning(f"Cannot pause unknown job {job_id}")
            return

        job.status = JobStatus.PAUSED
        job.paused_at = self._clock()
        if current_document_index is not None:
            job.current_document_index = current_document_index

        self._paused_jobs[job.project_id] = job
        self._persist(job)

        logger.info(f"Paused job {job_id} at document index {job.current_document_index}")

    def update_job_progress(self, job_id: str, current_document_index: int) -> None:
        job = self._jobs.get(job_id)
        if job is not None:
            job.current_document_index = current_document_index
            self._persist(job)

    def complete_job(self, job_id: str, success: bool = True, error: Optional[str] = None) -> Optional[Job]:
        """Finish a job, release its lock and announce it.

        Returns:
            The LOW job paused on the same project, marked PENDING, when the
            completed job was HIGH priority; None otherwise.
        """
        job = self._jobs.get(job_id)
        if job is None:
            logger.warning(f"Cannot complete unknown job {job_id}")
            return None

        job.status = JobStatus.COMPLETED if success else JobStatus.ERROR
        job.completed_at = self._clock()
        if error:
            job.error = error
        self._release(job)
        if self._paused_jobs.get(job.project_id) is job:
            del self._paused_jobs[job.project_id]
        self._persist(job)

        logger.info(f"Completed job {job_id} (success: {success})")

        self._emit(
            JOB_COMPLETED,
            JobCompletionEvent(
                job_id=job.id,
                project_id=job.project_id,
                type=job.type,
                success=success,
                message=COMPLETION_MESSAGES.get(job.type, "Job terminé") if success else error,
            ),
        )

        paused = self._paused_jobs.get(job.project_id)
        if paused is not None and job.priority == JobPriority.HIGH:
            del self._paused_jobs[job.project_id]
            paused.status = JobStatus.PENDING
            self._persist(paused)

            logger.info(f"Resuming paused job {paused.id} at document index {paused.current_document_index}")
            self._emit(JOB_RESUMED, paused)
            return paused

        return None

    def cancel_job(self, job_id: str) -> None:
        job = self._jobs.get(job_id)
        if job is None:
            logger.warning(f"Cannot cancel unknown job {job_id}")
            return

        job.status = JobStatus.CANCELLED
        job.completed_at = self._clock()
        self._release(job)
        if self._paused_jobs.get(job.project_id) is job:
            del self._paused_jobs[job.project_id]
        self._persist(job)

        logger.info(f"Cancelled job {job_id}")

    def _release(self, job: Job) -> None:
        if self._project_locks.get(job.project_id) == job.id:
            del self._project_locks[job.project_id]
        if self._store is not None:
            self._store.release_lock(job.project_id, job.id)

    # --- Maintenance ---

    def cleanup(self, now: Optional[datetime] = None) -> int:
        """Evict jobs completed more than the retention period ago.

        Must be called periodically by the owner of the manager.

        Returns:
            Number of evicted jobs.
        """
        cutoff = (now or self._clock()) - self._retention
        expired = [
            job_id
            for job_id, job in self._jobs.items()
            if job.completed_at is not None and job.completed_at < cutoff
        ]
        for job_id in expired:
            del self._jobs[job_id]
            if self._store is not None:
                self._store.delete_job(job_id)

        if expired:
            logger.debug(f"Evicted {len(expired)} finished jobs")
        return len(expired)

    def heartbeat(self) -> None:
        """Renew the leases of this instance's locks and unfinished jobs.

        Must be called more often than the lease duration by the owner of the
        manager, otherwise other instances may reclaim the work.
        """
        if self._store is not None:
            self._store.renew_leases(self.instance_id, self._clock() + self._lease)

    def _is_reclaimable(self, job: Job, now: datetime) -> bool:
        if job.owner == self.instance_id:
            return True
        return job.lease_expires_at is None or job.lease_expires_at <= now

    def recover(self) -> List[Job]:
        """Reload jobs from the store after a restart.

        Only jobs owned by this instance or whose owner let its lease expire
        are taken over; jobs of live instances are left untouched. Of those,
        jobs that were RUNNING died with the previous process: LOW jobs are
        restored as PAUSED at their saved cursor, HIGH jobs are marked ERROR.
        Jobs registered but never started are cancelled. Locks held by the
        taken over jobs are released.

        Returns:
            Paused LOW jobs, marked PENDING, ready to be resumed.
        """
        if self._store is None:
            return []

        now = self._clock()
        resumable: List[Job] = []
        skipped = 0
        for job in self._store.load_jobs():
            if not self._is_reclaimable(job, now):
                skipped += 1
                continue

            job.owner = self.instance_id
            self._jobs[job.id] = job
            if job.completed_at is not None:
                continue

            self._store.release_lock(job.project_id, job.id)

            if job.status == JobStatus.PENDING and job.started_at is None:
                job.status = JobStatus.CANCELLED
                job.completed_at = now
                self._persist(job)
                continue

            if job.status == JobStatus.RUNNING:
                if job.priority == JobPriority.HIGH:
                    job.status = JobStatus.ERROR
                    job.error = "Interrupted by process restart"
                    job.completed_at = now
                    self._persist(job)
                    continue
                job.status = JobStatus.PAUSED
                job.paused_at = now

            # PAUSED, or PENDING after being handed back
            job.status = JobStatus.PENDING
            self._persist(job)
            resumable.append(job)

        logger.info(
            f"Recovered {len(self._jobs)} jobs, {len(resumable)} to resume, "
            f"{skipped} left to live instances"
        )
        return resumable
