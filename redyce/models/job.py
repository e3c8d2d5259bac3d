"""In-process job models for the priority manager."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class JobType(str, Enum):
    REQUIREMENT_EXTRACTION = "REQUIREMENT_EXTRACTION"
    QUESTION_EXTRACTION = "QUESTION_EXTRACTION"
    ANSWER_GENERATION = "ANSWER_GENERATION"


class JobPriority(str, Enum):
    LOW = "LOW"
    HIGH = "HIGH"


class JobStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"
    CANCELLED = "CANCELLED"


def priority_for(job_type: JobType) -> JobPriority:
    """Requirement extraction runs in the background, everything else is interactive."""
    if job_type == JobType.REQUIREMENT_EXTRACTION:
        return JobPriority.LOW
    return JobPriority.HIGH


@dataclass
class Job:
    """A unit of per-project work tracked by the priority manager."""

    id: str
    project_id: str
    type: JobType
    priority: JobPriority
    status: JobStatus
    created_at: datetime
    document_ids: Optional[List[str]] = None  # Only for requirement extraction
    user_id: Optional[str] = None  # Attribution for resumed work
    current_document_index: int = 0  # Resume cursor into document_ids
    started_at: Optional[datetime] = None
    paused_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    owner: Optional[str] = None  # Instance id of the manager running it
    lease_expires_at: Optional[datetime] = None


@dataclass(frozen=True)
class JobCompletionEvent:
    """Payload of the job_completed notification."""

    job_id: str
    project_id: str
    type: JobType
    success: bool
    message: Optional[str] = None


@dataclass(frozen=True)
class StartResult:
    """Answer of JobPriorityManager.start_job."""

    can_start: bool
    paused_job_id: Optional[str] = None
