"""Result records returned by the extraction job and the backfill."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


@dataclass(frozen=True)
class ExtractionResult:
    """Outcome of extracting requirements from a single document."""

    success: bool
    document_id: str
    requirements_created: int = 0
    requirements_skipped: int = 0  # Duplicates by content hash
    error: Optional[str] = None
    paused: bool = False  # Yielded to a high priority job before processing


@dataclass(frozen=True)
class ProjectExtractionResult:
    """Outcome of a project-wide extraction job."""

    success: bool
    project_id: str
    job_id: str
    total_documents: int
    processed_documents: int
    total_requirements: int
    paused: bool = False


@dataclass(frozen=True)
class BackfillDocumentResult:
    document_id: str
    name: str
    status: str  # "DONE", "ERROR", or "WAITING" when deferred
    created: int = 0
    skipped: int = 0
    error: Optional[str] = None


class BackfillStatus(str, Enum):
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"


@dataclass
class BackfillRun:
    """Aggregate of one backfill, filled in as batches finish."""

    id: str
    total_documents: int
    batches: int
    started_at: datetime
    status: BackfillStatus = BackfillStatus.RUNNING
    results: List[BackfillDocumentResult] = field(default_factory=list)
    processed_immediately: int = 0
    completed_at: Optional[datetime] = None

    @property
    def processing_in_background(self) -> int:
        return max(0, self.total_documents - self.processed_immediately)

    @property
    def failed(self) -> List[BackfillDocumentResult]:
        return [r for r in self.results if r.status == "ERROR"]
