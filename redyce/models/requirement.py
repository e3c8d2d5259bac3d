"""Requirement models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class RequirementPriority(str, Enum):
    """Impact of a requirement on the tender response."""

    LOW = "LOW"
    MED = "MED"
    HIGH = "HIGH"


class RequirementStatus(str, Enum):
    """Workflow status of a requirement."""

    A_TRAITER = "A_TRAITER"
    SUPPRIMEE = "SUPPRIMEE"  # Soft-deleted by the user


@dataclass(frozen=True)
class Requirement:
    """One actionable obligation extracted from a source document."""

    id: str
    project_id: str
    document_id: str
    title: str
    description: str
    content_hash: str  # Dedup key together with project_id and document_id
    priority: RequirementPriority = RequirementPriority.LOW
    status: RequirementStatus = RequirementStatus.A_TRAITER
    code: Optional[str] = None
    category: Optional[str] = None
    source_page: Optional[int] = None
    source_quote: Optional[str] = None
    created_at: Optional[datetime] = None
