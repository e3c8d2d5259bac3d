"""Document models for requirement extraction tracking."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class ExtractionStatus(str, Enum):
    """Requirement extraction status of a source document."""

    WAITING = "WAITING"
    PROCESSING = "PROCESSING"
    DONE = "DONE"
    ERROR = "ERROR"


# Tender document categories processed by the backfill
AO_DOCUMENT_TYPES = ("AE", "RC", "CCAP", "CCTP", "DPGF", "AUTRE", "MODELE_MEMOIRE")
DEFAULT_DOCUMENT_TYPE = "AUTRE"


@dataclass(frozen=True)
class Document:
    """A source document uploaded to a project.

    Owned by the surrounding application; the extraction job only mutates
    the requirement_* fields.
    """

    id: str
    project_id: str
    name: str
    mime_type: str
    file_path: str  # Location of the stored bytes
    document_type: str = DEFAULT_DOCUMENT_TYPE
    requirement_status: Optional[ExtractionStatus] = None  # None = never enqueued
    requirement_processed_at: Optional[datetime] = None
    requirement_error_message: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class DocumentAnalysis:
    """Cached text extraction result for a document."""

    id: str
    document_id: str
    analysis_type: str  # "extraction"
    status: str  # "completed"
    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class ExtractedText:
    """Plain text returned by the document text extractor."""

    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RequirementsStatus:
    """Per-project extraction progress."""

    total: int
    done: int
    processing: int
    waiting: int  # Includes documents never enqueued
    error: int
    requirements_count: int
