"""Data models module."""

from redyce.models.ai import AICompletion, AIPrompt, CompletionMetadata
from redyce.models.document import (
    AO_DOCUMENT_TYPES,
    DEFAULT_DOCUMENT_TYPE,
    Document,
    DocumentAnalysis,
    ExtractedText,
    ExtractionStatus,
    RequirementsStatus,
)
from redyce.models.extraction_result import (
    BackfillDocumentResult,
    BackfillRun,
    BackfillStatus,
    ExtractionResult,
    ProjectExtractionResult,
)
from redyce.models.job import (
    Job,
    JobCompletionEvent,
    JobPriority,
    JobStatus,
    JobType,
    StartResult,
    priority_for,
)
from redyce.models.requirement import Requirement, RequirementPriority, RequirementStatus
from redyce.models.usage import UsageRecord

__all__ = [
    "AICompletion",
    "AIPrompt",
    "CompletionMetadata",
    "AO_DOCUMENT_TYPES",
    "DEFAULT_DOCUMENT_TYPE",
    "Document",
    "DocumentAnalysis",
    "ExtractedText",
    "ExtractionStatus",
    "RequirementsStatus",
    "BackfillDocumentResult",
    "BackfillRun",
    "BackfillStatus",
    "ExtractionResult",
    "ProjectExtractionResult",
    "Job",
    "JobCompletionEvent",
    "JobPriority",
    "JobStatus",
    "JobType",
    "StartResult",
    "priority_for",
    "Requirement",
    "RequirementPriority",
    "RequirementStatus",
    "UsageRecord",
]
