"""Requirement extraction module."""

from redyce.extraction.backfill import BackfillOrchestrator
from redyce.extraction.hashing import generate_requirement_hash, normalize_title
from redyce.extraction.parsing import (
    ExtractedRequirement,
    RequirementExtractionPayload,
    ResponseParseError,
    normalize_priority,
    parse_requirements_response,
    window_text,
)
from redyce.extraction.requirement_extraction import ExtractionError, RequirementExtractionJob

__all__ = [
    "BackfillOrchestrator",
    "generate_requirement_hash",
    "normalize_title",
    "ExtractedRequirement",
    "RequirementExtractionPayload",
    "ResponseParseError",
    "normalize_priority",
    "parse_requirements_response",
    "window_text",
    "ExtractionError",
    "RequirementExtractionJob",
]
