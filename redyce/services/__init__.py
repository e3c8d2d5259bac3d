"""Persistence and coordination services."""

from redyce.services.document_store import DocumentStore, NotFoundError
from redyce.services.requirement_store import RequirementStore
from redyce.services.usage_tracker import UsageTracker, calculate_cost
from redyce.services.job_store import JobStore
from redyce.services.job_priority_manager import (
    JOB_COMPLETED,
    JOB_RESUMED,
    JobPriorityManager,
)

__all__ = [
    "DocumentStore",
    "NotFoundError",
    "RequirementStore",
    "UsageTracker",
    "calculate_cost",
    "JobStore",
    "JOB_COMPLETED",
    "JOB_RESUMED",
    "JobPriorityManager",
]
