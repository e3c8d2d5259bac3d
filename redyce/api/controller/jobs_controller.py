"""HTTP controller for interactive jobs arbitrated by the priority manager."""

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from redyce.api.controller.requirements_controller import get_services
from redyce.api.errors import InvalidRequestError
from redyce.bootstrap import ServiceContainer
from redyce.models import Job, JobType, StartResult
from redyce.services import NotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["jobs"])


class JobRequest(BaseModel):
    """Body of an interactive job registration."""

    type: JobType
    user_id: Optional[str] = None


class CompleteJobRequest(BaseModel):
    success: bool = True
    error: Optional[str] = None


def _require_job(services: ServiceContainer, job_id: str) -> Job:
    job = services.priority_manager.get_job(job_id)
    if job is None:
        raise NotFoundError(f"Job {job_id} not found")
    return job


def _start_to_dict(job_id: str, result: StartResult) -> dict:
    return {
        "job_id": job_id,
        "can_start": result.can_start,
        "paused_job_id": result.paused_job_id,
    }


@router.post("/projects/{project_id}/jobs")
async def register_job(
    project_id: str,
    body: JobRequest,
    services: ServiceContainer = Depends(get_services),
) -> dict:
    """
    Register an interactive job and try to start it.

    A running requirement extraction on the project is paused. When another
    interactive job holds the project, can_start is false and the caller
    retries with POST /jobs/{job_id}/start.
    """
    if body.type == JobType.REQUIREMENT_EXTRACTION:
        raise InvalidRequestError(
            "Requirement extraction jobs are started with POST /projects/{project_id}/extract-requirements"
        )

    manager = services.priority_manager
    job_id = manager.register_job(project_id, body.type, user_id=body.user_id)
    return _start_to_dict(job_id, manager.start_job(job_id))


@router.post("/jobs/{job_id}/start")
async def start_job(
    job_id: str,
    services: ServiceContainer = Depends(get_services),
) -> dict:
    _require_job(services, job_id)
    return _start_to_dict(job_id, services.priority_manager.start_job(job_id))


@router.post("/jobs/{job_id}/complete")
async def complete_job(
    job_id: str,
    body: CompleteJobRequest,
    services: ServiceContainer = Depends(get_services),
) -> dict:
    """Complete a job; a requirement extraction it paused resumes in the background."""
    _require_job(services, job_id)
    resumed = services.priority_manager.complete_job(job_id, body.success, body.error)
    return {
        "job_id": job_id,
        "resumed_job_id": resumed.id if resumed else None,
    }


@router.post("/jobs/{job_id}/cancel")
async def cancel_job(
    job_id: str,
    services: ServiceContainer = Depends(get_services),
) -> dict:
    _require_job(services, job_id)
    services.priority_manager.cancel_job(job_id)
    return {"job_id": job_id, "status": "CANCELLED"}


@router.get("/jobs/{job_id}")
async def get_job(
    job_id: str,
    services: ServiceContainer = Depends(get_services),
) -> dict:
    return asdict(_require_job(services, job_id))
