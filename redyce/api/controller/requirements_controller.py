"""HTTP controller for requirement extraction and backfill."""

import asyncio
import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from redyce.bootstrap import ServiceContainer
from redyce.models import BackfillRun, ExtractionStatus
from redyce.services import NotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["requirements"])


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


class ExtractRequirementsRequest(BaseModel):
    """Body of a single document or project extraction request."""

    user_id: str = Field(min_length=1)


class BackfillRequest(BaseModel):
    """Body of a backfill request."""

    user_id: str = Field(min_length=1)
    project_id: Optional[str] = None
    include_errors: bool = False


def _run_to_dict(run: BackfillRun) -> dict:
    return {
        "run_id": run.id,
        "status": run.status.value,
        "total_documents": run.total_documents,
        "batches": run.batches,
        "processed_immediately": run.processed_immediately,
        "processing_in_background": run.processing_in_background,
        "started_at": run.started_at.isoformat(),
        "completed_at": run.completed_at.isoformat() if run.completed_at else None,
        "results": [asdict(result) for result in run.results],
        "errors": [asdict(result) for result in run.failed],
    }


@router.post("/documents/{document_id}/extract-requirements")
async def extract_document_requirements(
    document_id: str,
    body: ExtractRequirementsRequest,
    background_tasks: BackgroundTasks,
    services: ServiceContainer = Depends(get_services),
) -> dict:
    """
    Enqueue a document and extract its requirements in the background.

    Responses:
    - 404 if the document does not exist
    - 409 if an extraction is already in progress for it
    """
    document = await asyncio.to_thread(services.documents.require_document, document_id)

    if document.requirement_status == ExtractionStatus.PROCESSING:
        raise HTTPException(status_code=409, detail="Extraction already in progress")

    await services.extraction.enqueue_document(document_id)
    background_tasks.add_task(services.extraction.extract_for_document, document_id, body.user_id)

    logger.info(f"Extraction requested for document {document_id} by {body.user_id}")
    return {
        "success": True,
        "document_id": document_id,
        "message": "Extraction des exigences démarrée",
    }


@router.post("/projects/{project_id}/extract-requirements")
async def extract_project_requirements(
    project_id: str,
    body: ExtractRequirementsRequest,
    services: ServiceContainer = Depends(get_services),
) -> dict:
    """Start a background extraction job over the project's pending documents."""
    services.extraction.start_background_extraction(project_id, body.user_id)
    return {"success": True, "project_id": project_id}


@router.get("/projects/{project_id}/requirements-status")
async def requirements_status(
    project_id: str,
    services: ServiceContainer = Depends(get_services),
) -> dict:
    status = await services.extraction.requirements_status(project_id)
    return asdict(status)


@router.post("/requirements/backfill")
async def start_backfill(
    body: BackfillRequest,
    services: ServiceContainer = Depends(get_services),
) -> dict:
    """Process the first batch now and the rest in the background."""
    run = await services.backfill.run(body.user_id, body.project_id, body.include_errors)

    response = _run_to_dict(run)
    response["message"] = (
        f"{run.processed_immediately} document(s) traité(s), "
        f"{run.processing_in_background} en cours en arrière-plan"
    )
    return response


@router.get("/requirements/backfill")
async def backfill_summary(
    project_id: Optional[str] = None,
    services: ServiceContainer = Depends(get_services),
) -> dict:
    return await services.backfill.summary(project_id)


@router.get("/requirements/backfill/{run_id}")
async def backfill_run(
    run_id: str,
    services: ServiceContainer = Depends(get_services),
) -> dict:
    run = services.backfill.get_run(run_id)
    if run is None:
        raise NotFoundError(f"Backfill run {run_id} not found")
    return _run_to_dict(run)
