"""Backfill of requirement extraction for tender documents never processed."""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from ..models import (
    AO_DOCUMENT_TYPES,
    BackfillDocumentResult,
    BackfillRun,
    BackfillStatus,
    Document,
    ExtractionStatus,
)
from ..services import DocumentStore
from .requirement_extraction import RequirementExtractionJob

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 3


class BackfillOrchestrator:
    """Runs extraction over existing documents in bounded concurrent batches."""

    def __init__(
        self,
        documents: DocumentStore,
        extraction: RequirementExtractionJob,
        concurrency: int = DEFAULT_CONCURRENCY,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._documents = documents
        self._extraction = extraction
        self._concurrency = concurrency
        self._runs: Dict[str, BackfillRun] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._background_tasks: Set[asyncio.Task] = set()

    async def run(
        self,
        user_id: str,
        project_id: Optional[str] = None,
        include_errors: bool = False,
    ) -> BackfillRun:
        """
        Start a backfill and process its first batch.

        The candidates are the tender documents never processed (WAITING or
        no status), plus ERROR ones when include_errors is set. The first
        batch is awaited; the remaining batches continue in a background
        task that appends to the returned run.

        Args:
            user_id: User the AI usage is attributed to.
            project_id: Restrict the backfill to one project.
            include_errors: Also retry documents in ERROR.

        Returns:
            The BackfillRun, with the first batch results filled in.
        """
        statuses: List[Optional[ExtractionStatus]] = [ExtractionStatus.WAITING, None]
        if include_errors:
            statuses.append(ExtractionStatus.ERROR)

        documents = await asyncio.to_thread(
            self._documents.list_documents,
            project_id,
            statuses,
            AO_DOCUMENT_TYPES,
        )

        for document in documents:
            await asyncio.to_thread(self._documents.set_status, document.id, ExtractionStatus.WAITING)

        batches = [
            documents[i:i + self._concurrency]
            for i in range(0, len(documents), self._concurrency)
        ]
        run = BackfillRun(
            id=uuid.uuid4().hex,
            total_documents=len(documents),
            batches=len(batches),
            started_at=datetime.now(timezone.utc),
        )
        self._runs[run.id] = run

        logger.info(
            f"Backfill {run.id}: {len(documents)} documents in {len(batches)} batches "
            f"(project: {project_id or 'all'}, include_errors: {include_errors})"
        )

        if not batches:
            self._finish(run)
            return run

        run.results.extend(await self._run_batch(batches[0], user_id))
        run.processed_immediately = len(batches[0])

        if len(batches) == 1:
            self._finish(run)
            return run

        task = asyncio.get_running_loop().create_task(self._run_remaining(run, batches[1:], user_id))
        self._tasks[run.id] = task
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        task.add_done_callback(lambda t: self._log_task_failure(run.id, t))
        return run

    async def _run_remaining(self, run: BackfillRun, batches: List[List[Document]], user_id: str) -> None:
        try:
            for index, batch in enumerate(batches, start=2):
                logger.info(f"Backfill {run.id}: batch {index}/{run.batches}")
                run.results.extend(await self._run_batch(batch, user_id))
        finally:
            self._finish(run)

    async def _run_batch(self, batch: List[Document], user_id: str) -> List[BackfillDocumentResult]:
        return list(await asyncio.gather(*(self._process(document, user_id) for document in batch)))

    async def _process(self, document: Document, user_id: str) -> BackfillDocumentResult:
        try:
            result = await self._extraction.extract_for_document(document.id, user_id)
        except Exception as e:
            logger.exception(f"Backfill failed for document {document.id}")
            return BackfillDocumentResult(
                document_id=document.id,
                name=document.name,
                status=ExtractionStatus.ERROR.value,
                error=str(e) or e.__class__.__name__,
            )

        if result.paused:
            status = ExtractionStatus.WAITING
        elif result.success:
            status = ExtractionStatus.DONE
        else:
            status = ExtractionStatus.ERROR

        return BackfillDocumentResult(
            document_id=document.id,
            name=document.name,
            status=status.value,
            created=result.requirements_created,
            skipped=result.requirements_skipped,
            error=result.error,
        )

    def _finish(self, run: BackfillRun) -> None:
        run.status = BackfillStatus.COMPLETED
        run.completed_at = datetime.now(timezone.utc)
        logger.info(
            f"Backfill {run.id} completed: {len(run.results)} processed, {len(run.failed)} failed"
        )

    @staticmethod
    def _log_task_failure(run_id: str, task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Backfill {run_id} background batches failed: {task.exception()}")

    def get_run(self, run_id: str) -> Optional[BackfillRun]:
        return self._runs.get(run_id)

    async def wait(self, run_id: str) -> Optional[BackfillRun]:
        """Wait until the background batches of a run have finished."""
        task = self._tasks.get(run_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        return self._runs.get(run_id)

    async def wait_for_background(self) -> None:
        """Wait for the background batches of every run."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    async def summary(self, project_id: Optional[str] = None) -> Dict[str, Any]:
        """Extraction progress of the tender documents, for the backfill status view."""
        documents = await asyncio.to_thread(
            self._documents.list_documents,
            project_id,
            None,
            AO_DOCUMENT_TYPES,
        )

        counts = {status.value: 0 for status in ExtractionStatus}
        not_started = 0
        for document in documents:
            if document.requirement_status is None:
                not_started += 1
            else:
                counts[document.requirement_status.value] += 1

        return {
            "total": len(documents),
            "waiting": counts[ExtractionStatus.WAITING.value],
            "processing": counts[ExtractionStatus.PROCESSING.value],
            "done": counts[ExtractionStatus.DONE.value],
            "error": counts[ExtractionStatus.ERROR.value],
            "not_started": not_started,
            "documents": [
                {
                    "id": document.id,
                    "name": document.name,
                    "project_id": document.project_id,
                    "document_type": document.document_type,
                    "status": document.requirement_status.value if document.requirement_status else None,
                    "processed_at": document.requirement_processed_at.isoformat()
                    if document.requirement_processed_at
                    else None,
                    "error": document.requirement_error_message,
                }
                for document in documents
            ],
        }
