"""Requirement extraction job.

Extracts actionable requirements from tender documents, idempotently:
- Per document: WAITING -> PROCESSING -> DONE | ERROR
- Deduplication by content hash of (project, document, normalized title)
- Project-wide runs yield to high priority jobs and resume at their cursor
"""

import asyncio
import logging
import uuid
from typing import Dict, List, Optional, Set, Tuple

from ..clients import AICompletionClient, DocumentTextExtractor
from ..config import ExtractionConfig
from ..models import (
    AIPrompt,
    AICompletion,
    Document,
    ExtractionResult,
    ExtractionStatus,
    Job,
    JobStatus,
    JobType,
    ProjectExtractionResult,
    Requirement,
    RequirementsStatus,
    RequirementStatus,
)
from ..services import DocumentStore, JobPriorityManager, RequirementStore, UsageTracker
from .hashing import generate_requirement_hash
from .parsing import (
    ExtractedRequirement,
    normalize_priority,
    parse_requirements_response,
    window_text,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_TEMPERATURE = 0.2
DEFAULT_MAX_TOKENS = 4000
USAGE_OPERATION = "requirement_extraction"

DEFAULT_EXTRACTION_CONFIG = ExtractionConfig(
    min_text_length=50,
    max_text_length=30000,
    edge_length=15000,
)

SYSTEM_PROMPT = (
    "Tu es un expert en analyse d'appels d'offres BTP. Tu extrais avec précision toutes les "
    "exigences actionnables réellement présentes dans le document. Tu ne crées JAMAIS "
    "d'exigences qui ne sont pas présentes dans le document source. En cas de doute, "
    "marque l'exigence avec priority: \"LOW\"."
)

USER_PROMPT = """Analyse le document suivant et extrais TOUTES les exigences actionnables : livrables, contraintes, critères, délais, normes, pénalités, formats, pièces demandées.

Document:
{0}

Pour chaque exigence, fournis :
- code : code de référence s'il figure dans le texte (ex : "REQ-001", "Art. 3.2"), sinon null
- title : titre court et actionnable (100 caractères maximum)
- description : description détaillée
- category : technique, administratif, réglementaire, qualité, délai ou format
- priority : HIGH (délais critiques, pénalités, normes obligatoires, critères d'exclusion), MED (contraintes importantes, formats spécifiques) ou LOW (informations complémentaires)
- sourceQuote : citation exacte du document (2 à 3 phrases maximum)
- sourcePage : numéro de page si mentionné, sinon null

Réponds uniquement avec un objet JSON de la forme :
{{"requirements": [{{"code": "REQ-001", "title": "...", "description": "...", "category": "technique", "priority": "HIGH", "sourceQuote": "...", "sourcePage": 12}}]}}
"""


class ExtractionError(Exception):
    """Raised when a document cannot yield requirements."""

    pass


class RequirementExtractionJob:
    """Orchestrates requirement extraction for documents and projects."""

    def __init__(
        self,
        documents: DocumentStore,
        requirements: RequirementStore,
        ai_client: AICompletionClient,
        text_extractor: DocumentTextExtractor,
        priority_manager: JobPriorityManager,
        usage_tracker: Optional[UsageTracker] = None,
        config: ExtractionConfig = DEFAULT_EXTRACTION_CONFIG,
        model: str = DEFAULT_MODEL,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ):
        self._documents = documents
        self._requirements = requirements
        self._ai_client = ai_client
        self._text_extractor = text_extractor
        self._priority_manager = priority_manager
        self._usage_tracker = usage_tracker
        self._config = config
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._background_tasks: Set[asyncio.Task] = set()
        self._active_runs: Dict[str, object] = {}  # job_id -> token of the owning run

    # --- Single document ---

    async def enqueue_document(self, document_id: str) -> None:
        """Mark a document WAITING unless it was already processed successfully.

        Raises:
            NotFoundError: If the document does not exist.
        """
        document = await asyncio.to_thread(self._documents.require_document, document_id)

        if document.requirement_status == ExtractionStatus.DONE:
            logger.info(f"Document {document_id} already processed, not re-enqueueing")
            return

        await asyncio.to_thread(self._documents.set_status, document_id, ExtractionStatus.WAITING)
        logger.info(f"Document {document_id} enqueued for extraction")

    async def extract_for_document(self, document_id: str, user_id: str) -> ExtractionResult:
        """
        Extract and store the requirements of one document.

        Failures are recorded on the document (status ERROR) and returned,
        never raised.

        Args:
            document_id: Document to process.
            user_id: User the AI usage is attributed to.

        Returns:
            ExtractionResult with created and skipped counts.
        """
        logger.info(f"Starting extraction for document {document_id}")

        document = await asyncio.to_thread(self._documents.get_document, document_id)
        if document is None:
            logger.warning(f"Document {document_id} not found")
            return ExtractionResult(success=False, document_id=document_id, error="Document not found")

        try:
            if self._priority_manager.should_pause_requirement_extraction(document.project_id):
                logger.info(f"Deferring document {document_id}: high priority job running")
                await asyncio.to_thread(self._documents.set_status, document_id, ExtractionStatus.WAITING)
                return ExtractionResult(success=True, document_id=document_id, paused=True)

            await asyncio.to_thread(self._documents.set_status, document_id, ExtractionStatus.PROCESSING)

            text = await self._load_text(document)
            if len(text.strip()) < self._config.min_text_length:
                raise ExtractionError("Document text is too short or empty")

            candidates = await self._extract_with_ai(text, document, user_id)
            created, skipped = await self._store_requirements(document, candidates)

            await asyncio.to_thread(self._documents.mark_done, document_id)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.error(f"Extraction failed for document {document_id}: {message}")
            await asyncio.to_thread(self._documents.mark_error, document_id, message)
            return ExtractionResult(success=False, document_id=document_id, error=message)

        logger.info(f"Completed document {document_id}: {created} created, {skipped} skipped")
        return ExtractionResult(
            success=True,
            document_id=document_id,
            requirements_created=created,
            requirements_skipped=skipped,
        )

    async def _load_text(self, document: Document) -> str:
        """Reuse the cached extraction, or parse the file and cache the text."""
        analysis = await asyncio.to_thread(self._documents.latest_analysis, document.id)
        if analysis is not None and analysis.text:
            return analysis.text

        logger.info(f"Parsing document {document.id}")
        data = await asyncio.to_thread(self._documents.read_bytes, document)
        extracted = await self._text_extractor.extract_text(data, document.mime_type, document.document_type)

        if extracted.text.strip():
            await asyncio.to_thread(
                self._documents.save_analysis, document.id, extracted.text, extracted.metadata
            )
        return extracted.text

    async def _extract_with_ai(
        self,
        text: str,
        document: Document,
        user_id: str,
    ) -> List[ExtractedRequirement]:
        windowed = window_text(text, self._config.max_text_length, self._config.edge_length)
        if len(windowed) < len(text):
            logger.debug(f"Document {document.id} windowed from {len(text)} to {len(windowed)} characters")

        response = await self._ai_client.generate_response(
            AIPrompt(system=SYSTEM_PROMPT, user=USER_PROMPT.format(windowed)),
            model=self._model,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
            json_response=True,
        )
        await self._track_usage(response, document, user_id)

        return parse_requirements_response(response.content)

    async def _track_usage(self, response: AICompletion, document: Document, user_id: str) -> None:
        metadata = response.metadata
        if self._usage_tracker is None or not metadata.input_tokens or not metadata.output_tokens:
            return
        await asyncio.to_thread(
            self._usage_tracker.record_usage,
            user_id,
            metadata.model or self._model,
            metadata.input_tokens,
            metadata.output_tokens,
            USAGE_OPERATION,
            document.project_id,
            document.id,
        )

    async def _store_requirements(
        self,
        document: Document,
        candidates: List[ExtractedRequirement],
    ) -> Tuple[int, int]:
        created = 0
        skipped = 0

        for candidate in candidates:
            requirement = Requirement(
                id=uuid.uuid4().hex,
                project_id=document.project_id,
                document_id=document.id,
                title=candidate.title,
                description=candidate.description,
                content_hash=generate_requirement_hash(document.project_id, document.id, candidate.title),
                priority=normalize_priority(candidate.priority),
                status=RequirementStatus.A_TRAITER,
                code=candidate.code,
                category=candidate.category,
                source_page=candidate.source_page,
                source_quote=candidate.source_quote,
            )
            if await asyncio.to_thread(self._requirements.insert_if_absent, requirement):
                created += 1
            else:
                skipped += 1

        return created, skipped

    # --- Project-wide jobs ---

    async def extract_for_project(
        self,
        project_id: str,
        user_id: str,
        start_from_index: int = 0,
        job_id: Optional[str] = None,
    ) -> ProjectExtractionResult:
        """
        Extract requirements for every pending document of a project.

        The run registers a REQUIREMENT_EXTRACTION job (or continues job_id
        when resuming) and checks before each document whether it must yield
        to a high priority job, in which case the job is paused at that
        document.

        Args:
            project_id: Project to process.
            user_id: User the AI usage is attributed to.
            start_from_index: Cursor into the job's document list.
            job_id: Existing job to continue.

        Returns:
            ProjectExtractionResult; paused=True if the run yielded or could not start.
        """
        resumed = job_id is not None
        if resumed:
            job = self._priority_manager.get_job(job_id)
            if job is None:
                raise LookupError(f"Job {job_id} not found")
            document_ids = list(job.document_ids or [])
        else:
            documents = await asyncio.to_thread(
                self._documents.list_documents,
                project_id,
                [ExtractionStatus.WAITING, None],
            )
            document_ids = [d.id for d in documents]
            job_id = self._priority_manager.register_job(
                project_id, JobType.REQUIREMENT_EXTRACTION, document_ids, user_id=user_id
            )

        total = len(document_ids)
        processed = 0
        total_requirements = 0

        def result(success: bool, paused: bool = False) -> ProjectExtractionResult:
            return ProjectExtractionResult(
                success=success,
                project_id=project_id,
                job_id=job_id,
                total_documents=total,
                processed_documents=processed,
                total_requirements=total_requirements,
                paused=paused,
            )

        if not self._priority_manager.start_job(job_id).can_start:
            logger.info(f"Cannot start job {job_id}: another job is running on project {project_id}")
            if resumed:
                # Stays the project's paused job until the blocking job hands it back
                self._priority_manager.pause_job(job_id, start_from_index)
            else:
                self._priority_manager.cancel_job(job_id)
            return result(success=False, paused=True)

        token = object()
        self._active_runs[job_id] = token
        logger.info(
            f"Starting job {job_id} for project {project_id} "
            f"({total} documents, starting at {start_from_index})"
        )

        try:
            for index in range(start_from_index, total):
                if self._active_runs.get(job_id) is not token:
                    logger.info(f"Job {job_id} was taken over by another run")
                    return result(success=True, paused=True)

                job = self._priority_manager.get_job(job_id)
                if job is None or job.status == JobStatus.CANCELLED:
                    logger.info(f"Job {job_id} cancelled at document {index}/{total}")
                    return result(success=False)

                if job.status == JobStatus.PAUSED or self._priority_manager.should_pause_requirement_extraction(project_id):
                    logger.info(f"Job {job_id} paused at document {index}/{total}")
                    self._priority_manager.pause_job(job_id, index)
                    return result(success=True, paused=True)

                self._priority_manager.update_job_progress(job_id, index)

                document = await asyncio.to_thread(self._documents.get_document, document_ids[index])
                if document is None or document.requirement_status not in (ExtractionStatus.WAITING, None):
                    continue

                outcome = await self.extract_for_document(document.id, user_id)

                if outcome.paused:
                    self._priority_manager.pause_job(job_id, index)
                    return result(success=True, paused=True)

                if outcome.success:
                    processed += 1
                    total_requirements += outcome.requirements_created

            self._priority_manager.complete_job(job_id, True)
            return result(success=True)

        except Exception as e:
            logger.exception(f"Job {job_id} failed")
            self._priority_manager.complete_job(job_id, False, str(e) or e.__class__.__name__)
            return result(success=False)

        finally:
            if self._active_runs.get(job_id) is token:
                del self._active_runs[job_id]

    def start_background_extraction(self, project_id: str, user_id: str) -> asyncio.Task:
        """Run extract_for_project in the background (called after upload)."""
        return self._spawn(self.extract_for_project(project_id, user_id))

    def resume_paused_job(self, job: Job, user_id: Optional[str] = None) -> Optional[asyncio.Task]:
        """Continue a paused requirement extraction job from its saved cursor.

        Returns:
            The background task, or None if the job cannot be resumed here.
        """
        if job.type != JobType.REQUIREMENT_EXTRACTION:
            return None

        user_id = user_id or job.user_id
        if user_id is None:
            logger.warning(f"Cannot resume job {job.id}: no user to attribute it to")
            return None

        logger.info(f"Auto-resuming job {job.id} at document index {job.current_document_index}")
        return self._spawn(
            self.extract_for_project(
                job.project_id,
                user_id,
                start_from_index=job.current_document_index,
                job_id=job.id,
            )
        )

    def _spawn(self, coroutine) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coroutine)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    async def wait_for_background(self) -> None:
        """Wait for every background extraction started so far."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    # --- Status ---

    async def requirements_status(self, project_id: str) -> RequirementsStatus:
        """Count a project's documents by extraction status and its requirements."""
        counts = await asyncio.to_thread(self._documents.status_counts, project_id)
        requirements_count = await asyncio.to_thread(self._requirements.count, project_id)

        return RequirementsStatus(
            total=sum(counts.values()),
            done=counts.get(ExtractionStatus.DONE.value, 0),
            processing=counts.get(ExtractionStatus.PROCESSING.value, 0),
            waiting=counts.get(ExtractionStatus.WAITING.value, 0) + counts.get(None, 0),
            error=counts.get(ExtractionStatus.ERROR.value, 0),
            requirements_count=requirements_count,
        )
