"""Wiring of the extraction services from the application configuration."""

import logging
from dataclasses import dataclass, field
from typing import Optional

from redyce.clients import AICompletionClient, DocumentTextExtractor, SqliteClient
from redyce.config import AppConfig
from redyce.extraction import BackfillOrchestrator, RequirementExtractionJob
from redyce.models import Job
from redyce.services import (
    JOB_RESUMED,
    DocumentStore,
    JobPriorityManager,
    JobStore,
    RequirementStore,
    UsageTracker,
)

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Every component of one running instance, built once and shared."""

    sqlite_client: SqliteClient
    documents: DocumentStore
    requirements: RequirementStore
    priority_manager: JobPriorityManager
    extraction: RequirementExtractionJob
    backfill: BackfillOrchestrator
    ai_client: Optional[AICompletionClient] = None
    text_extractor: Optional[DocumentTextExtractor] = None
    _started: bool = field(default=False, init=False, repr=False)

    def on_job_resumed(self, job: Job) -> None:
        """Listener continuing the paused extraction job handed back by the manager."""
        self.extraction.resume_paused_job(job)

    def start(self) -> None:
        """Subscribe to resumptions and restart the jobs recovered from the store.

        Must be called from a running event loop. Calling it again is a no-op.
        """
        if self._started:
            return
        self._started = True
        self.priority_manager.add_listener(JOB_RESUMED, self.on_job_resumed)
        for job in self.priority_manager.recover():
            self.extraction.resume_paused_job(job)

    async def stop(self) -> None:
        """Unsubscribe and wait for the background extractions and backfill batches."""
        self._started = False
        self.priority_manager.remove_listener(JOB_RESUMED, self.on_job_resumed)
        await self.backfill.wait_for_background()
        await self.extraction.wait_for_background()

    async def close(self) -> None:
        await self.stop()
        if self.ai_client is not None:
            await self.ai_client.close()
        if self.text_extractor is not None:
            await self.text_extractor.close()
        self.sqlite_client.close()
        logger.info("Services closed")


def build_services(config: AppConfig) -> ServiceContainer:
    """
    Build the stores, clients and jobs described by the configuration.

    Args:
        config: Loaded application configuration.

    Returns:
        ServiceContainer sharing one SQLite connection.
    """
    sqlite_client = SqliteClient(config.database.path)
    documents = DocumentStore(sqlite_client)
    requirements = RequirementStore(sqlite_client)

    priority_manager = JobPriorityManager(
        store=JobStore(sqlite_client) if config.jobs.persist else None,
        retention_seconds=config.jobs.retention_seconds,
        lease_seconds=config.jobs.lease_seconds,
        instance_id=config.jobs.instance_id,
    )

    ai_client = AICompletionClient(config.openai)
    text_extractor = DocumentTextExtractor(config.document_intelligence)

    extraction = RequirementExtractionJob(
        documents=documents,
        requirements=requirements,
        ai_client=ai_client,
        text_extractor=text_extractor,
        priority_manager=priority_manager,
        usage_tracker=UsageTracker(sqlite_client),
        config=config.extraction,
        model=config.openai.model,
        temperature=config.openai.temperature,
        max_tokens=config.openai.max_tokens,
    )
    backfill = BackfillOrchestrator(documents, extraction, concurrency=config.backfill.concurrency)

    logger.info(f"Services built on database {config.database.path}")
    return ServiceContainer(
        sqlite_client=sqlite_client,
        documents=documents,
        requirements=requirements,
        priority_manager=priority_manager,
        extraction=extraction,
        backfill=backfill,
        ai_client=ai_client,
        text_extractor=text_extractor,
    )
