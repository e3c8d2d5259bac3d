"""Tests for the HTTP API.

These tests verify:
- Extraction requests (404, 409, background processing)
- Backfill start, polling and summary
- Project status
- Interactive job endpoints pausing and resuming requirement extraction
"""

import pytest
from fastapi.testclient import TestClient

from redyce.api import create_app
from redyce.bootstrap import ServiceContainer
from redyce.extraction import BackfillOrchestrator
from redyce.models import ExtractionStatus, JobStatus, JobType

from conftest import requirements_json


@pytest.fixture
def services(sqlite_client, document_store, requirement_store, priority_manager, extraction_job):
    return ServiceContainer(
        sqlite_client=sqlite_client,
        documents=document_store,
        requirements=requirement_store,
        priority_manager=priority_manager,
        extraction=extraction_job,
        backfill=BackfillOrchestrator(document_store, extraction_job, concurrency=3),
    )


@pytest.fixture
def client(services):
    with TestClient(create_app(services)) as test_client:
        yield test_client


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestExtractRequirementsEndpoint:
    """Test POST /documents/{document_id}/extract-requirements."""

    def test_unknown_document(self, client):
        response = client.post("/documents/missing/extract-requirements", json={"user_id": "user-1"})

        assert response.status_code == 404
        assert "not found" in response.json()["detail"]

    def test_document_already_processing(self, client, document_store, add_document):
        document = add_document()
        document_store.set_status(document.id, ExtractionStatus.PROCESSING)

        response = client.post(f"/documents/{document.id}/extract-requirements", json={"user_id": "user-1"})

        assert response.status_code == 409

    def test_missing_user(self, client, add_document):
        document = add_document()

        response = client.post(f"/documents/{document.id}/extract-requirements", json={})

        assert response.status_code == 422

    def test_extraction_runs_in_background(self, client, ai_client, document_store, requirement_store, add_document):
        document = add_document()
        ai_client.responses.append(requirements_json("Foo", "Bar"))

        response = client.post(f"/documents/{document.id}/extract-requirements", json={"user_id": "user-1"})

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert response.json()["document_id"] == document.id
        assert document_store.get_document(document.id).requirement_status == ExtractionStatus.DONE
        assert requirement_store.count("project-1") == 2


class TestStatusEndpoint:
    def test_requirements_status(self, client, document_store, add_document):
        failed = add_document(name="failed.pdf")
        add_document(name="new.pdf")
        document_store.mark_error(failed.id, "boom")

        response = client.get("/projects/project-1/requirements-status")

        assert response.status_code == 200
        assert response.json() == {
            "total": 2,
            "done": 0,
            "processing": 0,
            "waiting": 1,
            "error": 1,
            "requirements_count": 0,
        }


class TestBackfillEndpoints:
    """Test the backfill endpoints."""

    def test_start_and_poll(self, client, ai_client, add_document):
        for i in range(4):
            add_document(name=f"doc-{i}.pdf")
        ai_client.responses.extend([requirements_json(f"Req {i}") for i in range(4)])

        response = client.post("/requirements/backfill", json={"user_id": "user-1"})

        assert response.status_code == 200
        body = response.json()
        assert body["total_documents"] == 4
        assert body["processed_immediately"] == 3
        assert body["processing_in_background"] == 1
        assert len(body["results"]) == 3

        poll = client.get(f"/requirements/backfill/{body['run_id']}")
        assert poll.status_code == 200
        assert poll.json()["run_id"] == body["run_id"]

    def test_unknown_run(self, client):
        assert client.get("/requirements/backfill/missing").status_code == 404

    def test_summary(self, client, add_document):
        add_document()

        response = client.get("/requirements/backfill", params={"project_id": "project-1"})

        assert response.status_code == 200
        assert response.json()["total"] == 1
        assert response.json()["not_started"] == 1


class TestJobEndpoints:
    """Test interactive job endpoints."""

    def test_requirement_extraction_type_rejected(self, client):
        response = client.post("/projects/project-1/jobs", json={"type": "REQUIREMENT_EXTRACTION"})

        assert response.status_code == 400

    def test_unknown_job(self, client):
        assert client.get("/jobs/missing").status_code == 404
        assert client.post("/jobs/missing/complete", json={}).status_code == 404

    def test_high_job_pauses_and_resumes_extraction(self, client, priority_manager, add_document):
        document = add_document()
        low = priority_manager.register_job(
            "project-1", JobType.REQUIREMENT_EXTRACTION, [document.id], user_id="user-1"
        )
        priority_manager.start_job(low)

        started = client.post("/projects/project-1/jobs", json={"type": "ANSWER_GENERATION"})

        assert started.status_code == 200
        assert started.json()["can_start"] is True
        assert started.json()["paused_job_id"] == low
        assert priority_manager.get_job(low).status == JobStatus.PAUSED

        blocked = client.post("/projects/project-1/jobs", json={"type": "QUESTION_EXTRACTION"})
        assert blocked.json()["can_start"] is False

        job = client.get(f"/jobs/{started.json()['job_id']}")
        assert job.json()["status"] == "RUNNING"
        assert job.json()["priority"] == "HIGH"

        completed = client.post(f"/jobs/{started.json()['job_id']}/complete", json={"success": True})

        assert completed.status_code == 200
        assert completed.json()["resumed_job_id"] == low


class TestServiceContainer:
    """Test listener wiring of the service container."""

    @pytest.mark.asyncio
    async def test_start_twice_resumes_once(self, services, priority_manager, monkeypatch):
        resumed = []
        monkeypatch.setattr(services.extraction, "resume_paused_job", lambda job: resumed.append(job.id))

        services.start()
        services.start()

        low = priority_manager.register_job("project-1", JobType.REQUIREMENT_EXTRACTION, [], user_id="user-1")
        priority_manager.start_job(low)
        high = priority_manager.register_job("project-1", JobType.ANSWER_GENERATION)
        priority_manager.start_job(high)
        priority_manager.complete_job(high)

        assert resumed == [low]

        await services.stop()
