"""Tests for the requirement extraction backfill.

These tests verify:
- Candidate selection (tender types, never processed, optional errors)
- First batch processed before returning, the rest in the background
- One failing document never blocks the others
- Summary counts for the status view
"""

import pytest

from redyce.extraction import BackfillOrchestrator
from redyce.models import BackfillStatus, ExtractionStatus

from conftest import requirements_json


class TestBackfillRun:
    """Test BackfillOrchestrator.run."""

    @pytest.fixture
    def backfill(self, document_store, extraction_job):
        return BackfillOrchestrator(document_store, extraction_job, concurrency=2)

    @pytest.mark.asyncio
    async def test_no_candidates(self, backfill):
        run = await backfill.run("user-1")

        assert run.total_documents == 0
        assert run.batches == 0
        assert run.status == BackfillStatus.COMPLETED
        assert run.results == []

    @pytest.mark.asyncio
    async def test_single_batch_completes_immediately(self, backfill, ai_client, document_store, add_document):
        documents = [add_document(name=f"doc-{i}.pdf") for i in range(2)]
        ai_client.responses.extend([requirements_json("Foo"), requirements_json("Bar")])

        run = await backfill.run("user-1")

        assert run.status == BackfillStatus.COMPLETED
        assert run.processed_immediately == 2
        assert run.processing_in_background == 0
        assert {result.status for result in run.results} == {"DONE"}
        for document in documents:
            assert document_store.get_document(document.id).requirement_status == ExtractionStatus.DONE

    @pytest.mark.asyncio
    async def test_remaining_batches_run_in_background(
        self, backfill, ai_client, document_store, requirement_store, add_document
    ):
        documents = [add_document(name=f"doc-{i}.pdf") for i in range(5)]
        ai_client.responses.extend([requirements_json(f"Req {i}") for i in range(5)])

        run = await backfill.run("user-1")

        assert run.total_documents == 5
        assert run.batches == 3
        assert run.processed_immediately == 2
        assert run.processing_in_background == 3
        assert len(run.results) == 2

        finished = await backfill.wait(run.id)

        assert finished is run
        assert run.status == BackfillStatus.COMPLETED
        assert run.completed_at is not None
        assert len(run.results) == 5
        assert requirement_store.count("project-1") == 5
        for document in documents:
            assert document_store.get_document(document.id).requirement_status == ExtractionStatus.DONE

    @pytest.mark.asyncio
    async def test_errors_are_isolated(self, backfill, ai_client, document_store, add_document):
        """A document whose response is garbage fails alone."""
        add_document(name="first.pdf")
        add_document(name="second.pdf")
        ai_client.responses.extend(["not json at all", requirements_json("Foo")])

        run = await backfill.run("user-1")

        statuses = sorted(result.status for result in run.results)
        assert statuses == ["DONE", "ERROR"]
        assert len(run.failed) == 1
        assert "Failed to parse" in run.failed[0].error

    @pytest.mark.asyncio
    async def test_candidate_selection(self, backfill, ai_client, document_store, add_document):
        never = add_document(name="never.pdf")
        waiting = add_document(name="waiting.pdf")
        failed = add_document(name="failed.pdf")
        done = add_document(name="done.pdf")
        add_document(name="photo.pdf", document_type="PHOTO")
        document_store.set_status(waiting.id, ExtractionStatus.WAITING)
        document_store.mark_error(failed.id, "boom")
        document_store.mark_done(done.id)
        ai_client.responses.extend([requirements_json("Foo"), requirements_json("Bar")])

        run = await backfill.run("user-1")
        await backfill.wait(run.id)

        assert run.total_documents == 2
        assert {result.document_id for result in run.results} == {never.id, waiting.id}
        assert document_store.get_document(failed.id).requirement_status == ExtractionStatus.ERROR

    @pytest.mark.asyncio
    async def test_include_errors_and_project_scope(self, backfill, ai_client, document_store, add_document):
        failed = add_document(name="failed.pdf")
        document_store.mark_error(failed.id, "boom")
        add_document(project_id="project-2", name="other.pdf")
        ai_client.responses.append(requirements_json("Foo"))

        run = await backfill.run("user-1", project_id="project-1", include_errors=True)

        assert [result.document_id for result in run.results] == [failed.id]
        assert run.results[0].status == "DONE"
        assert run.results[0].created == 1

    @pytest.mark.asyncio
    async def test_get_run(self, backfill):
        run = await backfill.run("user-1")

        assert backfill.get_run(run.id) is run
        assert backfill.get_run("missing") is None

    def test_concurrency_must_be_positive(self, document_store, extraction_job):
        with pytest.raises(ValueError):
            BackfillOrchestrator(document_store, extraction_job, concurrency=0)


class TestBackfillSummary:
    """Test BackfillOrchestrator.summary."""

    @pytest.mark.asyncio
    async def test_counts_and_rows(self, document_store, extraction_job, add_document):
        backfill = BackfillOrchestrator(document_store, extraction_job)
        add_document(name="never.pdf")
        waiting = add_document(name="waiting.pdf")
        failed = add_document(name="failed.pdf")
        document_store.set_status(waiting.id, ExtractionStatus.WAITING)
        document_store.mark_error(failed.id, "boom")
        add_document(project_id="project-2")

        summary = await backfill.summary("project-1")

        assert summary["total"] == 3
        assert summary["not_started"] == 1
        assert summary["waiting"] == 1
        assert summary["error"] == 1
        assert summary["done"] == 0
        rows = {row["name"]: row for row in summary["documents"]}
        assert rows["failed.pdf"]["status"] == "ERROR"
        assert rows["failed.pdf"]["error"] == "boom"
        assert rows["never.pdf"]["status"] is None
