"""Tests for the SQLite-backed stores.

These tests verify:
- Document registration, filtering and status writes
- Cached text analyses
- Requirement uniqueness on (project, document, content hash)
- Usage cost attribution
"""

import pytest

from redyce.extraction import generate_requirement_hash
from redyce.models import ExtractionStatus, Requirement, RequirementPriority
from redyce.services import NotFoundError, calculate_cost


class TestDocumentStore:
    """Test DocumentStore functionality."""

    def test_add_and_get(self, document_store, add_document):
        document = add_document(name="RC.pdf", document_type="RC")

        stored = document_store.get_document(document.id)

        assert stored.name == "RC.pdf"
        assert stored.document_type == "RC"
        assert stored.mime_type == "application/pdf"
        assert stored.requirement_status is None
        assert stored.created_at is not None

    def test_get_missing(self, document_store):
        assert document_store.get_document("missing") is None
        with pytest.raises(NotFoundError):
            document_store.require_document("missing")

    def test_set_status_on_missing_document(self, document_store):
        with pytest.raises(NotFoundError):
            document_store.set_status("missing", ExtractionStatus.WAITING)

    def test_list_filters(self, document_store, add_document):
        never = add_document(name="never.pdf")
        waiting = add_document(name="waiting.pdf", document_type="DPGF")
        failed = add_document(name="failed.pdf")
        add_document(project_id="project-2", name="other.pdf")
        document_store.set_status(waiting.id, ExtractionStatus.WAITING)
        document_store.mark_error(failed.id, "boom")

        pending = document_store.list_documents("project-1", [ExtractionStatus.WAITING, None])
        only_errors = document_store.list_documents("project-1", [ExtractionStatus.ERROR])
        dpgf = document_store.list_documents(document_types=["DPGF"])

        assert [d.id for d in pending] == [never.id, waiting.id]
        assert [d.id for d in only_errors] == [failed.id]
        assert [d.id for d in dpgf] == [waiting.id]
        assert len(document_store.list_documents()) == 4
        assert document_store.list_documents(statuses=[]) == []

    def test_mark_done_and_error(self, document_store, add_document):
        document = add_document()

        document_store.mark_error(document.id, "boom")
        failed = document_store.get_document(document.id)
        assert failed.requirement_status == ExtractionStatus.ERROR
        assert failed.requirement_error_message == "boom"

        document_store.mark_done(document.id)
        done = document_store.get_document(document.id)
        assert done.requirement_status == ExtractionStatus.DONE
        assert done.requirement_error_message is None
        assert done.requirement_processed_at is not None

    def test_status_counts(self, document_store, add_document):
        add_document()
        waiting = add_document()
        document_store.set_status(waiting.id, ExtractionStatus.WAITING)

        assert document_store.status_counts("project-1") == {None: 1, "WAITING": 1}

    def test_analysis_cache(self, document_store, add_document):
        document = add_document()
        assert document_store.latest_analysis(document.id) is None

        document_store.save_analysis(document.id, "first", {"pages": 1})
        document_store.save_analysis(document.id, "second", {"pages": 2})

        latest = document_store.latest_analysis(document.id)
        assert latest.text == "second"
        assert latest.metadata == {"pages": 2}

    def test_read_bytes(self, document_store, add_document):
        document = add_document()
        assert document_store.read_bytes(document).startswith(b"%PDF")


class TestRequirementStore:
    """Test RequirementStore deduplication."""

    def make_requirement(self, document_id, title, project_id="project-1", requirement_id=None):
        return Requirement(
            id=requirement_id or f"req-{title}",
            project_id=project_id,
            document_id=document_id,
            title=title,
            description="Description",
            content_hash=generate_requirement_hash(project_id, document_id, title),
            priority=RequirementPriority.MED,
        )

    def test_insert_and_skip_duplicate(self, requirement_store, add_document):
        document = add_document()

        assert requirement_store.insert_if_absent(self.make_requirement(document.id, "Foo")) is True
        duplicate = self.make_requirement(document.id, "FOO", requirement_id="req-other")
        assert requirement_store.insert_if_absent(duplicate) is False

        stored = requirement_store.list_for_document(document.id)
        assert len(stored) == 1
        assert stored[0].title == "Foo"
        assert stored[0].priority == RequirementPriority.MED

    def test_same_title_in_other_document(self, requirement_store, add_document):
        first = add_document()
        second = add_document()

        assert requirement_store.insert_if_absent(self.make_requirement(first.id, "Foo", requirement_id="a"))
        assert requirement_store.insert_if_absent(self.make_requirement(second.id, "Foo", requirement_id="b"))
        assert requirement_store.count("project-1") == 2

    def test_list_for_project_limit(self, requirement_store, add_document):
        document = add_document()
        for title in ("A", "B", "C"):
            requirement_store.insert_if_absent(self.make_requirement(document.id, title))

        assert len(requirement_store.list_for_project("project-1")) == 3
        assert len(requirement_store.list_for_project("project-1", limit=2)) == 2
        assert requirement_store.count("project-2") == 0


class TestUsageTracker:
    """Test usage recording and pricing."""

    def test_calculate_cost(self):
        assert calculate_cost("gpt-4o-mini", 1000, 1000) == pytest.approx(0.00075)
        assert calculate_cost("gpt-4o-mini-2024-07-18", 1000, 1000) == pytest.approx(0.00075)
        assert calculate_cost("gpt-4o", 1000, 0) == pytest.approx(0.005)
        assert calculate_cost("some-unknown-model", 1000, 1000) == pytest.approx(0.00075)

    def test_record_usage(self, usage_tracker):
        record = usage_tracker.record_usage(
            "user-1", "gpt-4o-mini", 2000, 1000, "requirement_extraction", "project-1", "doc-1"
        )

        assert record.total_tokens == 3000
        assert record.cost == pytest.approx(0.0009)
        assert usage_tracker.total_cost("user-1") == pytest.approx(0.0009)
        assert usage_tracker.total_cost() == pytest.approx(0.0009)

    def test_record_failure_is_swallowed(self, usage_tracker, sqlite_client):
        sqlite_client.execute_query("DROP TABLE ai_usage")

        assert usage_tracker.record_usage("user-1", "gpt-4o-mini", 10, 10, "requirement_extraction") is None
