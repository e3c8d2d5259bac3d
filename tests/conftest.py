"""Shared fixtures and fakes for the requirement extraction tests."""

import json
import os
import tempfile
from typing import List, Optional

import pytest

from redyce.clients import AICompletionError, SqliteClient
from redyce.models import AICompletion, AIPrompt, CompletionMetadata, ExtractedText
from redyce.services import DocumentStore, JobPriorityManager, RequirementStore, UsageTracker
from redyce.extraction import RequirementExtractionJob

LONG_TEXT = (
    "Le titulaire doit remettre le mémoire technique avant le 15 mars. "
    "Les pénalités de retard sont fixées à 500 euros par jour calendaire. "
    "Les travaux respectent la norme NF DTU 20.1."
)


def requirements_json(*titles: str, **fields) -> str:
    """Build an extraction response with one requirement per title."""
    return json.dumps(
        {"requirements": [dict({"title": title, "description": f"Description of {title}"}, **fields) for title in titles]}
    )


class FakeAIClient:
    """Returns queued completions and records the prompts it was sent."""

    def __init__(self, responses: Optional[List[str]] = None, model: str = "gpt-4o-mini-2024-07-18"):
        self.responses = list(responses or [])
        self.prompts: List[AIPrompt] = []
        self.calls: List[dict] = []
        self.model = model

    async def generate_response(self, prompt, model=None, temperature=None, max_tokens=None, json_response=False):
        self.prompts.append(prompt)
        self.calls.append(
            {"model": model, "temperature": temperature, "max_tokens": max_tokens, "json_response": json_response}
        )
        if not self.responses:
            raise AICompletionError("No response queued")
        content = self.responses.pop(0)
        return AICompletion(
            content=content,
            metadata=CompletionMetadata(model=self.model, input_tokens=1200, output_tokens=300, finish_reason="stop"),
        )


class FakeTextExtractor:
    """Returns a fixed text for any document."""

    def __init__(self, text: str = LONG_TEXT):
        self.text = text
        self.calls = 0

    async def extract_text(self, data, mime_type, document_type="AUTRE"):
        self.calls += 1
        return ExtractedText(text=self.text, metadata={"pages": 1, "mime_type": mime_type})


@pytest.fixture
def temp_db_path():
    """Create a temporary database file for testing."""
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    yield path
    # Cleanup
    if os.path.exists(path):
        os.remove(path)


@pytest.fixture
def temp_file_path():
    """Create a temporary stand-in for an uploaded PDF."""
    fd, path = tempfile.mkstemp(suffix=".pdf")
    os.write(fd, b"%PDF-1.7 fake content")
    os.close(fd)
    yield path
    if os.path.exists(path):
        os.remove(path)


@pytest.fixture
def sqlite_client(temp_db_path):
    client = SqliteClient(temp_db_path)
    yield client
    client.close()


@pytest.fixture
def document_store(sqlite_client):
    return DocumentStore(sqlite_client)


@pytest.fixture
def requirement_store(sqlite_client):
    return RequirementStore(sqlite_client)


@pytest.fixture
def usage_tracker(sqlite_client):
    return UsageTracker(sqlite_client)


@pytest.fixture
def priority_manager():
    return JobPriorityManager()


@pytest.fixture
def ai_client():
    return FakeAIClient()


@pytest.fixture
def text_extractor():
    return FakeTextExtractor()


@pytest.fixture
def extraction_job(document_store, requirement_store, ai_client, text_extractor, priority_manager, usage_tracker):
    return RequirementExtractionJob(
        documents=document_store,
        requirements=requirement_store,
        ai_client=ai_client,
        text_extractor=text_extractor,
        priority_manager=priority_manager,
        usage_tracker=usage_tracker,
    )


@pytest.fixture
def add_document(document_store, temp_file_path):
    """Factory registering documents that point at the temporary PDF."""

    def _add(project_id: str = "project-1", name: str = "CCTP.pdf", document_type: str = "CCTP", **kwargs):
        return document_store.add_document(
            project_id=project_id,
            name=name,
            mime_type="application/pdf",
            file_path=temp_file_path,
            document_type=document_type,
            **kwargs,
        )

    return _add
