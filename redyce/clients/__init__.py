"""Client modules for external services."""

from redyce.clients.sqlite_client import SqliteClient
from redyce.clients.ai_client import AICompletionClient, AICompletionError
from redyce.clients.document_intelligence_client import (
    DocumentTextExtractor,
    TextExtractionError,
)

__all__ = [
    "SqliteClient",
    "AICompletionClient",
    "AICompletionError",
    "DocumentTextExtractor",
    "TextExtractionError",
]
