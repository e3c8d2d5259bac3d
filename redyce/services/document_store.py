"""Document store for requirement extraction status and cached text.

Tracks source documents to enable:
- Extraction status transitions (WAITING -> PROCESSING -> DONE | ERROR)
- Cached text extraction results (avoid re-parsing on retry)
- Backfill candidate selection and progress counts
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from ..clients import SqliteClient
from ..models import (
    DEFAULT_DOCUMENT_TYPE,
    Document,
    DocumentAnalysis,
    ExtractionStatus,
)

logger = logging.getLogger(__name__)

# SQL statements
CREATE_DOCUMENTS_SQL = """
CREATE TABLE IF NOT EXISTS documents (
    id TEXT PRIMARY KEY,
    project_id TEXT NOT NULL,
    name TEXT NOT NULL,
    mime_type TEXT NOT NULL,
    file_path TEXT NOT NULL,
    document_type TEXT NOT NULL,
    requirement_status TEXT,
    requirement_processed_at TEXT,
    requirement_error_message TEXT,
    created_at TEXT NOT NULL
)
"""

CREATE_ANALYSES_SQL = """
CREATE TABLE IF NOT EXISTS document_analyses (
    id TEXT PRIMARY KEY,
    document_id TEXT NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
    analysis_type TEXT NOT NULL,
    status TEXT NOT NULL,
    text TEXT NOT NULL,
    metadata TEXT NOT NULL,
    created_at TEXT NOT NULL
)
"""

CREATE_INDEX_SQL = """
CREATE INDEX IF NOT EXISTS idx_documents_project ON documents(project_id, requirement_status)
"""

DOCUMENT_COLUMNS = """id, project_id, name, mime_type, file_path, document_type,
    requirement_status, requirement_processed_at, requirement_error_message, created_at"""

EXTRACTION_ANALYSIS = "extraction"
ANALYSIS_COMPLETED = "completed"


class NotFoundError(LookupError):
    """Raised when a referenced document or project does not exist."""

    pass


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _row_to_document(row) -> Document:
    return Document(
        id=row[0],
        project_id=row[1],
        name=row[2],
        mime_type=row[3],
        file_path=row[4],
        document_type=row[5],
        requirement_status=ExtractionStatus(row[6]) if row[6] else None,
        requirement_processed_at=_parse_datetime(row[7]),
        requirement_error_message=row[8],
        created_at=_parse_datetime(row[9]),
    )


class DocumentStore:
    """SQLite-backed access to documents and their cached analyses."""

    def __init__(self, sqlite_client: SqliteClient):
        """Initialize the document store.

        Args:
            sqlite_client: Shared database client.
        """
        self._sqlite_client = sqlite_client
        self._ensure_tables_exist()

    def _ensure_tables_exist(self) -> None:
        """Create the document tables if they don't exist."""
        self._sqlite_client.execute_query(CREATE_DOCUMENTS_SQL)
        self._sqlite_client.execute_query(CREATE_ANALYSES_SQL)
        self._sqlite_client.execute_query(CREATE_INDEX_SQL)
        logger.debug("Document tables initialized")

    def add_document(
        self,
        project_id: str,
        name: str,
        mime_type: str,
        file_path: str,
        document_type: str = DEFAULT_DOCUMENT_TYPE,
        document_id: Optional[str] = None,
    ) -> Document:
        """Register an uploaded document.

        Args:
            project_id: Owning project.
            name: Display name of the file.
            mime_type: MIME type of the stored bytes.
            file_path: Location of the stored bytes.
            document_type: Tender document category.
            document_id: Optional explicit identifier.

        Returns:
            The registered Document, with no extraction status.
        """
        now = datetime.now(timezone.utc)
        document = Document(
            id=document_id or uuid.uuid4().hex,
            project_id=project_id,
            name=name,
            mime_type=mime_type,
            file_path=file_path,
            document_type=document_type,
            created_at=now,
        )

        self._sqlite_client.execute_query(
            f"INSERT INTO documents ({DOCUMENT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, NULL, NULL, NULL, ?)",
            (
                document.id,
                project_id,
                name,
                mime_type,
                file_path,
                document_type,
                now.isoformat(),
            ),
        )

        logger.info(f"Registered document {document.id} ({name}) in project {project_id}")
        return document

    def get_document(self, document_id: str) -> Optional[Document]:
        """Get a document by its ID.

        Returns:
            Document if found, None otherwise.
        """
        result = self._sqlite_client.execute_query(
            f"SELECT {DOCUMENT_COLUMNS} FROM documents WHERE id = ?",
            (document_id,),
        )
        if not result:
            return None
        return _row_to_document(result[0])

    def require_document(self, document_id: str) -> Document:
        """Get a document or raise NotFoundError."""
        document = self.get_document(document_id)
        if document is None:
            raise NotFoundError(f"Document {document_id} not found")
        return document

    def list_documents(
        self,
        project_id: Optional[str] = None,
        statuses: Optional[Iterable[Optional[ExtractionStatus]]] = None,
        document_types: Optional[Sequence[str]] = None,
    ) -> List[Document]:
        """List documents, oldest first.

        Args:
            project_id: Restrict to one project.
            statuses: Extraction statuses to include; None in the list
                selects documents that were never enqueued.
            document_types: Restrict to these document categories.
        """
        clauses = []
        params: list = []

        if project_id is not None:
            clauses.append("project_id = ?")
            params.append(project_id)

        if statuses is not None:
            statuses = list(statuses)
            status_clauses = []
            values = [s.value for s in statuses if s is not None]
            if values:
                status_clauses.append(f"requirement_status IN ({', '.join('?' * len(values))})")
                params.extend(values)
            if None in statuses:
                status_clauses.append("requirement_status IS NULL")
            if not status_clauses:
                return []
            clauses.append(f"({' OR '.join(status_clauses)})")

        if document_types is not None:
            if not document_types:
                return []
            clauses.append(f"document_type IN ({', '.join('?' * len(document_types))})")
            params.extend(document_types)

        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        result = self._sqlite_client.execute_query(
            f"SELECT {DOCUMENT_COLUMNS} FROM documents{where} ORDER BY created_at ASC, rowid ASC",
            tuple(params),
        )
        return [_row_to_document(row) for row in result]

    def set_status(self, document_id: str, status: ExtractionStatus) -> None:
        """Write the extraction status without touching the other fields."""
        updated = self._sqlite_client.execute_write(
            "UPDATE documents SET requirement_status = ? WHERE id = ?",
            (status.value, document_id),
        )
        if not updated:
            raise NotFoundError(f"Document {document_id} not found")
        logger.debug(f"Document {document_id} -> {status.value}")

    def mark_done(self, document_id: str) -> None:
        """Mark extraction successful and clear any previous error."""
        now = datetime.now(timezone.utc)
        self._sqlite_client.execute_write(
            """UPDATE documents
               SET requirement_status = ?, requirement_processed_at = ?, requirement_error_message = NULL
               WHERE id = ?""",
            (ExtractionStatus.DONE.value, now.isoformat(), document_id),
        )

    def mark_error(self, document_id: str, message: str) -> None:
        """Mark extraction failed with the error message."""
        self._sqlite_client.execute_write(
            "UPDATE documents SET requirement_status = ?, requirement_error_message = ? WHERE id = ?",
            (ExtractionStatus.ERROR.value, message, document_id),
        )

    def status_counts(self, project_id: str) -> Dict[Optional[str], int]:
        """Count a project's documents by extraction status (None = never enqueued)."""
        result = self._sqlite_client.execute_query(
            """SELECT requirement_status, COUNT(*) FROM documents
               WHERE project_id = ? GROUP BY requirement_status""",
            (project_id,),
        )
        return {status: count for status, count in result}

    def latest_analysis(self, document_id: str) -> Optional[DocumentAnalysis]:
        """Get the most recent completed text extraction of a document."""
        result = self._sqlite_client.execute_query(
            """SELECT id, document_id, analysis_type, status, text, metadata, created_at
               FROM document_analyses
               WHERE document_id = ? AND analysis_type = ? AND status = ?
               ORDER BY created_at DESC, rowid DESC LIMIT 1""",
            (document_id, EXTRACTION_ANALYSIS, ANALYSIS_COMPLETED),
        )
        if not result:
            return None

        row = result[0]
        return DocumentAnalysis(
            id=row[0],
            document_id=row[1],
            analysis_type=row[2],
            status=row[3],
            text=row[4],
            metadata=json.loads(row[5]),
            created_at=_parse_datetime(row[6]),
        )

    def save_analysis(self, document_id: str, text: str, metadata: Optional[dict] = None) -> DocumentAnalysis:
        """Cache the extracted text of a document."""
        now = datetime.now(timezone.utc)
        analysis = DocumentAnalysis(
            id=uuid.uuid4().hex,
            document_id=document_id,
            analysis_type=EXTRACTION_ANALYSIS,
            status=ANALYSIS_COMPLETED,
            text=text,
            metadata=metadata or {},
            created_at=now,
        )

        self._sqlite_client.execute_query(
            """INSERT INTO document_analyses
               (id, document_id, analysis_type, status, text, metadata, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                analysis.id,
                document_id,
                analysis.analysis_type,
                analysis.status,
                text,
                json.dumps(analysis.metadata, default=str),
                now.isoformat(),
            ),
        )

        logger.info(f"Cached {len(text)} characters of extracted text for document {document_id}")
        return analysis

    def read_bytes(self, document: Document) -> bytes:
        """Read the stored file of a document."""
        return Path(document.file_path).read_bytes()
