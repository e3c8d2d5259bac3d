"""Azure Document Intelligence client for PDF and DOCX text extraction."""

import logging
from typing import Optional

from azure.ai.documentintelligence.aio import DocumentIntelligenceClient
from azure.ai.documentintelligence.models import AnalyzeResult
from azure.core.credentials import AzureKeyCredential
from azure.core.exceptions import AzureError

from redyce.config.configuration import DocumentIntelligenceConfig
from redyce.models.document import DEFAULT_DOCUMENT_TYPE, ExtractedText

logger = logging.getLogger(__name__)

SUPPORTED_MIME_TYPES = (
    "application/pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
)


class TextExtractionError(Exception):
    """Raised when a document cannot be turned into text."""

    pass


def _page_text(page) -> str:
    """Lines of one analyzed page, newline separated."""
    return "\n".join(line.content for line in page.lines or [])


def result_to_text(result: AnalyzeResult) -> str:
    """Flatten an analysis result into plain text, page by page."""
    if result.content:
        return result.content
    if not result.pages:
        return ""
    return "\n\n".join(_page_text(page) for page in result.pages)


class DocumentTextExtractor:
    """Turns stored document bytes into plain text."""

    def __init__(self, config: DocumentIntelligenceConfig):
        self._config = config
        self._client: Optional[DocumentIntelligenceClient] = None

    def _get_client(self) -> DocumentIntelligenceClient:
        if self._client is None:
            self._client = DocumentIntelligenceClient(
                endpoint=self._config.endpoint,
                credential=AzureKeyCredential(self._config.api_key),
            )
        return self._client

    async def extract_text(
        self,
        data: bytes,
        mime_type: str,
        document_type: str = DEFAULT_DOCUMENT_TYPE,
    ) -> ExtractedText:
        """
        Extract text content from a PDF or DOCX document.

        Args:
            data: Raw file bytes.
            mime_type: MIME type of the file.
            document_type: Business document type hint (CCTP, DPGF, ...).

        Returns:
            ExtractedText with the text and page metadata.

        Raises:
            TextExtractionError: If the type is unsupported or extraction fails.
        """
        if mime_type not in SUPPORTED_MIME_TYPES:
            raise TextExtractionError(f"Unsupported MIME type: {mime_type}")

        logger.info(f"Extracting text from {document_type} document ({mime_type}, {len(data)} bytes)")

        try:
            poller = await self._get_client().begin_analyze_document(
                model_id=self._config.model_id,
                body=data,
                content_type="application/octet-stream",
            )
            result: AnalyzeResult = await poller.result()
        except AzureError as e:
            raise TextExtractionError(f"Failed to extract text: {e}") from e

        text = result_to_text(result)
        pages = len(result.pages) if result.pages else 0

        logger.info(f"Extracted {len(text)} characters from {pages} pages")
        return ExtractedText(
            text=text,
            metadata={
                "pages": pages,
                "mime_type": mime_type,
                "document_type": document_type,
                "model_id": self._config.model_id,
            },
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
