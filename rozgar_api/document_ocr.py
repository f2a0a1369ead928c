"""Document AI OCR fallback for scanned resumes."""

from typing import Any

import structlog
from google.api_core import exceptions as google_exceptions
from google.api_core.client_options import ClientOptions
from google.cloud import documentai
from google.oauth2 import service_account

from rozgar_api.config import get_settings
from rozgar_api.observability import track_upstream

logger = structlog.get_logger()


class DocumentOCRError(Exception):
    """Raised when Document AI processing fails."""

    pass


def processor_location(processor_name: str) -> str:
    """Extract the location segment from a processor resource name.

    >>> processor_location("projects/p/locations/eu/processors/abc")
    'eu'
    """
    parts = processor_name.split("/")
    try:
        return parts[parts.index("locations") + 1]
    except (ValueError, IndexError):
        return "us"


class DocumentOCRClient:
    """Runs a document through a Document AI OCR processor."""

    def __init__(self, processor_name: str | None = None):
        settings = get_settings()
        self._processor_name = processor_name or settings.documentai_processor_name
        self._client: Any = None

    async def connect(self) -> None:
        if not self._processor_name:
            logger.info("Document AI not configured, OCR fallback disabled")
            return

        account = get_settings().load_service_account()
        creds = service_account.Credentials.from_service_account_info(account) if account else None
        location = processor_location(self._processor_name)
        self._client = documentai.DocumentProcessorServiceAsyncClient(
            credentials=creds,
            client_options=ClientOptions(api_endpoint=f"{location}-documentai.googleapis.com"),
        )
        logger.info("Document AI client connected", location=location)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.transport.close()
            self._client = None

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    async def extract_text(self, content: bytes, mime_type: str) -> str:
        """Return the OCR text of a document.

        Raises:
            DocumentOCRError: If the processor is not configured or the call fails.
        """
        if self._client is None:
            raise DocumentOCRError("Document AI processor not configured")

        request = documentai.ProcessRequest(
            name=self._processor_name,
            raw_document=documentai.RawDocument(content=content, mime_type=mime_type),
        )
        try:
            with track_upstream("documentai", "process"):
                result = await self._client.process_document(request=request)
        except google_exceptions.GoogleAPICallError as e:
            logger.error("Document AI processing failed", error=str(e))
            raise DocumentOCRError(f"OCR failed: {e.message}") from e

        text = result.document.text or ""
        logger.info("Document AI OCR completed", chars=len(text))
        return text


# Global client instance
_ocr_client: DocumentOCRClient | None = None


async def get_ocr_client() -> DocumentOCRClient:
    global _ocr_client
    if _ocr_client is None:
        _ocr_client = DocumentOCRClient()
        await _ocr_client.connect()
    return _ocr_client


async def close_ocr_client() -> None:
    global _ocr_client
    if _ocr_client:
        await _ocr_client.close()
        _ocr_client = None


def reset_ocr_client() -> None:
    global _ocr_client
    _ocr_client = None
