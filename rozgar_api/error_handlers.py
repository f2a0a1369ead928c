"""Global exception handlers.

Errors leave the API as ``{"error": "<message>"}``, except request validation
errors, which keep FastAPI's 422 ``{"detail": ...}`` body. Upstream failures
map to fixed, user-safe messages; the underlying detail only goes to the log.
"""

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from rozgar_api.advisor import AdvisorParseError
from rozgar_api.document_ocr import DocumentOCRError
from rozgar_api.firestore_store import FirestoreConnectionError, FirestoreError
from rozgar_api.jobs_client import JobsAPIConfigError, JobsAPIError, JobsAPIRateLimitError
from rozgar_api.openai_client import OpenAIAuthError, OpenAIError, OpenAIRateLimitError
from rozgar_api.resume_parser import ResumeParseError, UnsupportedDocumentError
from rozgar_api.speech_client import SpeechAudioError, SpeechConfigError, SpeechError

logger = structlog.get_logger()

INTERNAL_ERROR_MESSAGE = "An internal server error occurred. Please try again later."
HISTORY_NOT_A_LIST = "History must be an array."

# Exception class -> (status, message). None means "use str(exc)", for
# errors whose text is written for the caller.
UPSTREAM_ERRORS: dict[type[Exception], tuple[int, str | None]] = {
    OpenAIAuthError: (503, "AI service not configured. Please contact the administrator."),
    OpenAIRateLimitError: (429, "AI service is busy. Please try again shortly."),
    OpenAIError: (502, "AI service error. Please try again later."),
    AdvisorParseError: (502, "AI service returned an unreadable answer. Please try again."),
    FirestoreConnectionError: (503, "Database unavailable. Please try again later."),
    FirestoreError: (502, "Database error. Please try again later."),
    SpeechConfigError: (503, "Speech service not configured. Please contact the administrator."),
    SpeechAudioError: (400, "Audio could not be processed. Please record again."),
    SpeechError: (502, "Error transcribing audio. Please try again later."),
    JobsAPIConfigError: (503, "Job search not configured. Please contact the administrator."),
    JobsAPIRateLimitError: (429, "Job search is busy. Please try again shortly."),
    JobsAPIError: (502, "Job search error. Please try again later."),
    DocumentOCRError: (502, "Could not read the scanned document. Please try again later."),
    UnsupportedDocumentError: (status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, None),
    ResumeParseError: (422, None),
}


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _lookup(exc: Exception) -> tuple[int, str | None]:
    for cls in type(exc).__mro__:
        if cls in UPSTREAM_ERRORS:
            return UPSTREAM_ERRORS[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR_MESSAGE


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""

    async def upstream_error_handler(request: Request, exc: Exception) -> JSONResponse:
        status_code, message = _lookup(exc)
        logger.error(
            "Upstream call failed",
            path=request.url.path,
            error_type=type(exc).__name__,
            error=str(exc),
            status=status_code,
        )
        return error_response(status_code, message or str(exc))

    for exc_class in UPSTREAM_ERRORS:
        app.add_exception_handler(exc_class, upstream_error_handler)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Keep FastAPI's 422 body, except for a chat history that is not a list."""
        for err in exc.errors():
            if tuple(err.get("loc", ())) == ("body", "history") and err.get("type") == "list_type":
                return error_response(status.HTTP_400_BAD_REQUEST, HISTORY_NOT_A_LIST)
        return await request_validation_exception_handler(request, exc)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        response = error_response(exc.status_code, str(exc.detail))
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all; never leaks internal details."""
        logger.exception("Unhandled exception", path=request.url.path, error=str(exc))
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR_MESSAGE)
