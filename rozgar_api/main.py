"""FastAPI application entrypoint for the RozgarAI API."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Annotated, AsyncIterator

import structlog
from fastapi import APIRouter, FastAPI, File, Form, HTTPException, Path, Query, Request, Response
from fastapi import UploadFile
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from pydantic import ValidationError
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from rozgar_api import __version__
from rozgar_api.advisor import (
    COUNSELING_TOPICS,
    analyze_skill_gap,
    generate_interview_questions,
    interview_tips,
    resume_feedback,
    review_interview_answer,
    study_abroad_guidance,
)
from rozgar_api.chat_service import run_chat
from rozgar_api.chat_tools import ToolDispatch
from rozgar_api.config import get_settings
from rozgar_api.document_ocr import close_ocr_client, get_ocr_client
from rozgar_api.error_handlers import register_error_handlers
from rozgar_api.firestore_store import (
    FirestoreError,
    FirestoreStore,
    close_firestore_store,
    get_firestore_store,
)
from rozgar_api.jobs_client import close_jobs_client, get_jobs_client
from rozgar_api.logo_cache import get_logo_cache
from rozgar_api.models import (
    ChatRequest,
    ChatResponse,
    CounselingTopicsResponse,
    HealthResponse,
    InterviewFeedbackRequest,
    InterviewFeedbackResponse,
    InterviewQuestionsRequest,
    InterviewQuestionsResponse,
    InterviewTipsResponse,
    Job,
    JobSearchResponse,
    ResumeAnalysisResponse,
    SavedJob,
    SavedJobsResponse,
    SkillGapRequest,
    SkillGapResponse,
    SpeechToTextResponse,
    StudyAbroadRequest,
    StudyAbroadResponse,
    UserPreferences,
)
from rozgar_api.observability import generate_trace_id, set_trace_id
from rozgar_api.openai_client import close_openai_client, get_openai_client
from rozgar_api.resume_parser import extract_text
from rozgar_api.speech_client import close_speech_client, get_speech_client
from rozgar_api.text_utils import detect_language, extract_experience, language_name

settings = get_settings()

logging.basicConfig(format="%(message)s", level=settings.log_level.upper())

# Configure structlog
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

# Rate limiter, applied to the routes that call the LLM or paid APIs
limiter = Limiter(key_func=get_remote_address)
RATE_LIMIT = f"{settings.rate_limit_per_minute}/minute"

UidPath = Annotated[str, Path(min_length=1, max_length=128)]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup/shutdown."""
    logger.info("Starting RozgarAI API", version=__version__, environment=settings.environment)

    # Initialize clients on startup; failures surface again per request
    try:
        await get_firestore_store()
        logger.info("Firestore store initialized")
    except FirestoreError as e:
        logger.error("Failed to initialize Firestore store", error=str(e))

    await get_openai_client()
    await get_jobs_client()

    try:
        await get_speech_client()
        logger.info("Speech-to-Text client initialized")
    except Exception as e:
        logger.warning("Failed to initialize Speech-to-Text client", error=str(e))

    try:
        await get_ocr_client()
    except Exception as e:
        logger.warning("Failed to initialize Document AI client", error=str(e))

    yield

    # Cleanup on shutdown
    logger.info("Shutting down RozgarAI API")
    await close_openai_client()
    await close_jobs_client()
    await close_speech_client()
    await close_ocr_client()
    await close_firestore_store()
    get_logo_cache().clear()


# Create FastAPI app
app = FastAPI(
    title="RozgarAI API",
    description="Career assistant backend for the PGRKAM job portal",
    version=__version__,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Trace ID middleware for request correlation
@app.middleware("http")
async def trace_id_middleware(request: Request, call_next):
    """Add trace ID to every request for log correlation."""
    trace_id = request.headers.get("X-Trace-ID", generate_trace_id())
    set_trace_id(trace_id)

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(trace_id=trace_id)

    response = await call_next(request)
    response.headers["X-Trace-ID"] = trace_id
    return response


register_error_handlers(app)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add Prometheus metrics
Instrumentator().instrument(app).expose(app)

# Every route is served both under /api and at the root
router = APIRouter()


async def _record_usage(store: FirestoreStore, uid: str | None, feature: str) -> None:
    """Bump the per-user usage counter; a failure never fails the request."""
    if not uid:
        return
    try:
        await store.increment_usage(uid, feature)
    except FirestoreError as e:
        logger.warning("Usage counter update failed", uid=uid, feature=feature, error=str(e))


async def _read_upload(upload: UploadFile, limit: int) -> bytes:
    """Read an upload, rejecting it once it is known to exceed ``limit`` bytes."""
    too_large = HTTPException(
        status_code=413,
        detail=f"File too large. Maximum size is {limit // (1024 * 1024)} MB.",
    )
    if upload.size is not None and upload.size > limit:
        raise too_large
    data = await upload.read(limit + 1)
    if len(data) > limit:
        raise too_large
    return data


# =============================================================================
# Health Endpoints
# =============================================================================


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check the health of the API and its dependencies. Never fails."""
    try:
        store = await get_firestore_store()
        firestore_ok = await store.health_check()
    except FirestoreError as e:
        logger.warning("Firestore unavailable for health check", error=str(e))
        firestore_ok = False

    openai_client = await get_openai_client()
    openai_ok = openai_client.is_configured or get_settings().mock_openai

    try:
        speech_configured = (await get_speech_client()).is_configured
    except Exception as e:
        logger.warning("Speech-to-Text unavailable for health check", error=str(e))
        speech_configured = False

    jobs_client = await get_jobs_client()

    return HealthResponse(
        status="healthy" if firestore_ok and openai_ok else "degraded",
        version=__version__,
        firestore=firestore_ok,
        openai_configured=openai_client.is_configured,
        speech_configured=speech_configured,
        jobs_api_configured=jobs_client.is_configured,
    )


# =============================================================================
# Chat Endpoints
# =============================================================================


@router.post("/chat", response_model=ChatResponse)
@limiter.limit(RATE_LIMIT)
async def chat(request: Request, chat_request: ChatRequest) -> ChatResponse:
    """
    Chat with the career assistant.

    - **message**: The user's latest message
    - **history**: Prior turns, oldest first
    - **userProfile**: Optional profile; its skills personalise the reply
    - **uid**: Optional signed-in user, enables the profile tool
    """
    if not chat_request.message and not chat_request.history:
        raise HTTPException(status_code=400, detail="Message content is missing.")

    logger.info(
        "Chat request received",
        message_length=len(chat_request.message or ""),
        history_length=len(chat_request.history),
        signed_in=bool(chat_request.uid),
    )

    openai_client = await get_openai_client()
    store = await get_firestore_store()
    dispatch = ToolDispatch(store, uid=chat_request.uid)

    response = await run_chat(chat_request, openai_client, dispatch, get_settings().system_prompt)
    await _record_usage(store, chat_request.uid, "chat")
    return response


# =============================================================================
# Speech Endpoints
# =============================================================================


@router.post("/stt", response_model=SpeechToTextResponse)
@limiter.limit(RATE_LIMIT)
async def speech_to_text(
    request: Request,
    audio: Annotated[UploadFile | None, File()] = None,
) -> SpeechToTextResponse:
    """Transcribe a short voice recording (multipart field ``audio``)."""
    if audio is None:
        raise HTTPException(status_code=400, detail="No audio file uploaded.")

    try:
        data = await _read_upload(audio, get_settings().max_upload_bytes)
        if not data:
            raise HTTPException(status_code=400, detail="Uploaded audio file is empty.")

        logger.info("Speech request received", filename=audio.filename, audio_bytes=len(data))
        speech_client = await get_speech_client()
        result = await speech_client.transcribe(data)
    finally:
        await audio.close()

    return SpeechToTextResponse(
        transcript=result.transcript,
        text=result.transcript,
        language=result.language,
    )


# =============================================================================
# Resume Endpoints
# =============================================================================


@router.post("/analyze-resume", response_model=ResumeAnalysisResponse)
@limiter.limit(RATE_LIMIT)
async def analyze_resume(
    request: Request,
    resume: Annotated[UploadFile | None, File()] = None,
    job_description: Annotated[str | None, Form(max_length=5000)] = None,
    uid: Annotated[str | None, Form(max_length=128)] = None,
) -> ResumeAnalysisResponse:
    """
    Review an uploaded resume (PDF, DOCX or plain text).

    Scanned PDFs with no text layer go through OCR when a Document AI
    processor is configured.
    """
    current = get_settings()
    if resume is None:
        raise HTTPException(status_code=400, detail="No resume file uploaded.")

    try:
        data = await _read_upload(resume, current.max_upload_bytes)
    finally:
        await resume.close()

    if not data:
        raise HTTPException(status_code=400, detail="Uploaded resume file is empty.")

    # PDF and DOCX parsing is CPU-bound; keep it off the event loop
    document = await asyncio.to_thread(
        extract_text,
        data,
        filename=resume.filename,
        content_type=resume.content_type,
    )
    text = document.text
    ocr_used = False

    if not text and document.kind == "pdf":
        ocr_client = await get_ocr_client()
        if ocr_client.is_configured:
            logger.info("Resume has no text layer, running OCR", resume_bytes=len(data))
            text = (await ocr_client.extract_text(data, document.mime_type)).strip()
            ocr_used = True

    if not text:
        raise HTTPException(status_code=422, detail="Could not extract any text from the resume.")

    language = detect_language(text)
    openai_client = await get_openai_client()
    feedback = await resume_feedback(
        openai_client,
        text,
        max_chars=current.resume_max_chars,
        language=language_name(language),
        job_description=job_description,
    )

    store = await get_firestore_store()
    await _record_usage(store, uid, "resume")

    logger.info(
        "Resume analysed",
        kind=document.kind,
        extracted_chars=len(text),
        ocr_used=ocr_used,
        language=language,
    )

    return ResumeAnalysisResponse(
        feedback=feedback,
        extracted_chars=len(text),
        experience=extract_experience(text),
        language=language,
        ocr_used=ocr_used,
    )


# =============================================================================
# Jobs Endpoints
# =============================================================================


@router.get("/jobs", response_model=JobSearchResponse)
@limiter.limit(RATE_LIMIT)
async def search_jobs(
    request: Request,
    query: str = Query(..., min_length=2, max_length=200),
    location: str | None = Query(default=None, max_length=100),
    page: int = Query(default=1, ge=1, le=20),
    remote_only: bool = Query(default=False),
) -> JobSearchResponse:
    """Search live job listings with salary, experience and logo normalised."""
    jobs_client = await get_jobs_client()
    jobs = await jobs_client.search(query, location=location, page=page, remote_only=remote_only)
    return JobSearchResponse(jobs=jobs, count=len(jobs), query=query, page=page)


@router.get("/users/{uid}/saved-jobs", response_model=SavedJobsResponse)
async def list_saved_jobs(uid: UidPath) -> SavedJobsResponse:
    store = await get_firestore_store()
    jobs = []
    for doc in await store.list_saved_jobs(uid):
        try:
            jobs.append(SavedJob.model_validate(doc))
        except ValidationError as e:
            logger.warning(
                "Skipping malformed saved job",
                uid=uid,
                job_id=doc.get("id"),
                error=str(e),
            )
    return SavedJobsResponse(jobs=jobs, count=len(jobs))


@router.post("/users/{uid}/saved-jobs", response_model=SavedJob, status_code=201)
async def save_job(job: Job, uid: UidPath) -> SavedJob:
    """Bookmark a job; saving the same id again overwrites it."""
    saved = SavedJob(**job.model_dump())
    store = await get_firestore_store()
    await store.save_job(uid, saved.model_dump())
    logger.info("Job saved", uid=uid, job_id=saved.id)
    return saved


# JSearch IDs may contain "/", so the last segment takes the rest of the path
@router.delete("/users/{uid}/saved-jobs/{job_id:path}", status_code=204)
async def delete_saved_job(
    uid: UidPath,
    job_id: str = Path(..., min_length=1, max_length=256),
) -> Response:
    store = await get_firestore_store()
    if not await store.delete_saved_job(uid, job_id):
        raise HTTPException(status_code=404, detail="Saved job not found.")
    logger.info("Saved job removed", uid=uid, job_id=job_id)
    return Response(status_code=204)


@router.get("/users/{uid}/preferences", response_model=UserPreferences)
async def get_preferences(uid: UidPath) -> UserPreferences:
    store = await get_firestore_store()
    preferences = await store.get_preferences(uid)
    if preferences is None:
        raise HTTPException(status_code=404, detail="User not found.")
    if not isinstance(preferences, dict):
        logger.warning("Ignoring malformed preferences", uid=uid)
        return UserPreferences()

    try:
        return UserPreferences.model_validate(preferences)
    except ValidationError as e:
        # The app owns the user document; fall back to defaults for bad fields
        invalid = {err["loc"][0] for err in e.errors() if err["loc"]}
        logger.warning("Ignoring invalid preference fields", uid=uid, fields=sorted(invalid))
        valid = {k: v for k, v in preferences.items() if k not in invalid}
        return UserPreferences.model_validate(valid)


@router.put("/users/{uid}/preferences", response_model=UserPreferences)
async def update_preferences(preferences: UserPreferences, uid: UidPath) -> UserPreferences:
    store = await get_firestore_store()
    await store.set_preferences(uid, preferences.model_dump())
    return preferences


# =============================================================================
# Skills / Interview / Counseling Endpoints
# =============================================================================


@router.post("/skills/analyze", response_model=SkillGapResponse)
@limiter.limit(RATE_LIMIT)
async def skills_analyze(request: Request, skill_request: SkillGapRequest) -> SkillGapResponse:
    """Compare current skills with a target role and suggest a learning path."""
    openai_client = await get_openai_client()
    return await analyze_skill_gap(openai_client, skill_request)


@router.post("/interview-prep/questions", response_model=InterviewQuestionsResponse)
@limiter.limit(RATE_LIMIT)
async def interview_questions(
    request: Request,
    questions_request: InterviewQuestionsRequest,
) -> InterviewQuestionsResponse:
    openai_client = await get_openai_client()
    return await generate_interview_questions(openai_client, questions_request)


@router.post("/interview-prep/feedback", response_model=InterviewFeedbackResponse)
@limiter.limit(RATE_LIMIT)
async def interview_feedback(
    request: Request,
    feedback_request: InterviewFeedbackRequest,
) -> InterviewFeedbackResponse:
    """Score a practice answer and suggest improvements."""
    openai_client = await get_openai_client()
    return await review_interview_answer(openai_client, feedback_request)


@router.get("/interview-prep/tips", response_model=InterviewTipsResponse)
@limiter.limit(RATE_LIMIT)
async def interview_prep_tips(
    request: Request,
    role: str = Query(default="general", min_length=2, max_length=200),
) -> InterviewTipsResponse:
    openai_client = await get_openai_client()
    return await interview_tips(openai_client, role)


@router.post("/counseling/study-abroad", response_model=StudyAbroadResponse)
@limiter.limit(RATE_LIMIT)
async def counseling_study_abroad(
    request: Request,
    study_request: StudyAbroadRequest,
) -> StudyAbroadResponse:
    openai_client = await get_openai_client()
    return await study_abroad_guidance(openai_client, study_request)


@router.get("/counseling/topics", response_model=CounselingTopicsResponse)
async def counseling_topics() -> CounselingTopicsResponse:
    return CounselingTopicsResponse(topics=COUNSELING_TOPICS)


app.include_router(router, prefix="/api")
app.include_router(router)


# =============================================================================
# Entry point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "rozgar_api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
    )
