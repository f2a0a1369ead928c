"""Pydantic models for API requests and responses."""

from datetime import datetime, timezone
from typing import Annotated, Any, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


# =============================================================================
# Shared
# =============================================================================


class ErrorResponse(BaseModel):
    """Error body returned by handlers and the global error handler."""

    error: str


def _split_csv(value: Any) -> Any:
    """Accept "a, b,c" as well as ["a", "b", "c"] for list fields."""
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return value


CsvList = Annotated[list[str], BeforeValidator(_split_csv)]


# =============================================================================
# Chat API Models
# =============================================================================


class HistoryMessage(BaseModel):
    """A message from the client-held conversation history.

    Tool and assistant messages are forwarded verbatim, so unknown keys
    (tool_calls, tool_call_id, name) are preserved.
    """

    model_config = ConfigDict(extra="allow")

    role: Literal["user", "assistant", "system", "tool"] = Field(..., description="Message role")
    content: str | None = Field(default=None, description="Message content")


class UserProfile(BaseModel):
    """Profile snippet the app sends along with a chat request."""

    model_config = ConfigDict(extra="allow")

    name: str | None = None
    skills: str | list[str] | None = None
    location: str | None = None
    education: str | None = None

    @property
    def skills_text(self) -> str:
        if isinstance(self.skills, list):
            return ", ".join(s for s in self.skills if s)
        return self.skills or ""


class ChatRequest(BaseModel):
    """Request body for the chat endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    message: str | None = Field(default=None, max_length=4000, description="Latest user message")
    history: list[HistoryMessage] = Field(default_factory=list, description="Prior conversation")
    user_profile: UserProfile | None = Field(default=None, alias="userProfile")
    uid: str | None = Field(default=None, max_length=128, description="Signed-in user ID")

    def latest_user_text(self) -> str:
        """The text to detect reply language from."""
        if self.message:
            return self.message
        for item in reversed(self.history):
            if item.role == "user" and item.content:
                return item.content
        return ""


class ChatResponse(BaseModel):
    """Chat reply."""

    reply: str = Field(..., description="Assistant reply")
    tool_calls: list[str] = Field(default_factory=list, description="Functions executed")


# =============================================================================
# Speech-to-text / Resume Models
# =============================================================================


class SpeechToTextResponse(BaseModel):
    """Transcription result."""

    transcript: str = Field(..., description="Recognised text, one line per result")
    text: str = Field(..., description="Same as transcript, for older app builds")
    language: str = Field(..., description="Detected language code or 'unknown'")


class ResumeAnalysisResponse(BaseModel):
    """Feedback on an uploaded resume."""

    feedback: str
    extracted_chars: int
    experience: str
    language: str
    ocr_used: bool = False


# =============================================================================
# Jobs Models
# =============================================================================


class Job(BaseModel):
    """A job listing, normalised from the job-search API or Firestore."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1, max_length=256)
    title: str
    company: str = ""
    location: str = ""
    salary: str = "Not disclosed"
    experience: str = "Not specified"
    description: str = ""
    apply_link: str | None = None
    logo: str | None = None
    posted_at: str | None = None
    employment_type: str | None = None
    source: str = "jsearch"


class SavedJob(Job):
    """A job bookmarked by a user."""

    saved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class JobSearchResponse(BaseModel):
    jobs: list[Job]
    count: int
    query: str
    page: int


class SavedJobsResponse(BaseModel):
    jobs: list[SavedJob]
    count: int


class UserPreferences(BaseModel):
    """Per-user preferences stored on the user document."""

    preferred_language: Literal["en-IN", "hi-IN", "pa-IN"] = "en-IN"
    locations: CsvList = Field(default_factory=list)
    roles: CsvList = Field(default_factory=list)
    skills: CsvList = Field(default_factory=list)


# =============================================================================
# Skills / Interview / Counseling Models
# =============================================================================


class SkillGapRequest(BaseModel):
    current_skills: CsvList = Field(..., min_length=1)
    target_role: str = Field(..., min_length=2, max_length=200)
    experience_years: float | None = Field(default=None, ge=0, le=60)


class LearningStep(BaseModel):
    skill: str
    resources: list[str] = Field(default_factory=list)
    duration: str = ""


class SkillGapResponse(BaseModel):
    target_role: str
    matching_skills: list[str] = Field(default_factory=list)
    missing_skills: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    learning_path: list[LearningStep] = Field(default_factory=list)


class InterviewQuestionsRequest(BaseModel):
    role: str = Field(..., min_length=2, max_length=200)
    level: Literal["entry", "mid", "senior"] = "entry"
    count: int = Field(default=5, ge=1, le=15)


class InterviewQuestion(BaseModel):
    question: str
    category: str = "general"
    tip: str = ""


class InterviewQuestionsResponse(BaseModel):
    role: str
    questions: list[InterviewQuestion]


class InterviewFeedbackRequest(BaseModel):
    role: str = Field(..., min_length=2, max_length=200)
    question: str = Field(..., min_length=5, max_length=1000)
    answer: str = Field(..., min_length=1, max_length=5000)


class InterviewFeedbackResponse(BaseModel):
    score: int = Field(..., ge=0, le=10)
    strengths: list[str] = Field(default_factory=list)
    improvements: list[str] = Field(default_factory=list)
    sample_answer: str = ""


class InterviewTipsResponse(BaseModel):
    role: str
    tips: list[str]


class StudyAbroadRequest(BaseModel):
    field_of_study: str = Field(..., min_length=2, max_length=200)
    education_level: Literal["high_school", "bachelors", "masters", "phd"] = "bachelors"
    countries: CsvList = Field(default_factory=list)
    budget: str | None = Field(default=None, max_length=100)
    english_test: str | None = Field(default=None, max_length=100)


class CountryOption(BaseModel):
    country: str
    reasons: list[str] = Field(default_factory=list)
    estimated_cost: str = ""
    popular_programs: list[str] = Field(default_factory=list)


class StudyAbroadResponse(BaseModel):
    summary: str = ""
    countries: list[CountryOption] = Field(default_factory=list)
    requirements: list[str] = Field(default_factory=list)
    scholarships: list[str] = Field(default_factory=list)
    next_steps: list[str] = Field(default_factory=list)


class CounselingTopic(BaseModel):
    id: str
    title: str
    description: str


class CounselingTopicsResponse(BaseModel):
    topics: list[CounselingTopic]


# =============================================================================
# Health API Models
# =============================================================================


class HealthResponse(BaseModel):
    """Response for health check endpoint."""

    status: Literal["healthy", "degraded", "unhealthy"] = Field(..., description="Service status")
    version: str = Field(..., description="API version")
    firestore: bool = Field(..., description="Document store reachable")
    openai_configured: bool
    speech_configured: bool
    jobs_api_configured: bool
