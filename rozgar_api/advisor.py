"""Career advice features: skill-gap analysis, interview prep, study-abroad counseling.

Each feature fills a prompt template, asks the model for a JSON object and
reshapes the reply into a response model. Missing keys fall back to empty
values; a reply that is not JSON at all raises AdvisorParseError.
"""

import json
import re
from typing import Any

import structlog

from rozgar_api.models import (
    CounselingTopic,
    CountryOption,
    InterviewFeedbackRequest,
    InterviewFeedbackResponse,
    InterviewQuestion,
    InterviewQuestionsRequest,
    InterviewQuestionsResponse,
    InterviewTipsResponse,
    LearningStep,
    SkillGapRequest,
    SkillGapResponse,
    StudyAbroadRequest,
    StudyAbroadResponse,
)
from rozgar_api.openai_client import OpenAIClient
from rozgar_api.text_utils import truncate

logger = structlog.get_logger()


class AdvisorParseError(Exception):
    """Raised when the model reply cannot be read as a JSON object."""

    pass


ADVISOR_PERSONA = (
    "You are a career counselor for Punjab Ghar Ghar Rozgar and Karobar Mission (PGRKAM). "
    "You advise job seekers in Punjab, India. Be practical and specific, prefer free or "
    "government resources (Skill India, NPTEL, PMKVY, PSDM) and answer with a single JSON "
    "object only."
)

RESUME_REVIEWER_PERSONA = (
    "You are a resume reviewer for Punjab Ghar Ghar Rozgar and Karobar Mission (PGRKAM). "
    "Give honest, specific feedback that helps job seekers in Punjab get shortlisted."
)

SKILL_GAP_PROMPT = """Compare the candidate's skills with what a {target_role} role needs in India.

Current skills: {skills}
Years of experience: {experience}

Return JSON with these keys:
- "matching_skills": skills the candidate already has that the role needs
- "missing_skills": important skills the candidate lacks, most important first
- "recommendations": 3-5 short actionable recommendations
- "learning_path": list of {{"skill", "resources" (list of course or site names), "duration"}}"""

INTERVIEW_QUESTIONS_PROMPT = """Write {count} interview questions for a {level}-level {role} position in India.
Mix technical, behavioural and situational questions.

Return JSON: {{"questions": [{{"question", "category" (technical|behavioural|situational|hr), "tip"}}]}}
The tip is one sentence on what a good answer covers."""

INTERVIEW_FEEDBACK_PROMPT = """Evaluate this interview answer for a {role} position.

Question: {question}
Answer: {answer}

Return JSON with:
- "score": integer 0-10
- "strengths": list of what the answer did well
- "improvements": list of concrete improvements
- "sample_answer": a concise model answer"""

INTERVIEW_TIPS_PROMPT = """Give 5-8 practical interview preparation tips for a {role} candidate in Punjab.
Return JSON: {{"tips": [string, ...]}}"""

STUDY_ABROAD_PROMPT = """A student from Punjab wants to study {field} abroad at {level} level.
Preferred countries: {countries}
Budget: {budget}
English test status: {english_test}

Return JSON with:
- "summary": 2-3 sentence overview
- "countries": list of {{"country", "reasons" (list), "estimated_cost" (per year, in INR), "popular_programs" (list)}}
- "requirements": admission and visa requirements
- "scholarships": relevant scholarships
- "next_steps": ordered action items"""

COUNSELING_TOPICS = [
    CounselingTopic(
        id="career-guidance",
        title="Career guidance",
        description="Choosing a career path based on your education, skills and interests.",
    ),
    CounselingTopic(
        id="skill-development",
        title="Skill development",
        description="Government and private training programmes to close skill gaps.",
    ),
    CounselingTopic(
        id="self-employment",
        title="Self-employment",
        description="Starting a business, loan schemes and Karobar mission support.",
    ),
    CounselingTopic(
        id="study-abroad",
        title="Study abroad",
        description="Countries, costs, entrance tests, visas and scholarships.",
    ),
    CounselingTopic(
        id="government-jobs",
        title="Government jobs",
        description="Exam calendars, eligibility and preparation for state and central jobs.",
    ),
]

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_json_object(content: str) -> dict[str, Any]:
    """Read a JSON object out of a model reply.

    Tolerates markdown code fences and prose around the object.
    """
    text = _CODE_FENCE.sub("", (content or "").strip())
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise AdvisorParseError("Reply did not contain a JSON object")
        try:
            parsed = json.loads(text[start : end + 1])
        except json.JSONDecodeError as e:
            raise AdvisorParseError(f"Reply JSON was malformed: {e}") from e

    if not isinstance(parsed, dict):
        raise AdvisorParseError("Reply JSON was not an object")
    return parsed


def _str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [line.strip(" -•*\t") for line in value.splitlines() if line.strip(" -•*\t")]
    if isinstance(value, list):
        return [str(item).strip() for item in value if item is not None and str(item).strip()]
    return [str(value)]


def _clamp_score(value: Any) -> int:
    try:
        score = int(round(float(value)))
    except (TypeError, ValueError):
        return 0
    return max(0, min(10, score))


async def _ask(client: OpenAIClient, prompt: str, purpose: str) -> dict[str, Any]:
    messages = [
        {"role": "system", "content": ADVISOR_PERSONA},
        {"role": "user", "content": prompt},
    ]
    response = await client.chat(messages, json_mode=True, purpose=purpose)
    data = parse_json_object(response.content)
    logger.info(
        "Advisor reply parsed",
        purpose=purpose,
        keys=sorted(data),
        tokens=response.tokens_used,
    )
    return data


# =============================================================================
# Skills
# =============================================================================


async def analyze_skill_gap(client: OpenAIClient, request: SkillGapRequest) -> SkillGapResponse:
    experience = request.experience_years
    prompt = SKILL_GAP_PROMPT.format(
        target_role=request.target_role,
        skills=", ".join(request.current_skills),
        experience=experience if experience is not None else "not given",
    )
    data = await _ask(client, prompt, purpose="skills")

    learning_path = []
    for step in data.get("learning_path") or []:
        if isinstance(step, dict) and step.get("skill"):
            learning_path.append(
                LearningStep(
                    skill=str(step["skill"]),
                    resources=_str_list(step.get("resources")),
                    duration=str(step.get("duration") or ""),
                )
            )
        elif isinstance(step, str) and step.strip():
            learning_path.append(LearningStep(skill=step.strip()))

    return SkillGapResponse(
        target_role=request.target_role,
        matching_skills=_str_list(data.get("matching_skills")),
        missing_skills=_str_list(data.get("missing_skills")),
        recommendations=_str_list(data.get("recommendations")),
        learning_path=learning_path,
    )


# =============================================================================
# Interview prep
# =============================================================================


async def generate_interview_questions(
    client: OpenAIClient,
    request: InterviewQuestionsRequest,
) -> InterviewQuestionsResponse:
    prompt = INTERVIEW_QUESTIONS_PROMPT.format(
        count=request.count,
        level=request.level,
        role=request.role,
    )
    data = await _ask(client, prompt, purpose="interview_questions")

    questions = []
    for item in data.get("questions") or []:
        if isinstance(item, str) and item.strip():
            questions.append(InterviewQuestion(question=item.strip()))
        elif isinstance(item, dict) and item.get("question"):
            questions.append(
                InterviewQuestion(
                    question=str(item["question"]),
                    category=str(item.get("category") or "general").lower(),
                    tip=str(item.get("tip") or ""),
                )
            )

    return InterviewQuestionsResponse(role=request.role, questions=questions[: request.count])


async def review_interview_answer(
    client: OpenAIClient,
    request: InterviewFeedbackRequest,
) -> InterviewFeedbackResponse:
    prompt = INTERVIEW_FEEDBACK_PROMPT.format(
        role=request.role,
        question=request.question,
        answer=truncate(request.answer, 3000),
    )
    data = await _ask(client, prompt, purpose="interview_feedback")

    return InterviewFeedbackResponse(
        score=_clamp_score(data.get("score")),
        strengths=_str_list(data.get("strengths")),
        improvements=_str_list(data.get("improvements")),
        sample_answer=str(data.get("sample_answer") or ""),
    )


async def interview_tips(client: OpenAIClient, role: str) -> InterviewTipsResponse:
    data = await _ask(client, INTERVIEW_TIPS_PROMPT.format(role=role), purpose="interview_tips")
    return InterviewTipsResponse(role=role, tips=_str_list(data.get("tips")))


# =============================================================================
# Counseling
# =============================================================================


async def study_abroad_guidance(
    client: OpenAIClient,
    request: StudyAbroadRequest,
) -> StudyAbroadResponse:
    prompt = STUDY_ABROAD_PROMPT.format(
        field=request.field_of_study,
        level=request.education_level.replace("_", " "),
        countries=", ".join(request.countries) or "open to suggestions",
        budget=request.budget or "not given",
        english_test=request.english_test or "not taken yet",
    )
    data = await _ask(client, prompt, purpose="study_abroad")

    countries = []
    for item in data.get("countries") or []:
        if isinstance(item, dict) and item.get("country"):
            countries.append(
                CountryOption(
                    country=str(item["country"]),
                    reasons=_str_list(item.get("reasons")),
                    estimated_cost=str(item.get("estimated_cost") or ""),
                    popular_programs=_str_list(item.get("popular_programs")),
                )
            )

    return StudyAbroadResponse(
        summary=str(data.get("summary") or ""),
        countries=countries,
        requirements=_str_list(data.get("requirements")),
        scholarships=_str_list(data.get("scholarships")),
        next_steps=_str_list(data.get("next_steps")),
    )


# =============================================================================
# Resume feedback
# =============================================================================

RESUME_FEEDBACK_PROMPT = """Review this resume for a job seeker in Punjab, India.
{job_description_block}
Give feedback in {language} under these headings: Summary, Strengths, Improvements,
Missing keywords, Suggested roles. Keep it under 350 words.

RESUME:
{resume_text}"""


async def resume_feedback(
    client: OpenAIClient,
    resume_text: str,
    max_chars: int,
    language: str = "English",
    job_description: str | None = None,
) -> str:
    """Plain-text feedback on a resume, optionally against a job description."""
    jd_block = ""
    if job_description:
        jd_block = f"\nTarget job description:\n{truncate(job_description, 3000)}\n"

    prompt = RESUME_FEEDBACK_PROMPT.format(
        job_description_block=jd_block,
        language=language,
        resume_text=truncate(resume_text, max_chars),
    )
    messages = [
        {"role": "system", "content": RESUME_REVIEWER_PERSONA},
        {"role": "user", "content": prompt},
    ]
    response = await client.chat(messages, purpose="resume")
    return response.content.strip() or "No feedback was returned. Please try again."
