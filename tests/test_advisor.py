"""Tests for the career advice features."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from rozgar_api.advisor import (
    COUNSELING_TOPICS,
    AdvisorParseError,
    analyze_skill_gap,
    generate_interview_questions,
    interview_tips,
    parse_json_object,
    resume_feedback,
    review_interview_answer,
    study_abroad_guidance,
)
from rozgar_api.models import (
    InterviewFeedbackRequest,
    InterviewQuestionsRequest,
    SkillGapRequest,
    StudyAbroadRequest,
)
from rozgar_api.openai_client import LLMResponse


def _client(content: str | dict) -> MagicMock:
    if isinstance(content, dict):
        content = json.dumps(content)
    client = MagicMock()
    client.chat = AsyncMock(
        return_value=LLMResponse(content=content, tokens_used=42, finish_reason="stop")
    )
    return client


class TestParseJsonObject:
    """Tests for parse_json_object."""

    def test_plain(self) -> None:
        assert parse_json_object('{"tips": ["Be on time"]}') == {"tips": ["Be on time"]}

    def test_code_fence(self) -> None:
        assert parse_json_object('```json\n{"score": 7}\n```') == {"score": 7}

    def test_prose_around_object(self) -> None:
        reply = 'Here is the analysis:\n{"missing_skills": ["GST"]}\nGood luck!'
        assert parse_json_object(reply) == {"missing_skills": ["GST"]}

    @pytest.mark.parametrize("reply", ["", "no json here", "[1, 2, 3]", "{broken: }"])
    def test_rejects(self, reply: str) -> None:
        with pytest.raises(AdvisorParseError):
            parse_json_object(reply)


class TestSkillGap:
    @pytest.mark.asyncio
    async def test_reshapes_reply(self) -> None:
        client = _client(
            {
                "matching_skills": ["Excel"],
                "missing_skills": "- GST filing\n- Tally Prime",
                "recommendations": ["Take the PMKVY accounts course"],
                "learning_path": [
                    {"skill": "GST filing", "resources": ["NPTEL"], "duration": "4 weeks"},
                    "Tally Prime",
                    {"resources": ["ignored without a skill"]},
                ],
            }
        )
        request = SkillGapRequest(current_skills="excel, typing", target_role="Accountant")

        response = await analyze_skill_gap(client, request)

        assert response.target_role == "Accountant"
        assert response.matching_skills == ["Excel"]
        assert response.missing_skills == ["GST filing", "Tally Prime"]
        assert [step.skill for step in response.learning_path] == ["GST filing", "Tally Prime"]
        assert response.learning_path[0].duration == "4 weeks"

        prompt = client.chat.call_args.args[0][1]["content"]
        assert "excel, typing" in prompt
        assert "not given" in prompt
        assert client.chat.call_args.kwargs["json_mode"] is True

    @pytest.mark.asyncio
    async def test_empty_object(self) -> None:
        request = SkillGapRequest(current_skills=["welding"], target_role="Fitter")
        response = await analyze_skill_gap(_client("{}"), request)
        assert response.missing_skills == []
        assert response.learning_path == []

    @pytest.mark.asyncio
    async def test_non_json_reply(self) -> None:
        request = SkillGapRequest(current_skills=["welding"], target_role="Fitter")
        with pytest.raises(AdvisorParseError):
            await analyze_skill_gap(_client("Sorry, I cannot help."), request)


class TestInterview:
    """Tests for interview preparation."""

    @pytest.mark.asyncio
    async def test_questions_capped_at_count(self) -> None:
        client = _client(
            {
                "questions": [
                    {"question": "Why this role?", "category": "HR", "tip": "Be specific."},
                    "Describe a tough customer.",
                    {"category": "technical"},
                    {"question": "Extra question", "category": "technical"},
                ]
            }
        )
        request = InterviewQuestionsRequest(role="Sales executive", count=2)

        response = await generate_interview_questions(client, request)

        assert [q.question for q in response.questions] == [
            "Why this role?",
            "Describe a tough customer.",
        ]
        assert response.questions[0].category == "hr"
        assert response.questions[1].category == "general"

    @pytest.mark.parametrize("raw,expected", [(7, 7), ("8.6", 9), (15, 10), (-2, 0), ("n/a", 0)])
    @pytest.mark.asyncio
    async def test_feedback_score_clamped(self, raw, expected: int) -> None:
        request = InterviewFeedbackRequest(
            role="Clerk", question="Tell me about yourself.", answer="I am punctual."
        )
        response = await review_interview_answer(_client({"score": raw}), request)
        assert response.score == expected

    @pytest.mark.asyncio
    async def test_feedback_lists(self) -> None:
        client = _client(
            {
                "score": 6,
                "strengths": ["Clear"],
                "improvements": ["Give an example"],
                "sample_answer": "I have two years of data entry experience...",
            }
        )
        request = InterviewFeedbackRequest(
            role="Clerk", question="Tell me about yourself.", answer="I type fast."
        )

        response = await review_interview_answer(client, request)

        assert response.strengths == ["Clear"]
        assert response.improvements == ["Give an example"]
        assert response.sample_answer.startswith("I have two years")

    @pytest.mark.asyncio
    async def test_tips(self) -> None:
        client = _client({"tips": ["Carry copies of certificates", "Arrive early"]})
        response = await interview_tips(client, "Driver")
        assert response.role == "Driver"
        assert len(response.tips) == 2


class TestStudyAbroad:
    @pytest.mark.asyncio
    async def test_guidance(self) -> None:
        client = _client(
            {
                "summary": "Canada and Australia suit your budget.",
                "countries": [
                    {
                        "country": "Canada",
                        "reasons": ["Post-study work permit"],
                        "estimated_cost": "₹15L",
                        "popular_programs": ["Business diploma"],
                    },
                    {"reasons": ["no country name"]},
                ],
                "requirements": ["IELTS 6.5"],
                "scholarships": [],
                "next_steps": ["Book IELTS", "Shortlist colleges"],
            }
        )
        request = StudyAbroadRequest(
            field_of_study="Business", education_level="high_school", countries="canada"
        )

        response = await study_abroad_guidance(client, request)

        assert [c.country for c in response.countries] == ["Canada"]
        assert response.next_steps == ["Book IELTS", "Shortlist colleges"]
        prompt = client.chat.call_args.args[0][1]["content"]
        assert "high school" in prompt
        assert "not taken yet" in prompt

    def test_topics(self) -> None:
        ids = [topic.id for topic in COUNSELING_TOPICS]
        assert len(ids) == len(set(ids)) == 5
        assert "study-abroad" in ids


class TestResumeFeedback:
    @pytest.mark.asyncio
    async def test_feedback_with_job_description(self) -> None:
        client = _client("Summary: solid accountant profile.")

        feedback = await resume_feedback(
            client,
            "Accountant, 4 years, Tally",
            max_chars=100,
            language="Hindi",
            job_description="Senior accountant with GST experience",
        )

        assert feedback == "Summary: solid accountant profile."
        prompt = client.chat.call_args.args[0][1]["content"]
        assert "Target job description" in prompt
        assert "in Hindi" in prompt
        assert "json_mode" not in client.chat.call_args.kwargs

    @pytest.mark.asyncio
    async def test_empty_reply(self) -> None:
        feedback = await resume_feedback(_client("  "), "text", max_chars=100)
        assert feedback == "No feedback was returned. Please try again."
