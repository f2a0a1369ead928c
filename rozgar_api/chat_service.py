"""Chat orchestration: system prompt, first model call, tool round, final reply."""

from typing import Any

import structlog

from rozgar_api.chat_tools import TOOLS, ToolDispatch
from rozgar_api.models import ChatRequest, ChatResponse, UserProfile
from rozgar_api.openai_client import OpenAIClient
from rozgar_api.text_utils import detect_language, language_name

logger = structlog.get_logger()

NO_REPLY = "No reply"
FALLBACK_REPLY = "I'm not sure how to respond to that."


def build_system_prompt(
    base_prompt: str,
    profile: UserProfile | None = None,
    language: str = "en-IN",
) -> str:
    """Persona plus the optional skills hint and reply-language instruction."""
    prompt = base_prompt

    skills = profile.skills_text if profile else ""
    if skills:
        prompt += (
            f" The user has the following skills: {skills}. "
            "Use this information to provide better recommendations."
        )

    if language != "en-IN":
        name = language_name(language)
        prompt += f" The user is writing in {name}; reply in {name} using its native script."

    return prompt


def build_messages(request: ChatRequest, system_prompt: str) -> list[dict[str, Any]]:
    messages: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]
    messages.extend(item.model_dump(exclude_none=True) for item in request.history)
    if request.message:
        messages.append({"role": "user", "content": request.message})
    return messages


async def run_chat(
    request: ChatRequest,
    client: OpenAIClient,
    dispatch: ToolDispatch,
    base_prompt: str,
) -> ChatResponse:
    """Answer a chat request, running at most one round of tool calls.

    Every tool call in the first reply is executed in order and answered with
    its own ``tool`` message, then a single follow-up completion (without
    tools) produces the final reply.

    Raises:
        OpenAIError: If either completion call fails.
    """
    language = detect_language(request.latest_user_text())
    system_prompt = build_system_prompt(base_prompt, request.user_profile, language)
    messages = build_messages(request, system_prompt)

    first = await client.chat(messages, tools=TOOLS, purpose="chat")

    if not first.has_tool_calls:
        return ChatResponse(reply=first.content or FALLBACK_REPLY)

    follow_up = [*messages, first.message]
    executed = []
    for call in first.tool_calls:
        logger.info("Executing tool call", tool=call.name, tool_call_id=call.id)
        result = await dispatch.execute(call.name, call.arguments)
        follow_up.append(
            {
                "tool_call_id": call.id,
                "role": "tool",
                "name": call.name,
                "content": result,
            }
        )
        executed.append(call.name)

    final = await client.chat(follow_up, purpose="chat_tool_followup")
    return ChatResponse(reply=final.content or NO_REPLY, tool_calls=executed)
