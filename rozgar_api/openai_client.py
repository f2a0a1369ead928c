"""OpenAI chat completions client with tool-calling support."""

from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from rozgar_api.config import get_settings
from rozgar_api.observability import log_llm_request, log_llm_response

logger = structlog.get_logger()


class OpenAIError(Exception):
    """Base exception for OpenAI client errors."""

    pass


class OpenAIAuthError(OpenAIError):
    """Raised when authentication fails or no key is configured."""

    pass


class OpenAIRateLimitError(OpenAIError):
    """Raised when rate limit is exceeded."""

    pass


@dataclass
class ToolCall:
    """A function call requested by the model."""

    id: str
    name: str
    arguments: str  # JSON-encoded, exactly as the model produced it


@dataclass
class LLMResponse:
    """Response from a chat completion."""

    content: str
    tokens_used: int
    finish_reason: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    message: dict[str, Any] = field(default_factory=dict)  # raw assistant message

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


@dataclass
class OpenAIUsage:
    """Token usage information."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class OpenAIClient:
    """Async client for the OpenAI chat completions endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ):
        """Initialize the OpenAI client.

        Args:
            api_key: OpenAI API key. Defaults to config value.
            base_url: API base URL. Defaults to config value.
            model: Model ID to use. Defaults to config value.
            max_tokens: Maximum tokens in response. Defaults to config value.
            temperature: Sampling temperature. Defaults to config value.
        """
        settings = get_settings()
        self._api_key = api_key or settings.openai_api_key
        self._base_url = base_url or settings.openai_base_url
        self._model = model or settings.llm_model
        self._max_tokens = max_tokens or settings.llm_max_tokens
        self._temperature = temperature if temperature is not None else settings.llm_temperature
        self._timeout = settings.llm_timeout_seconds
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "OpenAIClient":
        """Enter async context."""
        await self.connect()
        return self

    async def __aexit__(self, _exc_type: Any, _exc_val: Any, _exc_tb: Any) -> None:
        """Exit async context."""
        await self.close()

    async def connect(self) -> None:
        """Create the HTTP client.

        In mock mode (MOCK_OPENAI=true), skips creating a real HTTP client
        since all requests will be served by mock handlers.
        """
        settings = get_settings()
        if settings.mock_openai and not self.is_configured:
            logger.info(
                "OpenAI client in mock mode, skipping HTTP client creation", model=self._model
            )
            return

        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(self._timeout, connect=10.0),
        )
        logger.info("OpenAI client connected", model=self._model)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("OpenAI client closed")

    def _build_payload(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None,
        json_mode: bool,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self._model,
            "messages": messages,
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
        }
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = "auto"
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        return payload

    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        json_mode: bool = False,
        purpose: str = "chat",
    ) -> LLMResponse:
        """Send a chat completion request.

        Args:
            messages: Full message list, system prompt first.
            tools: Function definitions the model may call.
            json_mode: Ask the model for a single JSON object.
            purpose: Label for logs and metrics (e.g. "chat", "skills").

        Returns:
            LLM response with content, requested tool calls and token usage.

        Raises:
            OpenAIError: If the request fails.
            OpenAIAuthError: If MOCK_OPENAI=false but API key missing.
        """
        settings = get_settings()

        if not self.is_configured:
            if settings.mock_openai:
                logger.info("MOCK_OPENAI=true: Using mock LLM response", purpose=purpose)
                return self._mock_chat(messages, json_mode)
            error_msg = (
                "FATAL: OpenAI API key not configured with MOCK_OPENAI=false. "
                "Either set OPENAI_API_KEY or set MOCK_OPENAI=true for testing."
            )
            logger.error(error_msg)
            raise OpenAIAuthError(error_msg)

        if not self._client:
            await self.connect()

        payload = self._build_payload(messages, tools, json_mode)
        request_log = log_llm_request(self._model, purpose, messages, tools)

        try:
            response = await self._client.post("/chat/completions", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            log_llm_response(request_log, error=f"HTTP {e.response.status_code}")
            self._handle_http_error(e)
            raise
        except httpx.RequestError as e:
            log_llm_response(request_log, error=str(e))
            raise OpenAIError(f"Connection error: {e}") from e

        try:
            choice = data["choices"][0]
            message = choice["message"]
        except (KeyError, IndexError, TypeError) as e:
            log_llm_response(request_log, error="malformed response")
            raise OpenAIError("Failed to get a valid response from OpenAI.") from e

        usage = self._parse_usage(data)
        log_llm_response(
            request_log,
            tokens_prompt=usage.prompt_tokens,
            tokens_completion=usage.completion_tokens,
            tokens_total=usage.total_tokens,
            finish_reason=choice.get("finish_reason") or "unknown",
        )

        return LLMResponse(
            content=message.get("content") or "",
            tokens_used=usage.total_tokens,
            finish_reason=choice.get("finish_reason"),
            tool_calls=self._parse_tool_calls(message),
            message=message,
        )

    @staticmethod
    def _parse_usage(data: dict[str, Any]) -> OpenAIUsage:
        usage = data.get("usage") or {}
        return OpenAIUsage(
            prompt_tokens=usage.get("prompt_tokens", 0),
            completion_tokens=usage.get("completion_tokens", 0),
            total_tokens=usage.get("total_tokens", 0),
        )

    @staticmethod
    def _parse_tool_calls(message: dict[str, Any]) -> list[ToolCall]:
        calls = []
        for raw in message.get("tool_calls") or []:
            function = raw.get("function") or {}
            calls.append(
                ToolCall(
                    id=raw.get("id", ""),
                    name=function.get("name", ""),
                    arguments=function.get("arguments") or "{}",
                )
            )
        return calls

    def _handle_http_error(self, error: httpx.HTTPStatusError) -> None:
        """Handle HTTP errors from the OpenAI API."""
        status = error.response.status_code
        try:
            detail = error.response.json().get("error", {}).get("message", str(error))
        except Exception:
            detail = str(error)

        logger.error("OpenAI API error", status=status, detail=detail)

        if status == 401:
            raise OpenAIAuthError(f"Authentication failed: {detail}")
        elif status == 429:
            raise OpenAIRateLimitError(f"Rate limit exceeded: {detail}")
        else:
            raise OpenAIError(f"API error ({status}): {detail}")

    def _mock_chat(self, messages: list[dict[str, Any]], json_mode: bool) -> LLMResponse:
        """Return mock LLM response for testing.

        The mock never requests tools. In JSON mode it returns an empty object
        so callers exercise their default-filling path.
        """
        if json_mode:
            return LLMResponse(content="{}", tokens_used=2, finish_reason="stop")

        last = str(messages[-1].get("content") or "") if messages else ""
        mock_content = (
            "This is a mock response (MOCK_OPENAI=true). "
            f"In production, this would be a real AI response to: '{last[:50]}'. "
            "Set OPENAI_API_KEY to enable real responses."
        )
        return LLMResponse(
            content=mock_content,
            tokens_used=50,
            finish_reason="stop",
            message={"role": "assistant", "content": mock_content},
        )

    @property
    def is_configured(self) -> bool:
        """Check if the client is properly configured with an API key."""
        return bool(self._api_key and self._api_key.startswith("sk-"))


# Global client instance
_openai_client: OpenAIClient | None = None


async def get_openai_client() -> OpenAIClient:
    """Get or create the global OpenAI client instance."""
    global _openai_client
    if _openai_client is None:
        _openai_client = OpenAIClient()
        await _openai_client.connect()
    return _openai_client


async def close_openai_client() -> None:
    """Close the global OpenAI client."""
    global _openai_client
    if _openai_client:
        await _openai_client.close()
        _openai_client = None


def reset_openai_client() -> None:
    """Reset the global OpenAI client (for testing)."""
    global _openai_client
    _openai_client = None
