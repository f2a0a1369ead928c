"""Observability utilities: trace IDs, upstream call metrics, and LLM logging.

This module provides:
- Trace ID generation and propagation via context vars
- Prometheus metrics for LLM calls (tokens, latency, errors)
- Prometheus metrics for the other upstream services (Firestore, STT, OCR, JSearch)
- Structured logging helpers for LLM request/response correlation
"""

import secrets
import time
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Iterator

import structlog
from prometheus_client import Counter, Gauge, Histogram

logger = structlog.get_logger()

# =============================================================================
# Trace ID Context
# =============================================================================

trace_id_ctx: ContextVar[str] = ContextVar("trace_id", default="")


def generate_trace_id() -> str:
    """Generate cryptographically secure trace ID for request tracking."""
    return secrets.token_hex(16)


def get_trace_id() -> str:
    """Get current trace ID from context, or empty string if not set."""
    return trace_id_ctx.get()


def set_trace_id(trace_id: str) -> None:
    """Set trace ID in context."""
    trace_id_ctx.set(trace_id)


# =============================================================================
# Prometheus Metrics
# =============================================================================

llm_requests_total = Counter(
    "llm_requests_total",
    "Total LLM API requests",
    ["model", "status", "purpose"],
)

llm_tokens_total = Counter(
    "llm_tokens_total",
    "Total tokens used in LLM calls",
    ["model", "type"],  # values: prompt, completion, total
)

llm_latency_seconds = Histogram(
    "llm_latency_seconds",
    "LLM response latency in seconds",
    ["model", "purpose"],
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0],
)

llm_tool_calls_total = Counter(
    "llm_tool_calls_total",
    "Tool calls requested by the model",
    ["function", "status"],
)

llm_active_requests = Gauge(
    "llm_active_requests",
    "Currently active LLM requests",
    ["model"],
)

upstream_requests_total = Counter(
    "upstream_requests_total",
    "Calls to non-LLM upstream services",
    ["service", "operation", "status"],
)

upstream_latency_seconds = Histogram(
    "upstream_latency_seconds",
    "Latency of non-LLM upstream calls in seconds",
    ["service", "operation"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)


@contextmanager
def track_upstream(service: str, operation: str) -> Iterator[None]:
    """Time an upstream call and count it as success or error."""
    start = time.time()
    status = "success"
    try:
        yield
    except Exception:
        status = "error"
        raise
    finally:
        upstream_latency_seconds.labels(service=service, operation=operation).observe(
            time.time() - start
        )
        upstream_requests_total.labels(service=service, operation=operation, status=status).inc()


# =============================================================================
# LLM Payload Logging
# =============================================================================


@dataclass
class LLMRequestLog:
    """Structured log data for LLM requests."""

    trace_id: str
    model: str
    purpose: str
    message_count: int
    prompt_chars: int
    tools: int
    last_message_preview: str  # First 100 chars
    timestamp: float = 0.0

    def __post_init__(self) -> None:
        if self.timestamp == 0.0:
            self.timestamp = time.time()


def log_llm_request(
    model: str,
    purpose: str,
    messages: list[dict[str, Any]],
    tools: list[dict[str, Any]] | None = None,
) -> LLMRequestLog:
    """Log an LLM request and open its latency window.

    Returns LLMRequestLog for correlation with the response.
    """
    last = ""
    if messages:
        last = str(messages[-1].get("content") or "")

    log_data = LLMRequestLog(
        trace_id=get_trace_id(),
        model=model,
        purpose=purpose,
        message_count=len(messages),
        prompt_chars=sum(len(str(m.get("content") or "")) for m in messages),
        tools=len(tools) if tools else 0,
        last_message_preview=last[:100] + ("..." if len(last) > 100 else ""),
    )

    logger.info(
        "llm_request",
        trace_id=log_data.trace_id,
        model=log_data.model,
        purpose=log_data.purpose,
        message_count=log_data.message_count,
        prompt_chars=log_data.prompt_chars,
        tools=log_data.tools,
        last_message_preview=log_data.last_message_preview,
    )

    llm_active_requests.labels(model=model).inc()
    return log_data


def log_llm_response(
    request_log: LLMRequestLog,
    tokens_prompt: int = 0,
    tokens_completion: int = 0,
    tokens_total: int = 0,
    finish_reason: str = "unknown",
    error: str | None = None,
) -> None:
    """Log an LLM response with metrics and correlation."""
    latency_ms = int((time.time() - request_log.timestamp) * 1000)

    if error:
        logger.error(
            "llm_response",
            trace_id=request_log.trace_id,
            model=request_log.model,
            purpose=request_log.purpose,
            latency_ms=latency_ms,
            error=error,
        )
        status = "error"
    else:
        logger.info(
            "llm_response",
            trace_id=request_log.trace_id,
            model=request_log.model,
            purpose=request_log.purpose,
            tokens_prompt=tokens_prompt,
            tokens_completion=tokens_completion,
            tokens_total=tokens_total,
            latency_ms=latency_ms,
            finish_reason=finish_reason,
        )
        status = "success"

    llm_active_requests.labels(model=request_log.model).dec()
    llm_requests_total.labels(
        model=request_log.model,
        status=status,
        purpose=request_log.purpose,
    ).inc()

    if tokens_total > 0:
        llm_tokens_total.labels(model=request_log.model, type="prompt").inc(tokens_prompt)
        llm_tokens_total.labels(model=request_log.model, type="completion").inc(tokens_completion)
        llm_tokens_total.labels(model=request_log.model, type="total").inc(tokens_total)

    llm_latency_seconds.labels(
        model=request_log.model,
        purpose=request_log.purpose,
    ).observe(latency_ms / 1000.0)
