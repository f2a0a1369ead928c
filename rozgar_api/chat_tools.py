"""Chat tools: function schemas offered to the model and their executors.

Every tool name maps explicitly to one executor. Executors never raise;
failures come back to the model as a JSON ``{"error": ...}`` string so the
final reply can explain the problem.
"""

import json
import re
from typing import Any, Awaitable, Callable

import structlog

from rozgar_api.firestore_store import MAX_ARRAY_CONTAINS_ANY, FirestoreError, FirestoreStore
from rozgar_api.observability import llm_tool_calls_total

logger = structlog.get_logger()

TOOLS = [
    {
        "type": "function",
        "function": {
            "name": "get_jobs",
            "description": "Get jobs from the PGRKAM database based on location and skills/keywords.",
            "parameters": {
                "type": "object",
                "properties": {
                    "location": {
                        "type": "string",
                        "description": "City or district, e.g. Ludhiana",
                    },
                    "keyword": {
                        "type": "string",
                        "description": "Comma-separated skills or keywords, e.g. 'welding, electrician'",
                    },
                },
                "required": [],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "get_user_profile",
            "description": (
                "Get the signed-in user's saved profile (skills, education, location, "
                "preferences) to personalise advice."
            ),
            "parameters": {"type": "object", "properties": {}, "required": []},
        },
    },
]

_KEYWORD_SPLIT = re.compile(r",\s*")


def split_keywords(keyword: str | None) -> list[str]:
    """Lower-case, split on commas, drop blanks and duplicates, cap at the query limit."""
    if not keyword:
        return []
    seen: list[str] = []
    for part in _KEYWORD_SPLIT.split(keyword.lower()):
        part = part.strip()
        if part and part not in seen:
            seen.append(part)
    return seen[:MAX_ARRAY_CONTAINS_ANY]


def parse_arguments(arguments: str) -> dict[str, Any]:
    """Decode model-supplied arguments; anything malformed becomes {}."""
    try:
        parsed = json.loads(arguments or "{}")
    except json.JSONDecodeError:
        logger.warning("Tool arguments were not valid JSON", arguments=arguments[:200])
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _dump(value: Any) -> str:
    return json.dumps(value, default=str, ensure_ascii=False)


class ToolDispatch:
    """Routes a tool name to its executor for one chat request."""

    def __init__(self, store: FirestoreStore, uid: str | None = None):
        self._store = store
        self._uid = uid
        self._handlers: dict[str, Callable[[dict[str, Any]], Awaitable[str]]] = {
            "get_jobs": self.get_jobs,
            "get_user_profile": self.get_user_profile,
        }

    @property
    def names(self) -> list[str]:
        return list(self._handlers)

    async def execute(self, name: str, arguments: str) -> str:
        """Run a tool and return its JSON-encoded result."""
        handler = self._handlers.get(name)
        if handler is None:
            logger.warning("Model requested unknown tool", tool=name)
            llm_tool_calls_total.labels(function="unknown", status="error").inc()
            return _dump({"error": f"Unknown function: {name}"})

        result = await handler(parse_arguments(arguments))
        status = "error" if result.startswith('{"error"') else "success"
        llm_tool_calls_total.labels(function=name, status=status).inc()
        return result

    async def get_jobs(self, args: dict[str, Any]) -> str:
        location = args.get("location") or None
        keywords = split_keywords(args.get("keyword"))
        logger.info("Tool get_jobs", location=location, keywords=keywords)

        try:
            jobs = await self._store.query_jobs(location=location, keywords=keywords)
        except FirestoreError as e:
            logger.error("Job lookup for chat failed", error=str(e))
            return _dump({"error": "An error occurred while fetching jobs."})
        return _dump(jobs)

    async def get_user_profile(self, args: dict[str, Any]) -> str:
        if not self._uid:
            return _dump({"error": "No user is signed in."})

        try:
            profile = await self._store.get_user(self._uid)
        except FirestoreError as e:
            logger.error("Profile lookup for chat failed", error=str(e))
            return _dump({"error": "An error occurred while fetching the profile."})

        if profile is None:
            return _dump({"error": "Profile not found."})
        return _dump({"uid": self._uid, **profile})
