"""Tests for chat tool schemas and dispatch."""

import json
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from rozgar_api.chat_tools import TOOLS, ToolDispatch, parse_arguments, split_keywords
from rozgar_api.firestore_store import FirestoreConnectionError, FirestoreError, FirestoreStore


@pytest_asyncio.fixture
async def store() -> FirestoreStore:
    store = FirestoreStore()
    await store.connect()
    assert store.is_mock
    store._mock_put(
        "jobs",
        "j1",
        {"title": "Welder", "location": "Ludhiana", "requiredSkills": ["welding", "fitting"]},
    )
    store._mock_put(
        "jobs",
        "j2",
        {"title": "Electrician", "location": "Amritsar", "requiredSkills": ["wiring"]},
    )
    store._mock_put("users", "u1", {"name": "Harpreet", "skills": ["welding"]})
    return store


class TestToolSchemas:
    def test_tool_names(self) -> None:
        names = [tool["function"]["name"] for tool in TOOLS]
        assert names == ["get_jobs", "get_user_profile"]

    def test_get_jobs_parameters(self) -> None:
        params = TOOLS[0]["function"]["parameters"]
        assert set(params["properties"]) == {"location", "keyword"}
        assert params["required"] == []


class TestHelpers:
    def test_split_keywords(self) -> None:
        assert split_keywords("Welding, Fitting,welding, ,CNC") == ["welding", "fitting", "cnc"]

    def test_split_keywords_capped_at_ten(self) -> None:
        keyword = ",".join(f"skill{i}" for i in range(15))
        assert len(split_keywords(keyword)) == 10

    def test_split_keywords_empty(self) -> None:
        assert split_keywords(None) == []
        assert split_keywords("") == []

    def test_parse_arguments(self) -> None:
        assert parse_arguments('{"location": "Mohali"}') == {"location": "Mohali"}

    @pytest.mark.parametrize("raw", ["", "not json", "[1, 2]", '"text"'])
    def test_parse_arguments_malformed(self, raw: str) -> None:
        assert parse_arguments(raw) == {}


class TestToolDispatch:
    """Tests for ToolDispatch."""

    @pytest.mark.asyncio
    async def test_names(self, store: FirestoreStore) -> None:
        assert ToolDispatch(store).names == ["get_jobs", "get_user_profile"]

    @pytest.mark.asyncio
    async def test_get_jobs_by_location_and_keyword(self, store: FirestoreStore) -> None:
        dispatch = ToolDispatch(store)
        result = json.loads(
            await dispatch.execute("get_jobs", '{"location": "Ludhiana", "keyword": "Welding"}')
        )
        assert [job["id"] for job in result] == ["j1"]

    @pytest.mark.asyncio
    async def test_get_jobs_without_filters_returns_all(self, store: FirestoreStore) -> None:
        result = json.loads(await ToolDispatch(store).execute("get_jobs", "{}"))
        assert {job["id"] for job in result} == {"j1", "j2"}

    @pytest.mark.asyncio
    async def test_get_jobs_no_match(self, store: FirestoreStore) -> None:
        result = json.loads(
            await ToolDispatch(store).execute("get_jobs", '{"location": "Bathinda"}')
        )
        assert result == []

    @pytest.mark.asyncio
    async def test_get_jobs_store_failure(self, store: FirestoreStore) -> None:
        store.query_jobs = AsyncMock(side_effect=FirestoreError("boom"))
        result = json.loads(await ToolDispatch(store).execute("get_jobs", "{}"))
        assert result == {"error": "An error occurred while fetching jobs."}

    @pytest.mark.asyncio
    async def test_get_user_profile(self, store: FirestoreStore) -> None:
        result = json.loads(await ToolDispatch(store, uid="u1").execute("get_user_profile", ""))
        assert result["uid"] == "u1"
        assert result["name"] == "Harpreet"

    @pytest.mark.asyncio
    async def test_get_user_profile_signed_out(self, store: FirestoreStore) -> None:
        result = json.loads(await ToolDispatch(store).execute("get_user_profile", "{}"))
        assert result == {"error": "No user is signed in."}

    @pytest.mark.asyncio
    async def test_get_user_profile_missing(self, store: FirestoreStore) -> None:
        result = json.loads(
            await ToolDispatch(store, uid="ghost").execute("get_user_profile", "{}")
        )
        assert result == {"error": "Profile not found."}

    @pytest.mark.asyncio
    async def test_get_user_profile_store_unavailable(self, store: FirestoreStore) -> None:
        store.get_user = AsyncMock(side_effect=FirestoreConnectionError("down"))
        result = json.loads(
            await ToolDispatch(store, uid="u1").execute("get_user_profile", "{}")
        )
        assert "error" in result

    @pytest.mark.asyncio
    async def test_unknown_tool(self, store: FirestoreStore) -> None:
        result = json.loads(await ToolDispatch(store).execute("delete_everything", "{}"))
        assert result == {"error": "Unknown function: delete_everything"}
