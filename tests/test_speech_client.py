"""Tests for the Speech-to-Text client."""

import os
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from google.api_core import exceptions as google_exceptions
from google.cloud import speech

from rozgar_api.config import get_settings
from rozgar_api.speech_client import (
    SpeechAudioError,
    SpeechClient,
    SpeechConfigError,
    SpeechError,
    close_speech_client,
    get_speech_client,
)


def _result(transcript: str | None, language_code: str = "") -> MagicMock:
    result = MagicMock()
    result.alternatives = [MagicMock(transcript=transcript)] if transcript is not None else []
    result.language_code = language_code
    return result


def _response(*results: MagicMock) -> MagicMock:
    response = MagicMock()
    response.results = list(results)
    return response


class TestBuildConfig:
    def test_defaults(self) -> None:
        config = SpeechClient().build_config()

        assert config.encoding == speech.RecognitionConfig.AudioEncoding.AMR
        assert config.sample_rate_hertz == 8000
        assert config.language_code == "en-IN"
        assert list(config.alternative_language_codes) == ["hi-IN", "pa-IN"]

    def test_overrides(self) -> None:
        client = SpeechClient(
            encoding="linear16",
            sample_rate_hertz=16000,
            language_code="pa-IN",
            alternative_language_codes=[],
        )
        config = client.build_config()

        assert config.encoding == speech.RecognitionConfig.AudioEncoding.LINEAR16
        assert config.sample_rate_hertz == 16000
        assert config.language_code == "pa-IN"
        assert list(config.alternative_language_codes) == []


class TestParseResponse:
    """Tests for parse_response."""

    def test_joins_results(self) -> None:
        response = _response(_result("mainu naukri", "pa-in"), _result("chahidi hai", "pa-in"))
        transcription = SpeechClient().parse_response(response)

        assert transcription.transcript == "mainu naukri\nchahidi hai"
        assert transcription.language == "pa-in"

    def test_skips_results_without_alternatives(self) -> None:
        response = _response(_result(None), _result("hello"))
        transcription = SpeechClient().parse_response(response)

        assert transcription.transcript == "hello"
        assert transcription.language == "en-IN"

    def test_empty(self) -> None:
        transcription = SpeechClient().parse_response(_response())

        assert transcription.is_empty
        assert transcription.language == "unknown"


class TestTranscribe:
    """Tests for transcribe."""

    @pytest.mark.asyncio
    async def test_mock_mode(self) -> None:
        client = SpeechClient()
        await client.connect()
        assert client.is_configured is False

        transcription = await client.transcribe(b"#!AMR\n\x00\x01")

        assert "mock transcript" in transcription.transcript
        assert transcription.language == "en-IN"

    @pytest.mark.asyncio
    async def test_mock_mode_empty_audio(self) -> None:
        transcription = await SpeechClient().transcribe(b"")
        assert transcription.is_empty
        assert transcription.language == "unknown"

    @pytest.mark.asyncio
    async def test_fails_loudly_without_credentials_or_mock(self) -> None:
        with patch.dict(os.environ, {"MOCK_SPEECH": "false"}):
            get_settings.cache_clear()
            with pytest.raises(SpeechConfigError, match="MOCK_SPEECH=false"):
                await SpeechClient().transcribe(b"audio")

    @pytest.mark.asyncio
    async def test_recognize_request(self) -> None:
        client = SpeechClient()
        client._client = MagicMock()
        client._client.recognize = AsyncMock(return_value=_response(_result("need a job", "en-in")))

        transcription = await client.transcribe(b"audio-bytes")

        assert transcription.transcript == "need a job"
        request = client._client.recognize.call_args.kwargs["request"]
        assert request.audio.content == b"audio-bytes"
        assert request.config.language_code == "en-IN"

    @pytest.mark.asyncio
    async def test_invalid_audio(self) -> None:
        client = SpeechClient()
        client._client = MagicMock()
        client._client.recognize = AsyncMock(
            side_effect=google_exceptions.InvalidArgument("bad encoding")
        )

        with pytest.raises(SpeechAudioError, match="bad encoding"):
            await client.transcribe(b"audio")

    @pytest.mark.asyncio
    async def test_service_error(self) -> None:
        client = SpeechClient()
        client._client = MagicMock()
        client._client.recognize = AsyncMock(
            side_effect=google_exceptions.ServiceUnavailable("down")
        )

        with pytest.raises(SpeechError) as exc_info:
            await client.transcribe(b"audio")
        assert not isinstance(exc_info.value, SpeechAudioError)


class TestGlobalClient:
    @pytest.mark.asyncio
    async def test_lifecycle(self) -> None:
        first = await get_speech_client()
        assert await get_speech_client() is first
        await close_speech_client()
        assert await get_speech_client() is not first
