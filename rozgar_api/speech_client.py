"""Google Cloud Speech-to-Text client for voice queries."""

from dataclasses import dataclass
from typing import Any

import structlog
from google.api_core import exceptions as google_exceptions
from google.cloud import speech
from google.oauth2 import service_account

from rozgar_api.config import get_settings
from rozgar_api.observability import track_upstream

logger = structlog.get_logger()


class SpeechError(Exception):
    """Base exception for speech-to-text errors."""

    pass


class SpeechConfigError(SpeechError):
    """Raised when no credentials are configured and mock mode is off."""

    pass


class SpeechAudioError(SpeechError):
    """Raised when the service rejects the audio (wrong encoding, too long)."""

    pass


@dataclass
class Transcription:
    """Recognised speech."""

    transcript: str
    language: str

    @property
    def is_empty(self) -> bool:
        return not self.transcript


class SpeechClient:
    """Async wrapper around the Speech-to-Text ``recognize`` call."""

    def __init__(
        self,
        encoding: str | None = None,
        sample_rate_hertz: int | None = None,
        language_code: str | None = None,
        alternative_language_codes: list[str] | None = None,
    ):
        settings = get_settings()
        self._encoding = (encoding or settings.stt_encoding).upper()
        self._sample_rate_hertz = sample_rate_hertz or settings.stt_sample_rate_hertz
        self._language_code = language_code or settings.stt_language_code
        self._alternative_language_codes = (
            alternative_language_codes
            if alternative_language_codes is not None
            else list(settings.stt_alternative_language_codes)
        )
        self._client: Any = None

    async def connect(self) -> None:
        """Create the Speech async client from the configured service account."""
        settings = get_settings()
        account = settings.load_service_account()

        if account is None:
            if settings.mock_speech:
                logger.info("MOCK_SPEECH=true: Skipping Speech-to-Text client creation")
            else:
                logger.warning("Speech-to-Text not configured: no service account")
            return

        creds = service_account.Credentials.from_service_account_info(account)
        self._client = speech.SpeechAsyncClient(credentials=creds)
        logger.info("Speech-to-Text client connected", encoding=self._encoding)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.transport.close()
            self._client = None
            logger.info("Speech-to-Text client closed")

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    def build_config(self) -> speech.RecognitionConfig:
        """Recognition config: Indian English first, Hindi and Punjabi as alternatives."""
        return speech.RecognitionConfig(
            encoding=speech.RecognitionConfig.AudioEncoding[self._encoding],
            sample_rate_hertz=self._sample_rate_hertz,
            language_code=self._language_code,
            alternative_language_codes=self._alternative_language_codes,
            enable_automatic_punctuation=True,
        )

    def parse_response(self, response: Any) -> Transcription:
        """Join the top alternative of every result.

        The first result's language code wins; an empty response reports
        language "unknown".
        """
        results = [r for r in response.results if r.alternatives]
        if not results:
            return Transcription(transcript="", language="unknown")

        transcript = "\n".join(r.alternatives[0].transcript for r in results)
        language = results[0].language_code or self._language_code
        return Transcription(transcript=transcript, language=language)

    async def transcribe(self, audio: bytes) -> Transcription:
        """Transcribe a short audio clip.

        Raises:
            SpeechAudioError: If the service rejects the audio.
            SpeechError: If the call fails.
            SpeechConfigError: If MOCK_SPEECH=false but no credentials are set.
        """
        settings = get_settings()

        if self._client is None:
            if settings.mock_speech:
                logger.info("MOCK_SPEECH=true: Using mock transcript", audio_bytes=len(audio))
                return self._mock_transcribe(audio)
            error_msg = (
                "FATAL: Speech-to-Text not configured with MOCK_SPEECH=false. "
                "Set GOOGLE_APPLICATION_CREDENTIALS_JSON or MOCK_SPEECH=true for testing."
            )
            logger.error(error_msg)
            raise SpeechConfigError(error_msg)

        request = speech.RecognizeRequest(
            config=self.build_config(),
            audio=speech.RecognitionAudio(content=audio),
        )

        try:
            with track_upstream("speech", "recognize"):
                response = await self._client.recognize(request=request)
        except google_exceptions.InvalidArgument as e:
            logger.warning("Speech-to-Text rejected audio", error=str(e))
            raise SpeechAudioError(f"Audio rejected: {e.message}") from e
        except google_exceptions.GoogleAPICallError as e:
            logger.error("Speech-to-Text call failed", error=str(e))
            raise SpeechError(f"Speech-to-Text error: {e.message}") from e

        transcription = self.parse_response(response)
        logger.info(
            "Speech recognised",
            language=transcription.language,
            transcript_chars=len(transcription.transcript),
        )
        return transcription

    def _mock_transcribe(self, audio: bytes) -> Transcription:
        if not audio:
            return Transcription(transcript="", language="unknown")
        return Transcription(
            transcript="This is a mock transcript (MOCK_SPEECH=true).",
            language=self._language_code,
        )


# Global client instance
_speech_client: SpeechClient | None = None


async def get_speech_client() -> SpeechClient:
    """Get or create the global Speech-to-Text client instance."""
    global _speech_client
    if _speech_client is None:
        _speech_client = SpeechClient()
        await _speech_client.connect()
    return _speech_client


async def close_speech_client() -> None:
    global _speech_client
    if _speech_client:
        await _speech_client.close()
        _speech_client = None


def reset_speech_client() -> None:
    """Reset the global Speech-to-Text client (for testing)."""
    global _speech_client
    _speech_client = None
