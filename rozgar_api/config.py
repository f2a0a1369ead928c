"""Environment configuration using pydantic-settings."""

import json
from functools import lru_cache
from typing import Literal, Optional

import structlog
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Mock control (opt-in feature gates for testing)
    mock_openai: bool = False  # Use canned LLM responses (don't call OpenAI)
    mock_firestore: bool = False  # Use in-memory collections (don't connect to Firestore)
    mock_speech: bool = False  # Use canned transcripts (don't call Speech-to-Text)
    mock_jobs_api: bool = False  # Use canned listings (don't call JSearch)

    # OpenAI configuration
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    llm_model: str = "gpt-3.5-turbo"
    llm_max_tokens: int = 1024
    llm_temperature: float = 0.7
    llm_timeout_seconds: float = 60.0

    # Google Cloud (Firestore, Speech-to-Text, Document AI)
    google_application_credentials_json: str = ""
    firestore_project_id: str = ""

    stt_encoding: str = "AMR"  # .3gp recordings from Android MediaRecorder
    stt_sample_rate_hertz: int = 8000
    stt_language_code: str = "en-IN"
    stt_alternative_language_codes: list[str] = ["hi-IN", "pa-IN"]

    documentai_processor_name: str = ""  # projects/{p}/locations/{l}/processors/{id}

    # JSearch (RapidAPI) job search
    rapidapi_key: str = ""
    rapidapi_host: str = "jsearch.p.rapidapi.com"
    jobs_timeout_seconds: float = 8.0
    jobs_country: str = "in"

    # Company logo memo
    logo_cache_ttl: int = 86400
    logo_cache_size: int = 2048

    # Uploads
    resume_max_chars: int = 12000
    max_upload_bytes: int = 10 * 1024 * 1024

    # Rate limiting
    rate_limit_per_minute: int = 20

    # Server configuration
    port: int = 5000
    host: str = "0.0.0.0"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    environment: Literal["development", "production"] = "development"

    system_prompt: str = (
        "You are a helpful assistant for Punjab Ghar Ghar Rozgar and Karobar Mission "
        "(PGRKAM). Your role is to assist users with job searches, skill development, "
        "and career counseling."
    )

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def has_openai_key(self) -> bool:
        """Check if OpenAI API key is configured."""
        return bool(self.openai_api_key and self.openai_api_key.startswith("sk-"))

    @property
    def has_jobs_api_key(self) -> bool:
        """Check if the RapidAPI key for JSearch is configured."""
        return bool(self.rapidapi_key)

    @property
    def has_documentai(self) -> bool:
        """Check if a Document AI OCR processor is configured."""
        return bool(self.documentai_processor_name)

    def load_service_account(self) -> Optional[dict]:
        """Parse the Google service account JSON from the environment.

        Environment variables cannot hold raw newlines, so the private key
        arrives with literal ``\\n`` sequences which are restored here.

        Returns:
            Service account dict, or None if unset or unparseable.
        """
        if not self.google_application_credentials_json:
            return None

        try:
            account = json.loads(self.google_application_credentials_json)
        except json.JSONDecodeError as e:
            logger.error("Failed to parse Google Cloud service account JSON", error=str(e))
            return None

        if not isinstance(account, dict):
            logger.error("Google Cloud service account JSON is not an object")
            return None

        if account.get("private_key"):
            account["private_key"] = account["private_key"].replace("\\n", "\n")
        return account

    @property
    def google_project_id(self) -> str:
        """Project ID from explicit config, falling back to the service account."""
        if self.firestore_project_id:
            return self.firestore_project_id
        account = self.load_service_account()
        return account.get("project_id", "") if account else ""


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
