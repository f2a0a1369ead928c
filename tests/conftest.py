"""Pytest configuration and fixtures."""

import os
from collections.abc import Iterator

import pytest

# Set test environment variables before importing app modules
os.environ.setdefault("OPENAI_API_KEY", "")
os.environ.setdefault("RAPIDAPI_KEY", "")
os.environ.setdefault("GOOGLE_APPLICATION_CREDENTIALS_JSON", "")
os.environ.setdefault("FIRESTORE_PROJECT_ID", "")
os.environ.setdefault("DOCUMENTAI_PROCESSOR_NAME", "")
os.environ.setdefault("ENVIRONMENT", "development")
# Increase rate limit for testing
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "1000")
# Serve every upstream from its in-process mock
os.environ.setdefault("MOCK_OPENAI", "true")
os.environ.setdefault("MOCK_FIRESTORE", "true")
os.environ.setdefault("MOCK_SPEECH", "true")
os.environ.setdefault("MOCK_JOBS_API", "true")


def _reset_globals() -> None:
    from rozgar_api.config import get_settings
    from rozgar_api.document_ocr import reset_ocr_client
    from rozgar_api.firestore_store import reset_firestore_store
    from rozgar_api.jobs_client import reset_jobs_client
    from rozgar_api.logo_cache import reset_logo_cache
    from rozgar_api.openai_client import reset_openai_client
    from rozgar_api.speech_client import reset_speech_client

    get_settings.cache_clear()
    reset_openai_client()
    reset_firestore_store()
    reset_speech_client()
    reset_ocr_client()
    reset_jobs_client()
    reset_logo_cache()


@pytest.fixture(autouse=True)
def reset_caches() -> Iterator[None]:
    """Reset cached settings and global clients before each test."""
    _reset_globals()

    # Reset rate limiter storage
    try:
        from rozgar_api.main import limiter

        if hasattr(limiter, "_storage") and limiter._storage:
            limiter._storage.reset()
    except (ImportError, AttributeError):
        pass

    yield
    _reset_globals()


@pytest.fixture
def sample_listing() -> dict:
    """A raw JSearch listing as returned by the /search endpoint."""
    return {
        "job_id": "abc123",
        "job_title": "Electrician",
        "employer_name": "Ludhiana Power Works",
        "employer_logo": None,
        "employer_website": "https://www.ludhianapower.in/careers",
        "job_city": "Ludhiana",
        "job_state": "Punjab",
        "job_country": "IN",
        "job_is_remote": False,
        "job_employment_type": "FULLTIME",
        "job_apply_link": "https://jobs.example.com/abc123",
        "job_description": "Wiring and maintenance.\n\nRequires 2-4 years experience.\n\n"
        "Wiring and maintenance.",
        "job_min_salary": 300000,
        "job_max_salary": 450000,
        "job_salary_currency": "INR",
        "job_salary_period": "YEAR",
        "job_posted_at_datetime_utc": "2024-05-01T10:00:00.000Z",
    }
