"""JSearch (RapidAPI) job-search client and listing normalisation."""

from typing import Any

import httpx
import structlog

from rozgar_api.config import get_settings
from rozgar_api.logo_cache import LogoCache, get_logo_cache
from rozgar_api.models import Job
from rozgar_api.observability import track_upstream
from rozgar_api.text_utils import (
    dedupe_paragraphs,
    experience_from_months,
    extract_experience,
    format_salary,
)

logger = structlog.get_logger()


class JobsAPIError(Exception):
    """Base exception for job-search API errors."""

    pass


class JobsAPIConfigError(JobsAPIError):
    """Raised when no RapidAPI key is configured and mock mode is off."""

    pass


class JobsAPIRateLimitError(JobsAPIError):
    """Raised when the RapidAPI quota is exhausted."""

    pass


def _join_location(*parts: str | None) -> str:
    return ", ".join(p for p in parts if p)


def normalize_listing(raw: dict[str, Any], logo: str | None = None) -> Job:
    """Reshape a JSearch listing into a Job.

    Experience prefers the structured month count and falls back to scanning
    the description.
    """
    description = dedupe_paragraphs(raw.get("job_description"))

    required = raw.get("job_required_experience") or {}
    experience = experience_from_months(required.get("required_experience_in_months"))
    if experience == "Not specified":
        experience = extract_experience(description)

    location = _join_location(raw.get("job_city"), raw.get("job_state"), raw.get("job_country"))
    if raw.get("job_is_remote"):
        location = f"{location} (Remote)" if location else "Remote"

    return Job(
        id=str(raw.get("job_id") or ""),
        title=raw.get("job_title") or "Untitled role",
        company=raw.get("employer_name") or "",
        location=location,
        salary=format_salary(
            raw.get("job_min_salary"),
            raw.get("job_max_salary"),
            raw.get("job_salary_currency"),
            raw.get("job_salary_period"),
        ),
        experience=experience,
        description=description,
        apply_link=raw.get("job_apply_link"),
        logo=logo if logo is not None else raw.get("employer_logo"),
        posted_at=raw.get("job_posted_at_datetime_utc"),
        employment_type=raw.get("job_employment_type"),
        source="jsearch",
    )


class JobsClient:
    """Async client for the JSearch ``/search`` endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        host: str | None = None,
        timeout: float | None = None,
        logo_cache: LogoCache | None = None,
    ):
        settings = get_settings()
        self._api_key = api_key or settings.rapidapi_key
        self._host = host or settings.rapidapi_host
        self._timeout = timeout or settings.jobs_timeout_seconds
        self._country = settings.jobs_country
        self._logo_cache = logo_cache
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        settings = get_settings()
        if not self.is_configured:
            if settings.mock_jobs_api:
                logger.info("MOCK_JOBS_API=true: Skipping JSearch HTTP client creation")
            return

        self._client = httpx.AsyncClient(
            base_url=f"https://{self._host}",
            headers={
                "x-rapidapi-key": self._api_key,
                "x-rapidapi-host": self._host,
            },
            timeout=httpx.Timeout(self._timeout),
        )
        logger.info("JSearch client connected", host=self._host)

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("JSearch client closed")

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def search_raw(
        self,
        query: str,
        location: str | None = None,
        page: int = 1,
        remote_only: bool = False,
    ) -> list[dict[str, Any]]:
        """Run a search and return the raw listings.

        Raises:
            JobsAPIError: If the request fails.
            JobsAPIConfigError: If MOCK_JOBS_API=false but no key is configured.
        """
        settings = get_settings()

        if not self.is_configured:
            if settings.mock_jobs_api:
                logger.info("MOCK_JOBS_API=true: Using mock listings", query=query)
                return self._mock_listings(query, location)
            error_msg = (
                "FATAL: RapidAPI key not configured with MOCK_JOBS_API=false. "
                "Either set RAPIDAPI_KEY or set MOCK_JOBS_API=true for testing."
            )
            logger.error(error_msg)
            raise JobsAPIConfigError(error_msg)

        if not self._client:
            await self.connect()

        full_query = f"{query} in {location}" if location else query
        params = {
            "query": full_query,
            "page": str(page),
            "num_pages": "1",
            "country": self._country,
        }
        if remote_only:
            params["remote_jobs_only"] = "true"

        try:
            with track_upstream("jsearch", "search"):
                response = await self._client.get("/search", params=params)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            self._handle_http_error(e)
            raise
        except httpx.RequestError as e:
            logger.error("JSearch request failed", error=str(e))
            raise JobsAPIError(f"Connection error: {e}") from e

        listings = data.get("data") or []
        logger.info("JSearch search completed", query=full_query, page=page, results=len(listings))
        return listings

    async def search(
        self,
        query: str,
        location: str | None = None,
        page: int = 1,
        remote_only: bool = False,
    ) -> list[Job]:
        """Search and normalise listings, resolving company logos through the memo."""
        listings = await self.search_raw(query, location, page, remote_only)
        logo_cache = self._logo_cache or get_logo_cache()

        jobs = []
        for raw in listings:
            if not raw.get("job_id"):
                continue
            logo = await logo_cache.resolve(
                raw.get("employer_name"),
                listing_logo=raw.get("employer_logo"),
                website=raw.get("employer_website"),
            )
            jobs.append(normalize_listing(raw, logo=logo))
        return jobs

    def _handle_http_error(self, error: httpx.HTTPStatusError) -> None:
        status = error.response.status_code
        try:
            detail = error.response.json().get("message", str(error))
        except Exception:
            detail = str(error)

        logger.error("JSearch API error", status=status, detail=detail)

        if status in (401, 403):
            raise JobsAPIConfigError(f"Authentication failed: {detail}")
        elif status == 429:
            raise JobsAPIRateLimitError(f"Rate limit exceeded: {detail}")
        else:
            raise JobsAPIError(f"API error ({status}): {detail}")

    def _mock_listings(self, query: str, location: str | None) -> list[dict[str, Any]]:
        city = location or "Ludhiana"
        return [
            {
                "job_id": "mock-1",
                "job_title": f"{query.title()} Trainee",
                "employer_name": "Punjab Skills Pvt Ltd",
                "employer_logo": None,
                "employer_website": "https://www.example.com",
                "job_city": city,
                "job_state": "Punjab",
                "job_country": "IN",
                "job_employment_type": "FULLTIME",
                "job_apply_link": "https://jobs.example.com/mock-1",
                "job_description": "Mock listing (MOCK_JOBS_API=true). 0-1 years experience.",
                "job_min_salary": 180000,
                "job_max_salary": 240000,
                "job_salary_currency": "INR",
                "job_salary_period": "YEAR",
            },
            {
                "job_id": "mock-2",
                "job_title": f"Senior {query.title()}",
                "employer_name": "Doaba Tech Solutions",
                "employer_logo": "https://example.com/doaba.png",
                "job_city": city,
                "job_state": "Punjab",
                "job_country": "IN",
                "job_employment_type": "FULLTIME",
                "job_apply_link": "https://jobs.example.com/mock-2",
                "job_description": "Mock listing (MOCK_JOBS_API=true). 5+ years experience.",
                "job_required_experience": {"required_experience_in_months": 60},
            },
        ]


# Global client instance
_jobs_client: JobsClient | None = None


async def get_jobs_client() -> JobsClient:
    """Get or create the global JSearch client instance."""
    global _jobs_client
    if _jobs_client is None:
        _jobs_client = JobsClient()
        await _jobs_client.connect()
    return _jobs_client


async def close_jobs_client() -> None:
    global _jobs_client
    if _jobs_client:
        await _jobs_client.close()
        _jobs_client = None


def reset_jobs_client() -> None:
    """Reset the global JSearch client (for testing)."""
    global _jobs_client
    _jobs_client = None
