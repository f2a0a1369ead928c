"""Best-effort company logo memo: in-process TTL cache in front of Firestore."""

import re
import threading
from urllib.parse import urlparse

import structlog
from cachetools import TTLCache

from rozgar_api.config import get_settings
from rozgar_api.firestore_store import FirestoreError, FirestoreStore, get_firestore_store

logger = structlog.get_logger()

CLEARBIT_LOGO_URL = "https://logo.clearbit.com/{domain}"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def company_key(company: str | None) -> str:
    """Normalise a company name into a document ID.

    >>> company_key("Tata Consultancy Services")
    'tata-consultancy-services'
    """
    if not company:
        return ""
    return _NON_ALNUM.sub("-", company.lower()).strip("-")


def clearbit_logo(website: str | None) -> str | None:
    """Logo URL guessed from the employer's website domain."""
    if not website:
        return None
    if "://" not in website:
        website = f"https://{website}"
    domain = urlparse(website).netloc.lower()
    if domain.startswith("www."):
        domain = domain[4:]
    return CLEARBIT_LOGO_URL.format(domain=domain) if domain else None


class LogoCache:
    """Memoises company logo URLs.

    Lookups go memory, then Firestore, then the listing itself. Store errors
    never fail a request; they are logged and the lookup carries on.
    """

    def __init__(
        self,
        store: FirestoreStore | None = None,
        ttl_seconds: int | None = None,
        max_entries: int | None = None,
    ):
        settings = get_settings()
        self._store = store
        self._ttl = ttl_seconds or settings.logo_cache_ttl
        self._cache: TTLCache[str, str] = TTLCache(
            maxsize=max_entries or settings.logo_cache_size,
            ttl=self._ttl,
        )
        self._lock = threading.Lock()

    async def _get_store(self) -> FirestoreStore:
        if self._store is None:
            self._store = await get_firestore_store()
        return self._store

    def _remember(self, key: str, url: str) -> None:
        with self._lock:
            self._cache[key] = url

    def cached(self, key: str) -> str | None:
        with self._lock:
            return self._cache.get(key)

    async def resolve(
        self,
        company: str | None,
        listing_logo: str | None = None,
        website: str | None = None,
    ) -> str | None:
        """Return a logo URL for a company, or None if nothing is known."""
        key = company_key(company)
        if not key:
            return listing_logo

        hit = self.cached(key)
        if hit:
            return hit

        store: FirestoreStore | None = None
        stored = None
        try:
            store = await self._get_store()
            stored = await store.get_logo(key)
        except FirestoreError as e:
            logger.warning("Logo lookup failed", company=key, error=str(e))

        if stored:
            self._remember(key, stored)
            return stored

        url = listing_logo or clearbit_logo(website)
        if not url:
            return None

        self._remember(key, url)
        if store is None:
            return url
        try:
            await store.set_logo(key, url)
        except FirestoreError as e:
            logger.warning("Logo write-back failed", company=key, error=str(e))
        return url

    def count(self) -> int:
        with self._lock:
            return len(self._cache)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()


# Global cache instance
_logo_cache: LogoCache | None = None


def get_logo_cache() -> LogoCache:
    """Get the global logo cache instance."""
    global _logo_cache
    if _logo_cache is None:
        _logo_cache = LogoCache()
    return _logo_cache


def reset_logo_cache() -> None:
    """Reset the global logo cache (useful for testing)."""
    global _logo_cache
    _logo_cache = None
