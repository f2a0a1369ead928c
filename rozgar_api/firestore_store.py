"""Firestore document store: jobs, users, saved jobs, logo memo, usage counters."""

import copy
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

import firebase_admin
import structlog
from firebase_admin import credentials, firestore_async
from google.api_core import exceptions as google_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from rozgar_api.config import get_settings
from rozgar_api.observability import track_upstream

logger = structlog.get_logger()

JOBS_COLLECTION = "jobs"
USERS_COLLECTION = "users"
SAVED_JOBS_COLLECTION = "saved_jobs"
LOGOS_COLLECTION = "company_logos"
USAGE_COLLECTION = "usage"

# Firestore rejects array-contains-any with more than 10 values
MAX_ARRAY_CONTAINS_ANY = 10


def document_key(job_id: str) -> str:
    """Document ID for a saved job.

    JSearch IDs are base64 and may contain "/", which Firestore reads as a
    path separator.
    """
    return quote(job_id, safe="")


class FirestoreError(Exception):
    """Base exception for document store errors."""

    pass


class FirestoreConnectionError(FirestoreError):
    """Raised when the store is not configured or cannot be reached."""

    pass


class FirestoreStore:
    """Async wrapper around the Firestore collections this service uses."""

    def __init__(self, project_id: str | None = None):
        settings = get_settings()
        self._project_id = project_id or settings.google_project_id
        self._db: Any = None
        self._mock = False
        # path -> {doc_id -> data}; only used in mock mode
        self._memory: dict[str, dict[str, dict[str, Any]]] = {}

    async def connect(self) -> None:
        """Initialise the Firebase app and the async Firestore client.

        With MOCK_FIRESTORE=true and no credentials, keeps documents in memory.
        """
        settings = get_settings()
        account = settings.load_service_account()

        if account is None and not self._project_id:
            if settings.mock_firestore:
                logger.info("MOCK_FIRESTORE=true: Using in-memory document store")
                self._mock = True
                return
            logger.warning("Firestore not configured: no service account or project ID")
            return

        try:
            try:
                app = firebase_admin.get_app()
            except ValueError:
                cred = (
                    credentials.Certificate(account)
                    if account
                    else credentials.ApplicationDefault()
                )
                options = {"projectId": self._project_id} if self._project_id else None
                app = firebase_admin.initialize_app(cred, options)
                logger.info("Firebase Admin SDK initialized", project_id=self._project_id)
            self._db = firestore_async.client(app)
        except (
            ValueError,
            google_exceptions.GoogleAPIError,
            auth_exceptions.GoogleAuthError,
        ) as e:
            logger.error("Failed to initialise Firestore", error=str(e))
            raise FirestoreConnectionError(f"Failed to connect: {e}") from e

    async def close(self) -> None:
        """Drop the Firestore client; the Firebase app owns the channel."""
        if self._db is not None:
            self._db = None
            logger.info("Firestore client released")
        self._memory.clear()

    @property
    def is_mock(self) -> bool:
        return self._mock

    @property
    def is_configured(self) -> bool:
        return self._mock or self._db is not None

    def _require_db(self) -> Any:
        if self._db is None:
            error_msg = (
                "FATAL: Firestore unavailable with MOCK_FIRESTORE=false. "
                "Set GOOGLE_APPLICATION_CREDENTIALS_JSON or MOCK_FIRESTORE=true for testing."
            )
            logger.error(error_msg)
            raise FirestoreConnectionError(error_msg)
        return self._db

    # -------------------------------------------------------------------------
    # Mock helpers
    # -------------------------------------------------------------------------

    def _mock_collection(self, path: str) -> dict[str, dict[str, Any]]:
        return self._memory.setdefault(path, {})

    def _mock_put(self, path: str, doc_id: str, data: dict[str, Any]) -> None:
        """Store a document in the in-memory backend (mock mode only)."""
        self._mock_collection(path)[doc_id] = copy.deepcopy(data)

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------

    async def health_check(self) -> bool:
        """Return True when a cheap read succeeds."""
        if self._mock:
            return True
        if self._db is None:
            return False
        try:
            with track_upstream("firestore", "health"):
                async for _ in self._db.collection(JOBS_COLLECTION).limit(1).stream():
                    break
            return True
        except google_exceptions.GoogleAPIError as e:
            logger.warning("Firestore health check failed", error=str(e))
            return False

    # -------------------------------------------------------------------------
    # Jobs
    # -------------------------------------------------------------------------

    async def query_jobs(
        self,
        location: str | None = None,
        keywords: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        """Query the jobs collection by exact location and required skills.

        Args:
            location: Exact match on the ``location`` field.
            keywords: Lower-case skills; matches jobs whose ``requiredSkills``
                contains any of them. Only the first 10 are used.

        Returns:
            Job documents with their ``id`` merged in.
        """
        keywords = (keywords or [])[:MAX_ARRAY_CONTAINS_ANY]
        logger.info("Querying jobs", location=location, keywords=keywords)

        if self._mock:
            jobs = []
            for doc_id, data in self._mock_collection(JOBS_COLLECTION).items():
                if location and data.get("location") != location:
                    continue
                if keywords and not set(keywords) & set(data.get("requiredSkills", [])):
                    continue
                jobs.append({"id": doc_id, **copy.deepcopy(data)})
            return jobs

        db = self._require_db()
        query = db.collection(JOBS_COLLECTION)
        if location:
            query = query.where(filter=FieldFilter("location", "==", location))
        if keywords:
            skills_filter = FieldFilter("requiredSkills", "array-contains-any", keywords)
            query = query.where(filter=skills_filter)

        try:
            with track_upstream("firestore", "query_jobs"):
                return [{"id": doc.id, **doc.to_dict()} async for doc in query.stream()]
        except google_exceptions.GoogleAPIError as e:
            raise FirestoreError(f"Job query failed: {e}") from e

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    async def _get_document(self, path: str, doc_id: str) -> dict[str, Any] | None:
        if self._mock:
            data = self._mock_collection(path).get(doc_id)
            return copy.deepcopy(data) if data is not None else None

        db = self._require_db()
        try:
            with track_upstream("firestore", "get"):
                snapshot = await db.collection(path).document(doc_id).get()
        except (ValueError, google_exceptions.GoogleAPIError) as e:
            raise FirestoreError(f"Read of {path}/{doc_id} failed: {e}") from e
        return snapshot.to_dict() if snapshot.exists else None

    async def _merge_document(self, path: str, doc_id: str, data: dict[str, Any]) -> None:
        if self._mock:
            self._mock_collection(path).setdefault(doc_id, {}).update(copy.deepcopy(data))
            return

        db = self._require_db()
        try:
            with track_upstream("firestore", "set"):
                await db.collection(path).document(doc_id).set(data, merge=True)
        except (ValueError, google_exceptions.GoogleAPIError) as e:
            raise FirestoreError(f"Write of {path}/{doc_id} failed: {e}") from e

    async def get_user(self, uid: str) -> dict[str, Any] | None:
        """Fetch the user profile document."""
        return await self._get_document(USERS_COLLECTION, uid)

    async def get_preferences(self, uid: str) -> dict[str, Any] | None:
        user = await self.get_user(uid)
        if user is None:
            return None
        return user.get("preferences") or {}

    async def set_preferences(self, uid: str, preferences: dict[str, Any]) -> None:
        await self._merge_document(USERS_COLLECTION, uid, {"preferences": preferences})

    # -------------------------------------------------------------------------
    # Saved jobs (users/{uid}/saved_jobs/{job_id})
    # -------------------------------------------------------------------------

    @staticmethod
    def _saved_jobs_path(uid: str) -> str:
        return f"{USERS_COLLECTION}/{uid}/{SAVED_JOBS_COLLECTION}"

    async def list_saved_jobs(self, uid: str) -> list[dict[str, Any]]:
        """List a user's saved jobs, newest first."""
        path = self._saved_jobs_path(uid)

        # The stored "id" field keeps the unencoded JSearch ID
        if self._mock:
            jobs = [
                {"id": doc_id, **copy.deepcopy(data)}
                for doc_id, data in self._mock_collection(path).items()
            ]
            epoch = datetime.min.replace(tzinfo=timezone.utc)
            return sorted(jobs, key=lambda j: j.get("saved_at") or epoch, reverse=True)

        db = self._require_db()
        query = db.collection(path).order_by("saved_at", direction=firestore.Query.DESCENDING)
        try:
            with track_upstream("firestore", "list_saved_jobs"):
                return [{"id": doc.id, **doc.to_dict()} async for doc in query.stream()]
        except google_exceptions.GoogleAPIError as e:
            raise FirestoreError(f"Listing saved jobs failed: {e}") from e

    async def save_job(self, uid: str, job: dict[str, Any]) -> None:
        """Upsert a saved job keyed by its id."""
        path = self._saved_jobs_path(uid)
        key = document_key(job["id"])

        if self._mock:
            self._mock_put(path, key, job)
            return

        db = self._require_db()
        try:
            with track_upstream("firestore", "save_job"):
                await db.collection(path).document(key).set(job)
        except (ValueError, google_exceptions.GoogleAPIError) as e:
            raise FirestoreError(f"Saving job failed: {e}") from e

    async def delete_saved_job(self, uid: str, job_id: str) -> bool:
        """Delete a saved job.

        Returns:
            True if it existed, False otherwise.
        """
        path = self._saved_jobs_path(uid)
        key = document_key(job_id)

        if self._mock:
            return self._mock_collection(path).pop(key, None) is not None

        db = self._require_db()
        try:
            ref = db.collection(path).document(key)
            with track_upstream("firestore", "delete_saved_job"):
                snapshot = await ref.get()
                if not snapshot.exists:
                    return False
                await ref.delete()
        except (ValueError, google_exceptions.GoogleAPIError) as e:
            raise FirestoreError(f"Deleting saved job failed: {e}") from e
        return True

    # -------------------------------------------------------------------------
    # Company logo memo
    # -------------------------------------------------------------------------

    async def get_logo(self, key: str) -> str | None:
        doc = await self._get_document(LOGOS_COLLECTION, key)
        return doc.get("url") if doc else None

    async def set_logo(self, key: str, url: str) -> None:
        await self._merge_document(
            LOGOS_COLLECTION,
            key,
            {"url": url, "updated_at": datetime.now(timezone.utc)},
        )

    # -------------------------------------------------------------------------
    # Usage counters (usage/{uid}.counts.{feature})
    # -------------------------------------------------------------------------

    async def increment_usage(self, uid: str, feature: str) -> None:
        """Atomically bump a per-user feature counter."""
        if self._mock:
            doc = self._mock_collection(USAGE_COLLECTION).setdefault(uid, {"counts": {}})
            doc["counts"][feature] = doc["counts"].get(feature, 0) + 1
            doc["updated_at"] = datetime.now(timezone.utc)
            return

        db = self._require_db()
        try:
            with track_upstream("firestore", "increment_usage"):
                await db.collection(USAGE_COLLECTION).document(uid).set(
                    {
                        "counts": {feature: firestore.Increment(1)},
                        "updated_at": firestore.SERVER_TIMESTAMP,
                    },
                    merge=True,
                )
        except google_exceptions.GoogleAPIError as e:
            raise FirestoreError(f"Usage increment failed: {e}") from e


# Global store instance
_firestore_store: FirestoreStore | None = None


async def get_firestore_store() -> FirestoreStore:
    """Get or create the global Firestore store instance."""
    global _firestore_store
    if _firestore_store is None:
        _firestore_store = FirestoreStore()
        await _firestore_store.connect()
    return _firestore_store


async def close_firestore_store() -> None:
    """Close the global Firestore store."""
    global _firestore_store
    if _firestore_store:
        await _firestore_store.close()
        _firestore_store = None


def reset_firestore_store() -> None:
    """Reset the global Firestore store (for testing)."""
    global _firestore_store
    _firestore_store = None
