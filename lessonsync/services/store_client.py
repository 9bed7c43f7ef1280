"""
Progress Store Client

Typed wrapper around the remote progress store. Every operation returns a
StoreResult instead of raising: transport errors, server-reported failures
and malformed payloads all come back as a failed result, and callers
decide how to react.

No caching happens here; retries only happen when the injected
WritePolicy asks for them.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from lessonsync.core.config import settings
from lessonsync.core.http_client import request_with_retry
from lessonsync.models.enums import FailureAction, FailureKind
from lessonsync.schemas.progress import (
    ChapterMarker,
    PreferenceRecord,
    PreferenceUpdate,
    ProgressRecord,
    ProgressUpdate,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

PROGRESS_PATH = "/video-progress"
PREFERENCES_PATH = "/video-progress/preferences"
DASHBOARD_PATH = "/students/dashboard"


# ============== Result Types ==============

@dataclass(frozen=True)
class StoreError:
    """Why a store call failed."""
    kind: FailureKind
    message: str
    status_code: Optional[int] = None

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.kind.value} ({self.status_code}): {self.message}"
        return f"{self.kind.value}: {self.message}"


@dataclass(frozen=True)
class StoreResult(Generic[T]):
    """Tagged success/failure result of a store call."""
    ok: bool
    data: Optional[T] = None
    error: Optional[StoreError] = None

    @classmethod
    def success(cls, data: Optional[T]) -> "StoreResult[T]":
        return cls(ok=True, data=data)

    @classmethod
    def failure(
        cls,
        kind: FailureKind,
        message: str,
        status_code: Optional[int] = None,
    ) -> "StoreResult[T]":
        return cls(ok=False, error=StoreError(kind=kind, message=message, status_code=status_code))


@dataclass(frozen=True)
class WritePolicy:
    """
    How failed writes are handled.

    The defaults encode the fire-and-forget contract: no retries, log the
    failure and keep going.
    """
    retries: int = 0
    on_failure: FailureAction = FailureAction.LOG_AND_CONTINUE

    def report(self, operation: str, error: Optional[StoreError]) -> None:
        """Record a failed write according to the policy."""
        if self.on_failure is FailureAction.IGNORE:
            logger.debug("%s failed: %s", operation, error)
        else:
            logger.warning("%s failed, continuing: %s", operation, error)


# ============== Client ==============

class ProgressStoreClient:
    """
    Client for the progress store endpoints.

    The pooled httpx client is injected and owned by the caller.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: Optional[str] = None,
        auth_token: Optional[str] = None,
        policy: Optional[WritePolicy] = None,
    ):
        """
        Initialize the client.

        Args:
            http_client: Shared async HTTP client.
            base_url: API root (defaults to API_BASE_URL).
            auth_token: Bearer token or full Authorization value
                (defaults to API_TOKEN; empty disables the header).
            policy: Retry/failure policy (defaults to no retries).
        """
        self._client = http_client
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.policy = policy or WritePolicy()

        token = settings.API_TOKEN if auth_token is None else auth_token
        self._headers = {"Accept": "application/json"}
        if token:
            if not token.lower().startswith("bearer "):
                token = f"Bearer {token}"
            self._headers["Authorization"] = token

    # ---------- progress ----------

    async def get_progress(self, lesson_id: str) -> StoreResult[Optional[ProgressRecord]]:
        """Fetch the saved progress of a lesson; data is None when there is none yet."""
        result = await self._call("GET", self._lesson_path(lesson_id))
        if not result.ok:
            return result
        raw = result.data.get("progress")
        if raw is None:
            return StoreResult.success(None)
        return self._validate(ProgressRecord, raw, "progress")

    async def upsert_progress(
        self,
        lesson_id: str,
        update: ProgressUpdate,
    ) -> StoreResult[ProgressRecord]:
        """Create or update the progress of a lesson."""
        result = await self._call(
            "POST",
            self._lesson_path(lesson_id),
            payload=update.model_dump(mode="json"),
        )
        if not result.ok:
            return result
        return self._validate(ProgressRecord, result.data.get("progress"), "progress")

    async def mark_completed(self, lesson_id: str) -> StoreResult[ProgressRecord]:
        """Force a lesson to 100% / completed on the server."""
        result = await self._call("POST", f"{self._lesson_path(lesson_id)}/complete")
        if not result.ok:
            return result
        return self._validate(ProgressRecord, result.data.get("progress"), "progress")

    # ---------- preferences ----------

    async def get_preferences(self) -> StoreResult[PreferenceRecord]:
        """Fetch the user's playback preferences."""
        result = await self._call("GET", PREFERENCES_PATH)
        if not result.ok:
            return result
        return self._validate(PreferenceRecord, result.data.get("preferences"), "preferences")

    async def upsert_preferences(self, update: PreferenceUpdate) -> StoreResult[PreferenceRecord]:
        """Persist a partial preference change."""
        result = await self._call(
            "PUT",
            PREFERENCES_PATH,
            payload=update.model_dump(mode="json", exclude_none=True),
        )
        if not result.ok:
            return result
        return self._validate(PreferenceRecord, result.data.get("preferences"), "preferences")

    # ---------- chapters ----------

    async def get_chapters(self, lesson_id: str) -> StoreResult[List[ChapterMarker]]:
        """Fetch the chapter markers of a lesson, ordered by position."""
        result = await self._call("GET", f"{self._lesson_path(lesson_id)}/chapters")
        if not result.ok:
            return result

        raw = result.data.get("chapters")
        if raw is None:
            return StoreResult.success([])
        if not isinstance(raw, list):
            return StoreResult.failure(FailureKind.MALFORMED, "chapters is not a list")

        try:
            chapters = [ChapterMarker.model_validate(item) for item in raw]
        except ValidationError as e:
            return StoreResult.failure(FailureKind.MALFORMED, f"invalid chapter: {e.error_count()} errors")

        chapters.sort(key=lambda chapter: (chapter.order_index, chapter.start_time))
        return StoreResult.success(chapters)

    # ---------- dashboard ----------

    async def get_dashboard_listing(self) -> StoreResult[Dict[str, Any]]:
        """Fetch the raw dashboard listing consumed by the aggregator."""
        return await self._call("GET", DASHBOARD_PATH)

    # ---------- internals ----------

    def _lesson_path(self, lesson_id: str) -> str:
        return f"{PROGRESS_PATH}/{quote(str(lesson_id), safe='')}"

    async def _call(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> StoreResult[Dict[str, Any]]:
        """
        Send a request and unwrap the ``{success, data}`` envelope.

        Returns:
            StoreResult with the ``data`` mapping on success.
        """
        url = f"{self.base_url}{path}"
        try:
            response = await request_with_retry(
                self._client,
                method,
                url,
                max_retries=self.policy.retries,
                json=payload,
                headers=self._headers,
            )
        except httpx.HTTPError as e:
            logger.debug("%s %s transport failure: %r", method, path, e)
            return StoreResult.failure(FailureKind.TRANSPORT, str(e) or type(e).__name__)

        if not 200 <= response.status_code < 300:
            logger.debug("%s %s returned %s", method, path, response.status_code)
            return StoreResult.failure(
                FailureKind.SERVER,
                f"{method} {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError:
            return StoreResult.failure(FailureKind.MALFORMED, f"{method} {path} returned invalid JSON")

        if not isinstance(body, dict):
            return StoreResult.failure(FailureKind.MALFORMED, f"{method} {path} returned a non-object body")

        if body.get("success") is not True:
            return StoreResult.failure(
                FailureKind.SERVER,
                str(body.get("message") or f"{method} {path} reported failure"),
                status_code=response.status_code,
            )

        if "data" in body:
            data = body["data"]
        else:
            data = {key: value for key, value in body.items() if key != "success"}

        if data is None:
            data = {}
        if not isinstance(data, dict):
            return StoreResult.failure(FailureKind.MALFORMED, f"{method} {path} data is not an object")

        return StoreResult.success(data)

    @staticmethod
    def _validate(model: Type[M], raw: Any, label: str) -> StoreResult[M]:
        if raw is None:
            return StoreResult.failure(FailureKind.MALFORMED, f"response has no {label}")
        try:
            return StoreResult.success(model.model_validate(raw))
        except ValidationError as e:
            return StoreResult.failure(FailureKind.MALFORMED, f"invalid {label}: {e.error_count()} errors")
