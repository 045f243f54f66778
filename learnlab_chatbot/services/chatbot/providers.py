# ============================================================================
# Platform API Collaborators
# ============================================================================
"""
Progress and course-metadata lookups against the LMS REST API, plus a Redis
cache in front of the course lookup. Both implement the protocols used by the
context builder.
"""
import logging
from typing import Any, Dict, Mapping, Optional

import httpx

from learnlab_chatbot.core.redis import RedisCache

logger = logging.getLogger(__name__)

PROGRESS_FIELDS = (
    "completedVideos", "totalVideos", "progressPercentage",
    "quizPassed", "quizScore", "certificateIssued", "lastWatchedVideo",
)
COURSE_FIELDS = (
    "title", "category", "level", "instructorName",
    "totalLectures", "totalVideos", "hasQuiz", "passingScore",
)
DESCRIPTION_LIMIT = 280


def summarize_progress(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Reduce a progress payload to the fields the assistant uses"""
    return {key: payload[key] for key in PROGRESS_FIELDS if key in payload}


def summarize_course(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Reduce a course payload to a compact summary"""
    summary = {key: payload[key] for key in COURSE_FIELDS if key in payload}
    course_id = payload.get("id") or payload.get("_id")
    if course_id is not None:
        summary["id"] = str(course_id)
    description = payload.get("description")
    if description:
        summary["description"] = str(description)[:DESCRIPTION_LIMIT]
    return summary


class PlatformAPIClient:
    """Async client for the LMS REST API"""

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def get_user_course_progress(self, user_id: str, course_id: str) -> Dict[str, Any]:
        """Raises on transport or HTTP errors"""
        response = await self._client.get(f"/users/{user_id}/courses/{course_id}/progress")
        response.raise_for_status()
        return summarize_progress(self._unwrap(response.json()))

    async def get_course_by_id(self, course_id: str) -> Optional[Dict[str, Any]]:
        response = await self._client.get(f"/courses/{course_id}")
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return summarize_course(self._unwrap(response.json()))

    @staticmethod
    def _unwrap(body: Any) -> Mapping[str, Any]:
        # LMS responses use a {"success": ..., "data": {...}} envelope
        if isinstance(body, Mapping) and isinstance(body.get("data"), Mapping):
            return body["data"]
        return body if isinstance(body, Mapping) else {}

    async def aclose(self) -> None:
        await self._client.aclose()


class CachedCourseCatalog:
    """
    Redis cache in front of a course catalog.

    Cache failures are logged and the live lookup is used instead; misses
    (unknown courses) are not cached.
    """

    def __init__(self, catalog, cache: RedisCache, ttl: int = 600):
        self.catalog = catalog
        self.cache = cache
        self.ttl = ttl

    def _key(self, course_id: str) -> str:
        return f"course_summary:{course_id}"

    async def get_course_by_id(self, course_id: str) -> Optional[Dict[str, Any]]:
        try:
            cached = await self.cache.get_json(self._key(course_id))
            if cached is not None:
                return cached
        except Exception as e:
            logger.warning(f"Course cache GET error: {e}")

        course = await self.catalog.get_course_by_id(course_id)

        if course:
            try:
                await self.cache.set_json(self._key(course_id), course, self.ttl)
            except Exception as e:
                logger.warning(f"Course cache SET error: {e}")
        return course
