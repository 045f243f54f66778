# ============================================================================
# Chat Context Builder
# ============================================================================
"""
Assembles the per-turn context: who is asking, which course and page they are
on, and best-effort snapshots of their progress and of the course itself.

The two lookups go through injected collaborators and are independent, so
they run concurrently. A lookup that is not configured, fails, or finds
nothing simply leaves its field empty.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Protocol

from learnlab_chatbot.models.chatbot import UserRole
from learnlab_chatbot.services.chatbot.templates import default_platform_stats

logger = logging.getLogger(__name__)


# ============================================================================
# Collaborator Protocols
# ============================================================================
class ProgressProvider(Protocol):
    """Looks up a user's progress in a course; may raise"""

    async def get_user_course_progress(self, user_id: str, course_id: str) -> Mapping[str, Any]:
        ...


class CourseCatalog(Protocol):
    """Looks up a course summary; returns None for unknown courses"""

    async def get_course_by_id(self, course_id: str) -> Optional[Mapping[str, Any]]:
        ...


# ============================================================================
# Lookup Results
# ============================================================================
@dataclass(frozen=True)
class LookupResult:
    """Outcome of a best-effort lookup: a value, or absent with a reason"""
    value: Optional[Dict[str, Any]] = None
    reason: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.value is not None

    @classmethod
    def present(cls, value: Mapping[str, Any]) -> "LookupResult":
        return cls(value=dict(value))

    @classmethod
    def absent(cls, reason: str) -> "LookupResult":
        return cls(reason=reason)


# ============================================================================
# Provider Capability Set
# ============================================================================
@dataclass(frozen=True)
class ContextProviders:
    """
    The lookups available to the context builder, chosen at startup.

    Use the constructors rather than the raw fields:
        ContextProviders.full(progress, courses)
        ContextProviders.progress_only(progress)
        ContextProviders.course_only(courses)
        ContextProviders.none()
    """
    progress: Optional[ProgressProvider] = None
    courses: Optional[CourseCatalog] = None

    @classmethod
    def full(cls, progress: ProgressProvider, courses: CourseCatalog) -> "ContextProviders":
        return cls(progress=progress, courses=courses)

    @classmethod
    def progress_only(cls, progress: ProgressProvider) -> "ContextProviders":
        return cls(progress=progress)

    @classmethod
    def course_only(cls, courses: CourseCatalog) -> "ContextProviders":
        return cls(courses=courses)

    @classmethod
    def none(cls) -> "ContextProviders":
        return cls()

    @property
    def kind(self) -> str:
        if self.progress and self.courses:
            return "full"
        if self.progress:
            return "progress_only"
        if self.courses:
            return "course_only"
        return "none"

    async def lookup_progress(self, user_id: str, course_id: str) -> LookupResult:
        if self.progress is None:
            return LookupResult.absent("unavailable")
        try:
            progress = await self.progress.get_user_course_progress(user_id, course_id)
        except Exception as e:
            logger.warning(f"Progress lookup failed for user={user_id} course={course_id}: {e}")
            return LookupResult.absent("error")
        if not progress:
            return LookupResult.absent("not_found")
        return LookupResult.present(progress)

    async def lookup_course(self, course_id: str) -> LookupResult:
        if self.courses is None:
            return LookupResult.absent("unavailable")
        try:
            course = await self.courses.get_course_by_id(course_id)
        except Exception as e:
            logger.warning(f"Course lookup failed for course={course_id}: {e}")
            return LookupResult.absent("error")
        if not course:
            return LookupResult.absent("not_found")
        return LookupResult.present(course)


# ============================================================================
# Context Types
# ============================================================================
@dataclass(frozen=True)
class ContextRequest:
    """The request-side inputs to context building"""
    user_id: str
    role: UserRole
    course_id: Optional[str] = None
    current_page: Optional[str] = None


@dataclass
class ChatContext:
    user_id: str
    role: UserRole
    course_id: Optional[str] = None
    current_page: Optional[str] = None
    user_progress: Optional[Dict[str, Any]] = None
    course_info: Optional[Dict[str, Any]] = None
    platform_stats: Dict[str, Any] = field(default_factory=dict)

    def snapshot(self) -> Dict[str, Any]:
        """Fields worth persisting on the conversation (no identity fields)"""
        return {
            "courseId": self.course_id,
            "currentPage": self.current_page,
            "userProgress": self.user_progress,
            "courseInfo": self.course_info,
            "platformStats": dict(self.platform_stats),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {"userId": self.user_id, "role": self.role.value, **self.snapshot()}


# ============================================================================
# Builder
# ============================================================================
class ContextBuilder:
    """Builds a ChatContext for each turn; never raises"""

    def __init__(
        self,
        providers: Optional[ContextProviders] = None,
        platform_stats: Optional[Mapping[str, Any]] = None,
    ):
        self.providers = providers or ContextProviders.none()
        self.platform_stats = platform_stats if platform_stats is not None else default_platform_stats()

    async def build(
        self,
        request: ContextRequest,
        prior_context: Optional[Mapping[str, Any]] = None,
    ) -> ChatContext:
        prior = prior_context or {}
        context = ChatContext(
            user_id=request.user_id,
            role=UserRole.coerce(request.role),
            platform_stats=dict(self.platform_stats),
        )

        try:
            # Request-supplied values win over carried-forward ones
            context.course_id = request.course_id or prior.get("courseId")
            context.current_page = request.current_page or prior.get("currentPage")

            if context.course_id:
                progress, course = await asyncio.gather(
                    self.providers.lookup_progress(request.user_id, context.course_id),
                    self.providers.lookup_course(context.course_id),
                )
                context.user_progress = progress.value
                context.course_info = course.value
        except Exception as e:
            logger.warning(f"Context building degraded for user={request.user_id}: {e}")
            return ChatContext(
                user_id=request.user_id,
                role=UserRole.coerce(request.role),
                platform_stats=dict(self.platform_stats),
            )

        return context
