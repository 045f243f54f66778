# ============================================================================
# Chatbot Composition
# ============================================================================
import logging
import random
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Awaitable, Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from learnlab_chatbot.core.redis import RedisCache
from learnlab_chatbot.services.chatbot.context_builder import ContextBuilder, ContextProviders
from learnlab_chatbot.services.chatbot.conversation_store import ConversationStore, SessionLockRegistry
from learnlab_chatbot.services.chatbot.generative import (
    GeminiBackend, GenerationSettings, GenerativeBackend, GenerativeFallbackAdapter
)
from learnlab_chatbot.services.chatbot.orchestrator import ChatbotOrchestrator
from learnlab_chatbot.services.chatbot.providers import CachedCourseCatalog, PlatformAPIClient
from learnlab_chatbot.services.chatbot.quick_responses import QuickResponseMatcher
from learnlab_chatbot.services.chatbot.templates import (
    ReplyTemplates,
    default_fallback_pool,
    default_quick_response_rules,
    default_reply_templates,
    default_role_instructions,
)

logger = logging.getLogger(__name__)


@dataclass
class ChatbotComponents:
    """
    Process-wide chatbot pieces built once at startup.

    Everything here is stateless or safe to share between requests; the
    database session is the only per-request piece, supplied to orchestrator().
    """
    matcher: QuickResponseMatcher
    context_builder: ContextBuilder
    generator: GenerativeFallbackAdapter
    templates: ReplyTemplates
    locks: SessionLockRegistry
    settings: Any
    closers: List[Callable[[], Awaitable[None]]] = field(default_factory=list)

    def orchestrator(self, db: AsyncSession) -> ChatbotOrchestrator:
        store = ConversationStore(
            db,
            locks=self.locks,
            idle_window=timedelta(minutes=self.settings.CHATBOT_IDLE_WINDOW_MINUTES),
        )
        return ChatbotOrchestrator(
            store=store,
            context_builder=self.context_builder,
            matcher=self.matcher,
            generator=self.generator,
            templates=self.templates,
        )

    async def aclose(self) -> None:
        for close in self.closers:
            try:
                await close()
            except Exception as e:
                logger.warning(f"Error closing chatbot component: {e}")


def build_context_providers(settings, cache: Optional[RedisCache] = None) -> tuple:
    """Pick the provider variant from settings; returns (providers, closers)"""
    if not settings.PLATFORM_API_URL:
        logger.info("PLATFORM_API_URL not set; chatbot context lookups disabled")
        return ContextProviders.none(), []

    client = PlatformAPIClient(
        base_url=settings.PLATFORM_API_URL,
        token=settings.PLATFORM_API_TOKEN,
        timeout=settings.PLATFORM_API_TIMEOUT_SECONDS,
    )
    courses = client
    if cache is not None:
        courses = CachedCourseCatalog(client, cache, ttl=settings.COURSE_CACHE_TTL_SECONDS)

    progress_enabled = settings.CHATBOT_PROGRESS_LOOKUP_ENABLED
    course_enabled = settings.CHATBOT_COURSE_LOOKUP_ENABLED
    if progress_enabled and course_enabled:
        providers = ContextProviders.full(client, courses)
    elif progress_enabled:
        providers = ContextProviders.progress_only(client)
    elif course_enabled:
        providers = ContextProviders.course_only(courses)
    else:
        providers = ContextProviders.none()

    logger.info(f"Chatbot context providers: {providers.kind}")
    return providers, [client.aclose]


def build_chatbot_components(
    settings,
    cache: Optional[RedisCache] = None,
    backend: Optional[GenerativeBackend] = None,
    providers: Optional[ContextProviders] = None,
    rng: Optional[random.Random] = None,
) -> ChatbotComponents:
    """
    Wire up the chatbot from application settings.

    Args:
        settings: Application settings
        cache: Optional Redis cache for course summaries
        backend: Generative backend override (tests); defaults to Gemini when
            GEMINI_API_KEY is set, otherwise replies come from the fallback pools
        providers: Context providers override
        rng: Random source for fallback selection
    """
    closers: List[Callable[[], Awaitable[None]]] = []

    if backend is None and settings.GEMINI_API_KEY:
        backend = GeminiBackend(api_key=settings.GEMINI_API_KEY, model=settings.GEMINI_MODEL)
        logger.info(f"Chatbot generative backend: {settings.GEMINI_MODEL}")
    elif backend is None:
        logger.warning("GEMINI_API_KEY not set; chatbot will answer from fallback pools")

    if providers is None:
        providers, provider_closers = build_context_providers(settings, cache)
        closers.extend(provider_closers)

    generator = GenerativeFallbackAdapter(
        backend=backend,
        instructions=default_role_instructions(),
        fallbacks=default_fallback_pool(),
        settings=GenerationSettings(
            max_output_tokens=settings.CHATBOT_MAX_OUTPUT_TOKENS,
            temperature=settings.CHATBOT_TEMPERATURE,
        ),
        history_window=settings.CHATBOT_HISTORY_WINDOW,
        timeout_seconds=settings.CHATBOT_GENERATION_TIMEOUT_SECONDS,
        rng=rng,
    )

    return ChatbotComponents(
        matcher=QuickResponseMatcher(default_quick_response_rules(), settings.SUPPORT_EMAIL),
        context_builder=ContextBuilder(providers),
        generator=generator,
        templates=default_reply_templates(settings.SUPPORT_EMAIL),
        locks=SessionLockRegistry(),
        settings=settings,
        closers=closers,
    )
