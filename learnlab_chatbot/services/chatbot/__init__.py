# ============================================================================
# Chatbot Services - Public API
# ============================================================================
"""
LearnLab in-platform assistant

Answers questions from students, instructors and admins about the platform.
Cheap keyword rules answer common questions; everything else goes to a
generative backend, with canned fallbacks when it is unavailable.

Main Components:
- ChatbotOrchestrator: Runs one chat turn end to end
- ConversationStore: Session lifecycle and message history
- ContextBuilder: Per-turn context from progress and course lookups
- QuickResponseMatcher: Keyword-rule answers
- GenerativeFallbackAdapter: Backend call with guaranteed fallback

Quick Start:
    from learnlab_chatbot.services.chatbot import build_chatbot_components, ChatTurn

    components = build_chatbot_components(settings)
    orchestrator = components.orchestrator(db)
    reply = await orchestrator.process(
        ChatTurn(user_id="u1", role=UserRole.STUDENT, message="How do I get my certificate?")
    )
"""
from learnlab_chatbot.services.chatbot.templates import (
    QuickResponseRule,
    ReplyTemplates,
    default_quick_response_rules,
    default_role_instructions,
    default_fallback_pool,
    default_reply_templates,
    default_platform_stats,
)

from learnlab_chatbot.services.chatbot.quick_responses import QuickResponseMatcher

from learnlab_chatbot.services.chatbot.context_builder import (
    ChatContext,
    ContextBuilder,
    ContextProviders,
    ContextRequest,
    CourseCatalog,
    LookupResult,
    ProgressProvider,
)

from learnlab_chatbot.services.chatbot.providers import (
    CachedCourseCatalog,
    PlatformAPIClient,
)

from learnlab_chatbot.services.chatbot.generative import (
    GeminiBackend,
    GenerationSettings,
    GenerativeBackend,
    GenerativeFallbackAdapter,
)

from learnlab_chatbot.services.chatbot.conversation_store import (
    ChatMessage,
    ConversationStore,
    SessionLockRegistry,
)

from learnlab_chatbot.services.chatbot.orchestrator import (
    ChatbotOrchestrator,
    ChatReply,
    ChatTurn,
)

from learnlab_chatbot.services.chatbot.factory import (
    ChatbotComponents,
    build_chatbot_components,
)


__all__ = [
    # Orchestration
    "ChatbotOrchestrator",
    "ChatTurn",
    "ChatReply",
    "ChatbotComponents",
    "build_chatbot_components",

    # Persistence
    "ConversationStore",
    "SessionLockRegistry",
    "ChatMessage",

    # Context
    "ContextBuilder",
    "ContextProviders",
    "ContextRequest",
    "ChatContext",
    "LookupResult",
    "ProgressProvider",
    "CourseCatalog",
    "PlatformAPIClient",
    "CachedCourseCatalog",

    # Replies
    "QuickResponseMatcher",
    "QuickResponseRule",
    "GenerativeFallbackAdapter",
    "GenerativeBackend",
    "GeminiBackend",
    "GenerationSettings",
    "ReplyTemplates",

    # Data factories
    "default_quick_response_rules",
    "default_role_instructions",
    "default_fallback_pool",
    "default_reply_templates",
    "default_platform_stats",
]
