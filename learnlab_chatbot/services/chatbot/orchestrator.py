# ============================================================================
# Chatbot Orchestrator
# ============================================================================
"""
Runs one chat turn end to end:

    validate -> resolve session -> append user message -> build context
    -> quick response or generative reply -> append reply -> merge context

Any failure inside a turn is absorbed here and answered with the role's
apology reply; callers always get a ChatReply back.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from learnlab_chatbot.core.exceptions import ConversationNotFound
from learnlab_chatbot.models.chatbot import (
    ChatbotConversation, ChatbotMessage, MessageRole, UserRole, utcnow
)
from learnlab_chatbot.services.chatbot.context_builder import ContextBuilder, ContextRequest
from learnlab_chatbot.services.chatbot.conversation_store import ChatMessage, ConversationStore
from learnlab_chatbot.services.chatbot.generative import GenerativeFallbackAdapter
from learnlab_chatbot.services.chatbot.quick_responses import QuickResponseMatcher
from learnlab_chatbot.services.chatbot.templates import ReplyTemplates

logger = logging.getLogger(__name__)

REQUEST_CONTEXT_FIELDS = ("courseId", "currentPage")


@dataclass
class ChatTurn:
    """One incoming user message with the caller's identity and hints"""
    user_id: str
    role: UserRole
    message: str
    session_token: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ChatReply:
    session_token: str
    reply: str
    context: Dict[str, Any]
    source: str = "generative"  # quick, generative, validation, error


class ChatbotOrchestrator:
    """Glue between the store, context builder, matcher and generator"""

    def __init__(
        self,
        store: ConversationStore,
        context_builder: ContextBuilder,
        matcher: QuickResponseMatcher,
        generator: GenerativeFallbackAdapter,
        templates: ReplyTemplates,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.context_builder = context_builder
        self.matcher = matcher
        self.generator = generator
        self.templates = templates
        self.clock = clock

    # ==================== Turn Processing ====================

    async def process(self, turn: ChatTurn) -> ChatReply:
        role = UserRole.coerce(turn.role)
        caller_context = dict(turn.context or {})
        message = (turn.message or "").strip()

        if not message:
            return ChatReply(
                session_token=turn.session_token or "",
                reply=self.templates.rephrase_reply(role),
                context=caller_context,
                source="validation",
            )

        known_token = turn.session_token or ""
        try:
            conversation = await self.store.resolve_session(turn.user_id, role, turn.session_token)
            # Plain copies; ORM state is expired if the turn is rolled back
            known_token = conversation.session_token
            prior_context = dict(conversation.context or {})

            conversation = await self._append(known_token, MessageRole.USER, message)

            context = await self.context_builder.build(
                ContextRequest(
                    user_id=turn.user_id,
                    role=role,
                    course_id=caller_context.get("courseId"),
                    current_page=caller_context.get("currentPage"),
                ),
                prior_context,
            )

            source = "quick"
            reply = self.matcher.match(message, context)
            if reply is None:
                source = "generative"
                reply = await self.generator.generate(list(conversation.messages), context)

            if not reply or not reply.strip():
                reply = self.templates.default_reply(role)

            await self._append(known_token, MessageRole.ASSISTANT, reply)

            merged = {
                **prior_context,
                **context.snapshot(),
                **{k: caller_context[k] for k in REQUEST_CONTEXT_FIELDS if caller_context.get(k)},
                "lastQuery": message,
                "lastResponse": reply,
                "lastInteraction": self.clock().isoformat(),
            }
            updated = await self.store.merge_context(known_token, merged)
            if updated is None:
                raise ConversationNotFound(known_token)

            logger.info(f"Chat turn for user {turn.user_id} answered via {source} ({known_token})")
            return ChatReply(
                session_token=known_token,
                reply=reply,
                context=merged,
                source=source,
            )

        except Exception:
            logger.exception(f"Chat turn failed for user {turn.user_id} (session {known_token or '-'})")
            try:
                await self.store.rollback()
            except Exception as e:
                logger.error(f"Rollback after failed chat turn also failed: {e}")
            return ChatReply(
                session_token=known_token,
                reply=self.templates.apology_reply(role),
                context=caller_context,
                source="error",
            )

    async def _append(self, session_token: str, role: MessageRole, content: str) -> ChatbotConversation:
        conversation = await self.store.append(session_token, ChatMessage(role=role, content=content))
        if conversation is None:
            raise ConversationNotFound(session_token)
        return conversation

    # ==================== Administrative Pass-throughs ====================

    async def get_conversation(self, session_token: str) -> Optional[ChatbotConversation]:
        return await self.store.get_session(session_token)

    async def get_history(self, session_token: str) -> Optional[List[ChatbotMessage]]:
        return await self.store.get_history(session_token)

    async def end_conversation(self, session_token: str) -> Optional[ChatbotConversation]:
        return await self.store.end(session_token)

    async def list_user_conversations(self, user_id: str, limit: int = 5) -> List[ChatbotConversation]:
        return await self.store.list_recent(user_id, limit)

    async def cleanup_old_conversations(self, days: int = 30) -> int:
        return await self.store.expire_older_than(timedelta(days=days))

    async def get_analytics(self, days: int = 30) -> Dict[str, Any]:
        stats = await self.store.stats(self.clock() - timedelta(days=days))
        return {"timeframe": f"{days} days", **stats}
