# ============================================================================
# Conversation Store
# ============================================================================
"""
Owns the chatbot conversation lifecycle: creation, lookup, idle reattachment,
message append, context replacement, soft deactivation and bulk expiry.

Per-session writes (append, merge_context, end) are serialized through a
per-token asyncio lock, so messages for one session are stored in the order
they arrive. Messages are separate rows, which keeps appends from different
processes from overwriting each other.
"""
import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from learnlab_chatbot.models.chatbot import (
    ChatbotConversation, ChatbotMessage, MessageRole, UserRole, new_session_token, utcnow
)

logger = logging.getLogger(__name__)

DEFAULT_IDLE_WINDOW = timedelta(minutes=30)


@dataclass
class ChatMessage:
    """A message about to be appended to a conversation"""
    role: MessageRole
    content: str
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }


class SessionLockRegistry:
    """One asyncio.Lock per session token, released when no longer referenced"""

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def get(self, session_token: str) -> asyncio.Lock:
        lock = self._locks.get(session_token)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_token] = lock
        return lock

    @asynccontextmanager
    async def hold(self, session_token: str):
        lock = self.get(session_token)
        async with lock:
            yield


class ConversationStore:
    """
    Persistence for chatbot conversations.

    Every per-session mutation refreshes ``last_interaction`` and commits
    immediately. Nothing here deletes conversations or messages.
    """

    def __init__(
        self,
        db: AsyncSession,
        locks: Optional[SessionLockRegistry] = None,
        idle_window: timedelta = DEFAULT_IDLE_WINDOW,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.locks = locks or SessionLockRegistry()
        self.idle_window = idle_window
        self.clock = clock

    # ==================== Lookup ====================

    async def get_session(self, session_token: str) -> Optional[ChatbotConversation]:
        """Any session with this token, active or not"""
        result = await self.db.execute(
            select(ChatbotConversation).where(ChatbotConversation.session_token == session_token)
        )
        return result.scalar_one_or_none()

    async def get_active(self, session_token: str) -> Optional[ChatbotConversation]:
        result = await self.db.execute(
            select(ChatbotConversation)
            .where(ChatbotConversation.session_token == session_token)
            .where(ChatbotConversation.is_active.is_(True))
        )
        return result.scalar_one_or_none()

    async def get_history(self, session_token: str) -> Optional[List[ChatbotMessage]]:
        conversation = await self.get_active(session_token)
        if conversation is None:
            return None
        return list(conversation.messages)

    # ==================== Lifecycle ====================

    async def resolve_session(
        self,
        user_id: str,
        role: UserRole,
        session_token: Optional[str] = None,
    ) -> ChatbotConversation:
        """
        Find the conversation this turn belongs to.

        1. The active session named by ``session_token`` (if it is the user's)
        2. The user's most recent active session, if idle for less than the window
        3. A brand new session
        """
        if session_token:
            existing = await self.get_active(session_token)
            if existing is not None and existing.user_id == user_id:
                return existing
            if existing is not None:
                logger.warning(f"Session token {session_token} does not belong to user {user_id}")

        result = await self.db.execute(
            select(ChatbotConversation)
            .where(ChatbotConversation.user_id == user_id)
            .where(ChatbotConversation.is_active.is_(True))
            .order_by(ChatbotConversation.last_interaction.desc(), ChatbotConversation.id.desc())
            .limit(1)
        )
        recent = result.scalar_one_or_none()
        if recent is not None and self._is_recent(recent.last_interaction):
            logger.info(f"Reattaching user {user_id} to session {recent.session_token}")
            return recent

        return await self.create(user_id, role)

    async def create(
        self,
        user_id: str,
        role: UserRole,
        context: Optional[Dict[str, Any]] = None,
    ) -> ChatbotConversation:
        now = self.clock()
        conversation = ChatbotConversation(
            session_token=new_session_token(),
            user_id=user_id,
            user_role=UserRole.coerce(role).value,
            context=dict(context or {}),
            is_active=True,
            last_interaction=now,
            created_at=now,
            messages=[],
        )
        self.db.add(conversation)
        await self.db.commit()
        logger.info(f"Created chatbot session {conversation.session_token} for user {user_id}")
        return conversation

    async def append(self, session_token: str, message: ChatMessage) -> Optional[ChatbotConversation]:
        """Append a message to an active session; None if there is none"""
        async with self.locks.hold(session_token):
            conversation = await self.get_active(session_token)
            if conversation is None:
                return None

            now = self.clock()
            conversation.messages.append(ChatbotMessage(
                role=message.role.value,
                content=message.content,
                created_at=message.timestamp,
            ))
            conversation.last_interaction = now
            await self.db.commit()
            return conversation

    async def merge_context(
        self,
        session_token: str,
        context: Dict[str, Any],
    ) -> Optional[ChatbotConversation]:
        """Replace the session context wholesale; callers carry forward what they keep"""
        async with self.locks.hold(session_token):
            conversation = await self.get_active(session_token)
            if conversation is None:
                return None

            conversation.context = dict(context)
            conversation.last_interaction = self.clock()
            await self.db.commit()
            return conversation

    async def end(self, session_token: str) -> Optional[ChatbotConversation]:
        """Deactivate a session; ending an inactive session is a no-op"""
        async with self.locks.hold(session_token):
            conversation = await self.get_session(session_token)
            if conversation is None:
                return None

            if conversation.is_active:
                conversation.is_active = False
                conversation.last_interaction = self.clock()
                await self.db.commit()
                logger.info(f"Ended chatbot session {session_token}")
            return conversation

    # ==================== Listing & Maintenance ====================

    async def list_recent(self, user_id: str, limit: int = 10) -> List[ChatbotConversation]:
        result = await self.db.execute(
            select(ChatbotConversation)
            .where(ChatbotConversation.user_id == user_id)
            .where(ChatbotConversation.is_active.is_(True))
            .order_by(ChatbotConversation.last_interaction.desc(), ChatbotConversation.id.desc())
            .limit(max(1, limit))
        )
        return list(result.scalars().all())

    async def expire_older_than(self, cutoff_age: timedelta) -> int:
        """Deactivate (not delete) active sessions idle for longer than cutoff_age"""
        cutoff = self.clock() - cutoff_age
        result = await self.db.execute(
            update(ChatbotConversation)
            .where(ChatbotConversation.is_active.is_(True))
            .where(ChatbotConversation.last_interaction < cutoff)
            .values(is_active=False)
        )
        await self.db.commit()
        expired = result.rowcount or 0
        logger.info(f"Expired {expired} chatbot sessions idle since before {cutoff.isoformat()}")
        return expired

    async def stats(self, since: datetime) -> Dict[str, Any]:
        """Aggregate activity for sessions started since the given time"""
        result = await self.db.execute(
            select(ChatbotConversation.user_role, func.count(ChatbotConversation.id))
            .where(ChatbotConversation.created_at >= since)
            .group_by(ChatbotConversation.user_role)
        )
        by_role = {role: count for role, count in result.all()}
        sessions_started = sum(by_role.values())

        result = await self.db.execute(
            select(func.count(ChatbotConversation.id))
            .where(ChatbotConversation.is_active.is_(True))
        )
        active_sessions = result.scalar() or 0

        result = await self.db.execute(
            select(func.count(ChatbotMessage.id))
            .join(ChatbotConversation, ChatbotMessage.conversation_id == ChatbotConversation.id)
            .where(ChatbotConversation.created_at >= since)
        )
        messages = result.scalar() or 0

        return {
            "sessionsStarted": sessions_started,
            "activeSessions": active_sessions,
            "messagesExchanged": messages,
            "averageMessagesPerSession": round(messages / sessions_started, 1) if sessions_started else 0.0,
            "sessionsByRole": {role.value: by_role.get(role.value, 0) for role in UserRole},
        }

    async def rollback(self) -> None:
        await self.db.rollback()

    def _is_recent(self, last_interaction: Optional[datetime]) -> bool:
        if last_interaction is None:
            return False
        return self.clock() - last_interaction < self.idle_window
