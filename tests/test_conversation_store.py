# ============================================================================
# Conversation Store Tests
# ============================================================================
import asyncio
import pytest
from datetime import datetime, timedelta

from learnlab_chatbot.models.chatbot import MessageRole, UserRole
from learnlab_chatbot.services.chatbot.conversation_store import (
    ChatMessage,
    ConversationStore,
    SessionLockRegistry,
)

T0 = datetime(2026, 3, 1, 9, 0, 0)


class Clock:
    """Settable clock for idle-window tests"""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def timed_store(db_session, clock):
    return ConversationStore(db_session, locks=SessionLockRegistry(), clock=clock)


def user_message(content: str) -> ChatMessage:
    return ChatMessage(role=MessageRole.USER, content=content)


class TestResolveSession:
    """Session creation and reattachment"""

    @pytest.mark.asyncio
    async def test_creates_new_session(self, store):
        conversation = await store.resolve_session("student-1", UserRole.STUDENT)

        assert conversation.session_token
        assert conversation.is_active is True
        assert conversation.messages == []
        assert conversation.context == {}
        assert conversation.role == UserRole.STUDENT

    @pytest.mark.asyncio
    async def test_returns_session_by_token(self, store):
        created = await store.resolve_session("student-1", UserRole.STUDENT)

        found = await store.resolve_session("student-1", UserRole.STUDENT, created.session_token)

        assert found.id == created.id

    @pytest.mark.asyncio
    async def test_reattaches_within_idle_window(self, timed_store, clock):
        first = await timed_store.resolve_session("student-1", UserRole.STUDENT)

        clock.advance(minutes=29)
        second = await timed_store.resolve_session("student-1", UserRole.STUDENT)

        assert second.session_token == first.session_token

    @pytest.mark.asyncio
    async def test_new_session_after_idle_window(self, timed_store, clock):
        first = await timed_store.resolve_session("student-1", UserRole.STUDENT)

        clock.advance(minutes=31)
        second = await timed_store.resolve_session("student-1", UserRole.STUDENT)

        assert second.session_token != first.session_token

    @pytest.mark.asyncio
    async def test_exactly_idle_window_is_not_recent(self, timed_store, clock):
        first = await timed_store.resolve_session("student-1", UserRole.STUDENT)

        clock.advance(minutes=30)
        second = await timed_store.resolve_session("student-1", UserRole.STUDENT)

        assert second.session_token != first.session_token

    @pytest.mark.asyncio
    async def test_other_users_token_is_not_reused(self, store):
        theirs = await store.resolve_session("student-2", UserRole.STUDENT)

        mine = await store.resolve_session("student-1", UserRole.STUDENT, theirs.session_token)

        assert mine.session_token != theirs.session_token
        assert mine.user_id == "student-1"

    @pytest.mark.asyncio
    async def test_ended_token_starts_fresh_session(self, timed_store, clock):
        first = await timed_store.resolve_session("student-1", UserRole.STUDENT)
        await timed_store.end(first.session_token)

        second = await timed_store.resolve_session("student-1", UserRole.STUDENT, first.session_token)

        assert second.session_token != first.session_token


class TestAppend:
    """Message append and context replacement"""

    @pytest.mark.asyncio
    async def test_append_refreshes_last_interaction(self, timed_store, clock):
        conversation = await timed_store.resolve_session("student-1", UserRole.STUDENT)

        clock.advance(minutes=5)
        updated = await timed_store.append(conversation.session_token, user_message("first"))

        assert [m.content for m in updated.messages] == ["first"]
        assert updated.last_interaction == T0 + timedelta(minutes=5)

    @pytest.mark.asyncio
    async def test_append_to_unknown_token(self, store):
        assert await store.append("no-such-token", user_message("x")) is None

    @pytest.mark.asyncio
    async def test_append_to_ended_session(self, store):
        conversation = await store.resolve_session("student-1", UserRole.STUDENT)
        await store.end(conversation.session_token)

        assert await store.append(conversation.session_token, user_message("x")) is None

    @pytest.mark.asyncio
    async def test_concurrent_appends_keep_every_message(self, store):
        conversation = await store.resolve_session("student-1", UserRole.STUDENT)
        token = conversation.session_token

        await asyncio.gather(*[store.append(token, user_message(f"m{i}")) for i in range(5)])

        history = await store.get_history(token)
        assert sorted(m.content for m in history) == [f"m{i}" for i in range(5)]

    @pytest.mark.asyncio
    async def test_merge_context_replaces_wholesale(self, store):
        conversation = await store.resolve_session("student-1", UserRole.STUDENT)
        await store.merge_context(conversation.session_token, {"courseId": "c1", "old": True})

        updated = await store.merge_context(conversation.session_token, {"courseId": "c2"})

        assert updated.context == {"courseId": "c2"}

    @pytest.mark.asyncio
    async def test_history_in_insertion_order(self, store):
        conversation = await store.resolve_session("student-1", UserRole.STUDENT)
        token = conversation.session_token
        await store.append(token, user_message("question"))
        await store.append(token, ChatMessage(role=MessageRole.ASSISTANT, content="answer"))

        history = await store.get_history(token)

        assert [(m.role, m.content) for m in history] == [("user", "question"), ("assistant", "answer")]


class TestEnd:
    @pytest.mark.asyncio
    async def test_end_is_idempotent(self, timed_store, clock):
        conversation = await timed_store.resolve_session("student-1", UserRole.STUDENT)
        token = conversation.session_token

        clock.advance(minutes=1)
        first = await timed_store.end(token)
        clock.advance(minutes=1)
        second = await timed_store.end(token)

        assert first.is_active is False
        assert second.is_active is False
        assert second.last_interaction == T0 + timedelta(minutes=1)

    @pytest.mark.asyncio
    async def test_end_unknown_token(self, store):
        assert await store.end("no-such-token") is None

    @pytest.mark.asyncio
    async def test_history_hidden_after_end(self, store):
        conversation = await store.resolve_session("student-1", UserRole.STUDENT)
        await store.end(conversation.session_token)

        assert await store.get_history(conversation.session_token) is None
        assert (await store.get_session(conversation.session_token)).is_active is False


class TestMaintenance:
    """Listing, bulk expiry and analytics"""

    @pytest.mark.asyncio
    async def test_list_recent_most_recent_first(self, timed_store, clock):
        older = await timed_store.create("student-1", UserRole.STUDENT)
        clock.advance(minutes=1)
        newer = await timed_store.create("student-1", UserRole.STUDENT)
        await timed_store.create("student-2", UserRole.STUDENT)

        recent = await timed_store.list_recent("student-1", limit=5)

        assert [c.session_token for c in recent] == [newer.session_token, older.session_token]

    @pytest.mark.asyncio
    async def test_list_recent_respects_limit(self, store):
        for _ in range(3):
            await store.create("student-1", UserRole.STUDENT)

        assert len(await store.list_recent("student-1", limit=2)) == 2

    @pytest.mark.asyncio
    async def test_expire_older_than(self, timed_store, clock):
        stale = await timed_store.create("student-1", UserRole.STUDENT)
        clock.advance(days=20)
        fresh = await timed_store.create("student-2", UserRole.STUDENT)
        clock.advance(days=15)

        expired = await timed_store.expire_older_than(timedelta(days=30))

        assert expired == 1
        assert (await timed_store.get_session(stale.session_token)).is_active is False
        assert (await timed_store.get_session(fresh.session_token)).is_active is True

    @pytest.mark.asyncio
    async def test_expire_keeps_last_interaction(self, timed_store, clock):
        stale = await timed_store.create("student-1", UserRole.STUDENT)
        clock.advance(days=31)

        await timed_store.expire_older_than(timedelta(days=30))

        assert (await timed_store.get_session(stale.session_token)).last_interaction == T0

    @pytest.mark.asyncio
    async def test_stats(self, store):
        student = await store.create("student-1", UserRole.STUDENT)
        await store.create("instructor-1", UserRole.INSTRUCTOR)
        await store.append(student.session_token, user_message("one"))
        await store.append(student.session_token, user_message("two"))
        await store.end(student.session_token)

        stats = await store.stats(T0 - timedelta(days=3650))

        assert stats["sessionsStarted"] == 2
        assert stats["activeSessions"] == 1
        assert stats["messagesExchanged"] == 2
        assert stats["averageMessagesPerSession"] == 1.0
        assert stats["sessionsByRole"] == {"student": 1, "instructor": 1, "admin": 0}
