# ============================================================================
# Chatbot Cleanup Tasks
# ============================================================================
from celery import shared_task
from datetime import timedelta
from typing import Optional
import asyncio
import logging

from learnlab_chatbot.config import get_settings

logger = logging.getLogger(__name__)


def run_async(coro):
    """Helper to run async functions in Celery tasks"""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def _expire_stale_conversations(session_maker, days: int) -> int:
    from learnlab_chatbot.services.chatbot.conversation_store import ConversationStore

    async with session_maker() as db:
        store = ConversationStore(db)
        expired = await store.expire_older_than(timedelta(days=days))

    logger.info(f"Chatbot cleanup completed: {expired} conversations expired (>{days} days idle)")
    return expired


@shared_task(name="learnlab_chatbot.tasks.cleanup_tasks.expire_stale_conversations")
def expire_stale_conversations(days: Optional[int] = None):
    """Deactivate chatbot conversations idle for longer than CHATBOT_CLEANUP_DAYS"""
    from learnlab_chatbot.core.database import async_session_maker

    days = days or get_settings().CHATBOT_CLEANUP_DAYS
    return run_async(_expire_stale_conversations(async_session_maker, days))
