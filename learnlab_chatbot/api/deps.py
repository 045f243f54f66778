# ============================================================================
# API Dependencies
# ============================================================================
from fastapi import Depends, HTTPException, status, Request
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from learnlab_chatbot.core.database import get_db
from learnlab_chatbot.services.chatbot import ChatbotComponents, ChatbotOrchestrator

logger = logging.getLogger(__name__)


# ============================================================================
# Chatbot Dependencies
# ============================================================================
async def get_chatbot_components(request: Request) -> ChatbotComponents:
    """
    Get the chatbot components from app state.

    They are built once at startup (matcher, context builder, generator)
    and shared across requests.
    """
    if not hasattr(request.app.state, 'chatbot'):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Chatbot not initialized"
        )
    return request.app.state.chatbot


async def get_orchestrator(
    components: ChatbotComponents = Depends(get_chatbot_components),
    db: AsyncSession = Depends(get_db)
) -> ChatbotOrchestrator:
    """Per-request orchestrator bound to the request's database session"""
    return components.orchestrator(db)
