# ============================================================================
# Chatbot Endpoints
# ============================================================================
"""
Chat turns, conversation history and admin maintenance for the LearnLab
assistant.
"""
from fastapi import APIRouter, Depends, Query
from typing import Optional

from learnlab_chatbot.api.deps import get_orchestrator
from learnlab_chatbot.config import get_settings
from learnlab_chatbot.core.exceptions import ConversationAccessDenied, ConversationNotFound
from learnlab_chatbot.core.security import AuthenticatedUser, get_current_active_user, require_admin
from learnlab_chatbot.schemas.chatbot import (
    AnalyticsResponse,
    ChatMessageResponse,
    ChatRequest,
    ChatResponse,
    CleanupResponse,
    CleanupResult,
    ChatbotAnalytics,
    ConversationHistoryResponse,
    ConversationListResponse,
    ConversationMessage,
    ConversationSummary,
)
from learnlab_chatbot.services.chatbot import ChatbotOrchestrator, ChatTurn

settings = get_settings()
router = APIRouter(prefix="/chatbot", tags=["chatbot"])


def _bounded_limit(limit: Optional[int]) -> int:
    if limit is None:
        return settings.CHATBOT_DEFAULT_CONVERSATION_LIMIT
    return max(1, min(limit, settings.CHATBOT_MAX_CONVERSATION_LIMIT))


async def _owned_conversation(
    orchestrator: ChatbotOrchestrator,
    session_token: str,
    user: AuthenticatedUser,
):
    conversation = await orchestrator.get_conversation(session_token)
    if conversation is None:
        raise ConversationNotFound(session_token)
    if conversation.user_id != user.id and not user.is_admin:
        raise ConversationAccessDenied(session_token)
    return conversation


# ============================================================================
# Chat
# ============================================================================
@router.post("/message", response_model=ChatMessageResponse, response_model_by_alias=True)
async def send_message(
    request: ChatRequest,
    user: AuthenticatedUser = Depends(get_current_active_user),
    orchestrator: ChatbotOrchestrator = Depends(get_orchestrator)
):
    """Send a message to the assistant and get its reply"""
    reply = await orchestrator.process(ChatTurn(
        user_id=user.id,
        role=user.role,
        message=request.message,
        session_token=request.session_token,
        context=request.context.to_context() if request.context else {},
    ))
    return ChatMessageResponse(
        data=ChatResponse(
            session_token=reply.session_token,
            reply=reply.reply,
            context=reply.context,
        )
    )


# ============================================================================
# Conversations
# ============================================================================
@router.get("/conversations/{session_token}/history", response_model=ConversationHistoryResponse)
async def get_conversation_history(
    session_token: str,
    user: AuthenticatedUser = Depends(get_current_active_user),
    orchestrator: ChatbotOrchestrator = Depends(get_orchestrator)
):
    """Messages of an active conversation, oldest first"""
    await _owned_conversation(orchestrator, session_token, user)

    history = await orchestrator.get_history(session_token)
    if history is None:
        raise ConversationNotFound(session_token)

    return ConversationHistoryResponse(
        data=[ConversationMessage(**message.to_dict()) for message in history]
    )


@router.delete("/conversations/{session_token}")
async def end_conversation(
    session_token: str,
    user: AuthenticatedUser = Depends(get_current_active_user),
    orchestrator: ChatbotOrchestrator = Depends(get_orchestrator)
):
    """End a conversation; ending an already-ended conversation is fine"""
    await _owned_conversation(orchestrator, session_token, user)
    await orchestrator.end_conversation(session_token)
    return {"success": True, "message": "Conversation ended successfully"}


@router.get("/conversations", response_model=ConversationListResponse)
async def list_my_conversations(
    limit: Optional[int] = None,
    user: AuthenticatedUser = Depends(get_current_active_user),
    orchestrator: ChatbotOrchestrator = Depends(get_orchestrator)
):
    """The current user's most recent active conversations"""
    conversations = await orchestrator.list_user_conversations(user.id, _bounded_limit(limit))
    return ConversationListResponse(
        data=[ConversationSummary(**c.to_summary()) for c in conversations]
    )


# ============================================================================
# Admin
# ============================================================================
@router.get("/admin/users/{user_id}/conversations", response_model=ConversationListResponse)
async def list_user_conversations(
    user_id: str,
    limit: Optional[int] = None,
    admin: AuthenticatedUser = Depends(require_admin),
    orchestrator: ChatbotOrchestrator = Depends(get_orchestrator)
):
    conversations = await orchestrator.list_user_conversations(user_id, _bounded_limit(limit))
    return ConversationListResponse(
        data=[ConversationSummary(**c.to_summary()) for c in conversations]
    )


@router.delete("/admin/cleanup", response_model=CleanupResponse)
async def cleanup_old_conversations(
    days: int = Query(settings.CHATBOT_CLEANUP_DAYS, ge=1, le=3650),
    admin: AuthenticatedUser = Depends(require_admin),
    orchestrator: ChatbotOrchestrator = Depends(get_orchestrator)
):
    """Deactivate conversations idle for longer than the given number of days"""
    expired = await orchestrator.cleanup_old_conversations(days)
    return CleanupResponse(
        message=f"Expired {expired} conversations older than {days} days",
        data=CleanupResult(days=days, expired=expired),
    )


@router.get("/admin/analytics", response_model=AnalyticsResponse)
async def get_chatbot_analytics(
    days: int = Query(30, ge=1, le=365),
    admin: AuthenticatedUser = Depends(require_admin),
    orchestrator: ChatbotOrchestrator = Depends(get_orchestrator)
):
    analytics = await orchestrator.get_analytics(days)
    return AnalyticsResponse(data=ChatbotAnalytics(**analytics))
