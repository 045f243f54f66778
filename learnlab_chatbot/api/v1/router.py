# ============================================================================
# Main API Router
# ============================================================================
from fastapi import APIRouter

from learnlab_chatbot.api.v1 import chatbot

api_router = APIRouter()

# Chat turns, conversation history, admin maintenance
api_router.include_router(chatbot.router)
