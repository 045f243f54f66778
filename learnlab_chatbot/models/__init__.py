from learnlab_chatbot.models.chatbot import (
    ChatbotConversation, ChatbotMessage, MessageRole, UserRole, new_session_token, utcnow
)

__all__ = [
    "ChatbotConversation", "ChatbotMessage", "MessageRole", "UserRole",
    "new_session_token", "utcnow"
]
