# ============================================================================
# Chatbot Conversation Models
# ============================================================================
from datetime import datetime, timezone
from typing import Any, Dict
import enum
import uuid

from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, Text, JSON, Index
from sqlalchemy.orm import relationship
from learnlab_chatbot.core.database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp (portable across PostgreSQL and SQLite)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_session_token() -> str:
    return str(uuid.uuid4())


class UserRole(str, enum.Enum):
    STUDENT = "student"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"

    @classmethod
    def coerce(cls, value: Any) -> "UserRole":
        """Map any role value onto a known role, defaulting to student"""
        try:
            return cls(str(getattr(value, "value", value)).lower())
        except ValueError:
            return cls.STUDENT


class MessageRole(str, enum.Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ChatbotConversation(Base):
    __tablename__ = "chatbot_conversations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_token = Column(String(64), unique=True, nullable=False, default=new_session_token)
    user_id = Column(String(64), nullable=False)
    user_role = Column(String(20), nullable=False)  # student, instructor, admin

    # Free-form, replaced wholesale on each update
    context = Column(JSON, nullable=False, default=dict)

    is_active = Column(Boolean, nullable=False, default=True)
    last_interaction = Column(DateTime, nullable=False, default=utcnow)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    messages = relationship(
        "ChatbotMessage",
        back_populates="conversation",
        order_by="ChatbotMessage.id",
        cascade="save-update, merge",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_chatbot_conversations_user_token", "user_id", "session_token"),
        Index("ix_chatbot_conversations_active_recent", "is_active", "last_interaction"),
    )

    @property
    def role(self) -> UserRole:
        return UserRole.coerce(self.user_role)

    def to_summary(self) -> Dict[str, Any]:
        last_message = self.messages[-1] if self.messages else None
        return {
            "sessionToken": self.session_token,
            "userRole": self.user_role,
            "isActive": self.is_active,
            "messageCount": len(self.messages),
            "lastMessage": last_message.content[:120] if last_message else None,
            "lastInteraction": self.last_interaction.isoformat() if self.last_interaction else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "context": dict(self.context or {}),
        }

    def __repr__(self):
        return f"<ChatbotConversation {self.session_token} ({self.user_role}, active={self.is_active})>"


class ChatbotMessage(Base):
    __tablename__ = "chatbot_messages"

    # Autoincrement id fixes insertion order
    id = Column(Integer, primary_key=True, autoincrement=True)
    conversation_id = Column(
        Integer, ForeignKey("chatbot_conversations.id"), nullable=False, index=True
    )
    role = Column(String(20), nullable=False)  # user, assistant, system
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    conversation = relationship("ChatbotConversation", back_populates="messages")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role,
            "content": self.content,
            "timestamp": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<ChatbotMessage {self.role}: {self.content[:50]}...>"
