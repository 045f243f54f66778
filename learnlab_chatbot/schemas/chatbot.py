# ============================================================================
# Chatbot Schemas
# ============================================================================
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict, Any

from learnlab_chatbot.schemas.responses import BaseResponse

class ChatRequestContext(BaseModel):
    course_id: Optional[str] = Field(default=None, alias="courseId")
    current_page: Optional[str] = Field(default=None, alias="currentPage")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_context(self) -> Dict[str, Any]:
        """Caller-supplied fields only, in wire naming"""
        return self.model_dump(by_alias=True, exclude_none=True)

class ChatRequest(BaseModel):
    message: str
    session_token: Optional[str] = Field(default=None, alias="sessionToken")
    context: Optional[ChatRequestContext] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

class ChatResponse(BaseModel):
    session_token: str = Field(alias="sessionToken")
    reply: str
    context: Dict[str, Any] = {}

    model_config = ConfigDict(populate_by_name=True)

class ChatMessageResponse(BaseResponse):
    data: ChatResponse

class ConversationMessage(BaseModel):
    role: str
    content: str
    timestamp: Optional[str] = None

class ConversationHistoryResponse(BaseResponse):
    data: List[ConversationMessage]

class ConversationSummary(BaseModel):
    sessionToken: str
    userRole: str
    isActive: bool
    messageCount: int
    lastMessage: Optional[str] = None
    lastInteraction: Optional[str] = None
    createdAt: Optional[str] = None
    context: Dict[str, Any] = {}

class ConversationListResponse(BaseResponse):
    data: List[ConversationSummary]

class CleanupResult(BaseModel):
    days: int
    expired: int

class CleanupResponse(BaseResponse):
    data: CleanupResult

class ChatbotAnalytics(BaseModel):
    timeframe: str
    sessionsStarted: int
    activeSessions: int
    messagesExchanged: int
    averageMessagesPerSession: float
    sessionsByRole: Dict[str, int]

class AnalyticsResponse(BaseResponse):
    data: ChatbotAnalytics
