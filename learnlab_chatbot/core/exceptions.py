# ============================================================================
# Custom Exceptions
# ============================================================================
from typing import Optional

class LearnLabException(Exception):
    """Base exception for the LearnLab assistant"""
    def __init__(
        self,
        detail: str,
        status_code: int = 400,
        error_code: Optional[str] = None
    ):
        self.detail = detail
        self.status_code = status_code
        self.error_code = error_code or "LEARNLAB_ERROR"
        super().__init__(self.detail)

class ConversationNotFound(LearnLabException):
    def __init__(self, session_token: str):
        super().__init__(
            detail=f"Conversation not found: {session_token}",
            status_code=404,
            error_code="CONVERSATION_NOT_FOUND"
        )
        self.session_token = session_token

class ConversationAccessDenied(LearnLabException):
    # Reported as a 404 so other users' tokens are not confirmed to exist
    def __init__(self, session_token: str):
        super().__init__(
            detail=f"Conversation not found: {session_token}",
            status_code=404,
            error_code="CONVERSATION_NOT_FOUND"
        )
        self.session_token = session_token

class GenerationBackendError(LearnLabException):
    def __init__(self, message: str = "Generative backend returned no usable text"):
        super().__init__(
            detail=message,
            status_code=502,
            error_code="GENERATION_FAILED"
        )
