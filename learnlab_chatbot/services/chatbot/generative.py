# ============================================================================
# Generative Fallback Adapter
# ============================================================================
"""
Wraps the external text-generation backend.

The adapter builds one role-specific system message, appends a bounded window
of the conversation, calls the backend with fixed decoding settings, and turns
every kind of failure (no credential, error, timeout, empty text) into a
pre-written fallback string from the role's pool. ``generate`` never raises.
"""
from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

from google import genai
from google.genai import types

from learnlab_chatbot.core.exceptions import GenerationBackendError
from learnlab_chatbot.models.chatbot import MessageRole, UserRole

logger = logging.getLogger(__name__)

CONVERSATION_ROLES = (MessageRole.USER.value, MessageRole.ASSISTANT.value)


@dataclass(frozen=True)
class GenerationSettings:
    """Decoding parameters sent with every backend call"""
    max_output_tokens: int = 300
    temperature: float = 0.7


class GenerativeBackend(Protocol):
    """Opaque text-generation backend; may raise on any failure"""

    async def complete(
        self,
        messages: Sequence[Mapping[str, str]],
        settings: GenerationSettings,
    ) -> str:
        ...


# ============================================================================
# Gemini Backend
# ============================================================================
class GeminiBackend:
    """Gemini chat completion over the async google-genai client"""

    def __init__(self, api_key: str, model: str, client: Optional[genai.Client] = None):
        self.model = model.replace("models/", "")
        self._client = client or genai.Client(api_key=api_key)

    async def complete(
        self,
        messages: Sequence[Mapping[str, str]],
        settings: GenerationSettings,
    ) -> str:
        system_parts = [m["content"] for m in messages if m["role"] == MessageRole.SYSTEM.value]
        contents = [
            types.Content(
                role="model" if m["role"] == MessageRole.ASSISTANT.value else "user",
                parts=[types.Part(text=m["content"])],
            )
            for m in messages
            if m["role"] in CONVERSATION_ROLES
        ]

        response = await self._client.aio.models.generate_content(
            model=self.model,
            contents=contents,
            config=types.GenerateContentConfig(
                system_instruction="\n\n".join(system_parts) or None,
                max_output_tokens=settings.max_output_tokens,
                temperature=settings.temperature,
            ),
        )
        text = response.text
        if text is None:
            raise GenerationBackendError("Gemini response contained no text")
        return text


# ============================================================================
# Adapter
# ============================================================================
class GenerativeFallbackAdapter:
    """
    Generates assistant replies with a guaranteed usable result.

    Usage:
        adapter = GenerativeFallbackAdapter(
            backend=GeminiBackend(api_key, "gemini-2.5-flash"),
            instructions=default_role_instructions(),
            fallbacks=default_fallback_pool(),
            rng=random.Random(42),
        )
        reply = await adapter.generate(history, context)
    """

    def __init__(
        self,
        backend: Optional[GenerativeBackend],
        instructions: Mapping[UserRole, str],
        fallbacks: Mapping[UserRole, Tuple[str, ...]],
        settings: Optional[GenerationSettings] = None,
        history_window: int = 10,
        timeout_seconds: Optional[float] = 20.0,
        rng: Optional[random.Random] = None,
    ):
        self.backend = backend
        self.instructions = instructions
        self.fallbacks = fallbacks
        self.settings = settings or GenerationSettings()
        self.history_window = history_window
        self.timeout_seconds = timeout_seconds
        self.rng = rng or random.Random()

    # ==================== Prompt Assembly ====================

    def build_system_instruction(self, context: Any) -> str:
        role = UserRole.coerce(_field(context, "role"))
        lines = [self.instructions[role]]

        course = _field(context, "course_info", "courseInfo")
        if course and course.get("title"):
            lines.append(f"The user is currently viewing the course \"{course['title']}\".")
        page = _field(context, "current_page", "currentPage")
        if page:
            lines.append(f"Current page: {page}.")
        progress = _field(context, "user_progress", "userProgress")
        if progress and progress.get("progressPercentage") is not None:
            lines.append(f"Their progress in this course is {progress['progressPercentage']}%.")

        return "\n".join(lines)

    def build_messages(
        self,
        history: Sequence[Any],
        context: Any,
    ) -> List[Dict[str, str]]:
        """One system message, then the last user/assistant turns in order"""
        turns = []
        for message in history:
            role = _field(message, "role")
            role = getattr(role, "value", role)
            if role in CONVERSATION_ROLES:
                turns.append({"role": role, "content": str(_field(message, "content") or "")})

        window = turns[-self.history_window:] if self.history_window > 0 else []
        return [
            {"role": MessageRole.SYSTEM.value, "content": self.build_system_instruction(context)},
            *window,
        ]

    # ==================== Generation ====================

    async def generate(self, history: Sequence[Any], context: Any) -> str:
        role = UserRole.coerce(_field(context, "role"))

        if self.backend is None:
            logger.warning("Generative backend not configured; using fallback response")
            return self.fallback_response(role)

        try:
            messages = self.build_messages(history, context)
            text = await asyncio.wait_for(
                self.backend.complete(messages, self.settings),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Generative backend timed out after {self.timeout_seconds}s")
            return self.fallback_response(role)
        except Exception as e:
            logger.error(f"Generative backend failed: {e}")
            return self.fallback_response(role)

        if not text or not str(text).strip():
            logger.warning("Generative backend returned an empty response")
            return self.fallback_response(role)

        return str(text).strip()

    def fallback_response(self, role: Any) -> str:
        pool = self.fallbacks.get(UserRole.coerce(role)) or self.fallbacks[UserRole.STUDENT]
        return self.rng.choice(pool)


def _field(obj: Any, *names: str) -> Any:
    """Read a field from a mapping or an object, trying each name in turn"""
    if obj is None:
        return None
    for name in names:
        if isinstance(obj, Mapping):
            value = obj.get(name)
        else:
            value = getattr(obj, name, None)
        if value is not None:
            return value
    return None
