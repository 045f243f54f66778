# ============================================================================
# Quick Response Matcher
# ============================================================================
from typing import Any, Mapping, Optional, Sequence, Union

from learnlab_chatbot.models.chatbot import UserRole
from learnlab_chatbot.services.chatbot.templates import (
    PLATFORM_NAME, ROLE_FOCUS, QuickResponseRule
)


class QuickResponseMatcher:
    """
    Cheap keyword pre-filter that answers common questions without calling
    the generative backend.

    Rules are evaluated in order and the first matching rule wins. Matching is
    case-insensitive substring containment only, so the result for a given
    (message, role) pair never changes.
    """

    def __init__(
        self,
        rules: Sequence[QuickResponseRule],
        support_email: str,
        platform_name: str = PLATFORM_NAME,
    ):
        self.rules = tuple(rules)
        self.support_email = support_email
        self.platform_name = platform_name

    def match(self, message: str, context: Union[Mapping[str, Any], Any]) -> Optional[str]:
        """Return a canned answer, or None when no rule fires"""
        normalized = (message or "").lower()
        if not normalized.strip():
            return None

        role = UserRole.coerce(self._role_of(context))
        for rule in self.rules:
            if rule.applies_to(role) and rule.matches(normalized):
                return self._render(rule, role)
        return None

    def _render(self, rule: QuickResponseRule, role: UserRole) -> str:
        return rule.answer.format(
            role=role.value,
            focus=ROLE_FOCUS[role],
            platform=self.platform_name,
            support_email=self.support_email,
        )

    @staticmethod
    def _role_of(context) -> Any:
        if context is None:
            return None
        if isinstance(context, Mapping):
            return context.get("role") or context.get("userRole")
        return getattr(context, "role", None)
