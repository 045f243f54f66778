# ============================================================================
# Chatbot Templates & Rule Tables
# ============================================================================
"""
Pre-written text used by the chatbot: quick-response rules, role instructions
for the generative backend, fallback pools and canned replies.

Everything here is immutable data. The ``default_*`` factories build it once
at startup and the results are passed into the matcher, the generative adapter
and the orchestrator through their constructors.
"""
from dataclasses import dataclass
from types import MappingProxyType
from typing import FrozenSet, Mapping, Optional, Tuple

from learnlab_chatbot.models.chatbot import UserRole

PLATFORM_NAME = "LearnLab"

ROLE_FOCUS = MappingProxyType({
    UserRole.STUDENT: "learning",
    UserRole.INSTRUCTOR: "teaching",
    UserRole.ADMIN: "administration",
})


# ============================================================================
# Quick Response Rules
# ============================================================================
@dataclass(frozen=True)
class QuickResponseRule:
    """
    One canned answer.

    ``keywords`` is a tuple of keyword groups: every group must have at least
    one of its keywords contained in the message. ``roles`` limits the rule to
    those roles (``None`` = any role). ``answer`` may use ``{role}``,
    ``{focus}``, ``{platform}`` and ``{support_email}`` placeholders.
    """
    name: str
    keywords: Tuple[Tuple[str, ...], ...]
    answer: str
    roles: Optional[FrozenSet[UserRole]] = None

    def applies_to(self, role: UserRole) -> bool:
        return self.roles is None or role in self.roles

    def matches(self, normalized_message: str) -> bool:
        return all(
            any(keyword in normalized_message for keyword in group)
            for group in self.keywords
        )


GREETING = (
    "Hello! I'm your {platform} assistant. As a {role}, I can help you with "
    "platform navigation and {focus}. What would you like to know?"
)

STUDENT_VIDEO_UNLOCK = (
    "To unlock the next video, you need to watch at least 80% of the current "
    "video. The progress bar will turn green when you've watched enough!"
)

STUDENT_CERTIFICATE = (
    "To get your certificate, complete all videos (80% each) and pass the final "
    "quiz with 75% or higher. The certificate will be automatically generated!"
)

STUDENT_QUIZ = (
    "Quizzes appear after completing all course videos. You need 75% to pass and "
    "get your certificate. You have limited attempts, so review the material first!"
)

INSTRUCTOR_QUIZ_CREATE = (
    "Create quizzes in your course editor: Add questions with multiple choice "
    "answers → Set passing score (default 75%) → Set time limits and attempt "
    "limits → Save!"
)

INSTRUCTOR_COURSE_CREATE = (
    "To create a course: Go to your dashboard → Create Course → Add title, "
    "description, and thumbnail → Create lectures → Upload videos → Add quiz "
    "questions → Publish!"
)

INSTRUCTOR_EARNINGS = (
    "Your earnings are listed under Dashboard → Revenue. Each sale is split "
    "according to the platform revenue share, and payouts are summarised per month."
)

ADMIN_COURSE_APPROVAL = (
    "Pending courses are listed under Admin → Course Approvals. Review the "
    "content, then approve to publish it or reject it with feedback for the instructor."
)

ADMIN_USER_ROLES = (
    "Manage accounts under Admin → Users: search for the user, then change their "
    "role, block or unblock the account from the user detail page."
)

ADMIN_REPORTS = (
    "Platform reports live under Admin → Analytics: enrolments, completions, "
    "revenue and certificate issuance, filterable by date range."
)

SUPPORT_HELP = (
    "I'm here to help! Ask me anything about using {platform}. If you need a "
    "person, our support team is available at {support_email}."
)

SUPPORT_CONTACT = (
    "You can contact the {platform} support team by email at {support_email}. "
    "We usually reply within one business day."
)

SUPPORT_ACCOUNT = (
    "Having trouble signing in? Use the \"Forgot password\" link on the login "
    "page to get a reset email. If it doesn't arrive, write to {support_email}."
)


def default_quick_response_rules() -> Tuple[QuickResponseRule, ...]:
    """Ordered rule table: greeting, role-specific rules, then support rules"""
    student = frozenset({UserRole.STUDENT})
    instructor = frozenset({UserRole.INSTRUCTOR})
    admin = frozenset({UserRole.ADMIN})

    return (
        # 1. Greeting
        QuickResponseRule("greeting", (("hello", "hi", "hey"),), GREETING),

        # 2. Role-specific
        QuickResponseRule(
            "student_video_unlock", (("video",), ("unlock", "next")),
            STUDENT_VIDEO_UNLOCK, student,
        ),
        QuickResponseRule("student_certificate", (("certificate",),), STUDENT_CERTIFICATE, student),
        QuickResponseRule("student_quiz", (("quiz",),), STUDENT_QUIZ, student),
        QuickResponseRule(
            "instructor_quiz_create", (("quiz",), ("create", "add")),
            INSTRUCTOR_QUIZ_CREATE, instructor,
        ),
        QuickResponseRule(
            "instructor_course_create", (("course",), ("create", "new")),
            INSTRUCTOR_COURSE_CREATE, instructor,
        ),
        QuickResponseRule(
            "instructor_earnings", (("earning", "revenue", "payout"),),
            INSTRUCTOR_EARNINGS, instructor,
        ),
        QuickResponseRule(
            "admin_course_approval", (("course",), ("approve", "approval")),
            ADMIN_COURSE_APPROVAL, admin,
        ),
        QuickResponseRule(
            "admin_user_roles", (("user",), ("role", "permission", "block")),
            ADMIN_USER_ROLES, admin,
        ),
        QuickResponseRule("admin_reports", (("report", "analytics"),), ADMIN_REPORTS, admin),

        # 3. Support (any role)
        QuickResponseRule("support_help", (("help", "support"),), SUPPORT_HELP),
        QuickResponseRule("support_contact", (("contact", "email"),), SUPPORT_CONTACT),
        QuickResponseRule("support_account", (("password", "login"),), SUPPORT_ACCOUNT),
    )


# ============================================================================
# Generative Backend Instructions
# ============================================================================
BASE_INSTRUCTION = (
    "You are LearnLab Assistant, a helpful AI chatbot for the LearnLab e-learning "
    "platform. You provide guidance, support, and information to users."
)

STUDENT_INSTRUCTION = """You are helping a STUDENT. Your role is to:
- Guide students through course navigation and learning processes
- Help with course enrollment, progress tracking, and certificate requirements
- Explain how to access videos, quizzes, and course materials
- Provide study tips and learning strategies
- Assist with technical issues like video playback and progress tracking

Key facts:
- Videos unlock sequentially (80% of each video must be watched)
- The final quiz needs a 75% passing score for the certificate
- Certificates are generated automatically and can be verified and downloaded

Be encouraging, helpful, and student-focused. Keep responses concise and actionable."""

INSTRUCTOR_INSTRUCTION = """You are helping an INSTRUCTOR. Your role is to:
- Assist with course creation, management, and publishing
- Guide through video upload, lecture organization, and course structure
- Help with student progress monitoring and analytics
- Explain quiz creation, question management, and grading
- Help with earnings tracking and course pricing

Key facts:
- The course builder organises lectures and videos
- Quizzes default to a 75% passing score
- Revenue is shared per sale and reported monthly

Be professional, detailed, and focused on teaching success."""

ADMIN_INSTRUCTION = """You are helping an ADMIN. Your role is to:
- Assist with platform management and user administration
- Help with course approval, content moderation, and quality control
- Explain analytics, reports, and platform performance metrics
- Assist with payment and revenue reports
- Guide through certificate verification and validation

Be authoritative, comprehensive, and focused on platform management."""


def default_role_instructions() -> Mapping[UserRole, str]:
    return MappingProxyType({
        UserRole.STUDENT: f"{BASE_INSTRUCTION}\n\n{STUDENT_INSTRUCTION}",
        UserRole.INSTRUCTOR: f"{BASE_INSTRUCTION}\n\n{INSTRUCTOR_INSTRUCTION}",
        UserRole.ADMIN: f"{BASE_INSTRUCTION}\n\n{ADMIN_INSTRUCTION}",
    })


# ============================================================================
# Fallback Pools
# ============================================================================
def default_fallback_pool() -> Mapping[UserRole, Tuple[str, ...]]:
    return MappingProxyType({
        UserRole.STUDENT: (
            "I'm here to help you with your learning journey! You can ask me about "
            "course navigation, progress tracking, or any learning-related questions.",
            "Need help with your courses? I can guide you through video lessons, "
            "quiz requirements, or certificate processes.",
            "I'm your learning assistant! Feel free to ask about course access, "
            "video completion requirements, or study tips.",
        ),
        UserRole.INSTRUCTOR: (
            "I'm here to help you create and manage your courses! Ask me about "
            "course creation, student management, or platform features.",
            "Need assistance with your teaching? I can help with course setup, "
            "quiz creation, or student progress tracking.",
            "I'm your instructor assistant! Feel free to ask about course "
            "management, analytics, or best practices.",
        ),
        UserRole.ADMIN: (
            "I'm here to help you manage the LearnLab platform! Ask me about user "
            "management, course moderation, or system administration.",
            "Need help with platform administration? I can guide you through user "
            "management, analytics, or system settings.",
            "I'm your admin assistant! Feel free to ask about platform management, "
            "reports, or administrative tasks.",
        ),
    })


# ============================================================================
# Canned Replies
# ============================================================================
@dataclass(frozen=True)
class ReplyTemplates:
    """Role-keyed replies used by the orchestrator's own guards"""
    rephrase: Mapping[UserRole, str]
    default: Mapping[UserRole, str]
    apology: Mapping[UserRole, str]

    def _pick(self, table: Mapping[UserRole, str], role) -> str:
        return table[UserRole.coerce(role)]

    def rephrase_reply(self, role) -> str:
        return self._pick(self.rephrase, role)

    def default_reply(self, role) -> str:
        return self._pick(self.default, role)

    def apology_reply(self, role) -> str:
        return self._pick(self.apology, role)


def default_reply_templates(support_email: str) -> ReplyTemplates:
    apology = (
        "Sorry, I ran into a problem while answering that. Please try again in a "
        "moment, or reach our support team at {email} for help with your {topic}."
    )
    return ReplyTemplates(
        rephrase=MappingProxyType({
            UserRole.STUDENT: "I didn't catch that. Could you rephrase your question "
                              "about your courses or learning?",
            UserRole.INSTRUCTOR: "I didn't catch that. Could you rephrase your question "
                                 "about your courses or teaching?",
            UserRole.ADMIN: "I didn't catch that. Could you rephrase your question "
                            "about platform administration?",
        }),
        default=MappingProxyType({
            UserRole.STUDENT: "I'm here to help with your courses, videos, quizzes "
                              "and certificates. What would you like to know?",
            UserRole.INSTRUCTOR: "I'm here to help with course creation, quizzes "
                                 "and student progress. What would you like to know?",
            UserRole.ADMIN: "I'm here to help with users, course approvals and "
                            "platform reports. What would you like to know?",
        }),
        apology=MappingProxyType({
            UserRole.STUDENT: apology.format(email=support_email, topic="courses"),
            UserRole.INSTRUCTOR: apology.format(email=support_email, topic="teaching"),
            UserRole.ADMIN: apology.format(email=support_email, topic="platform"),
        }),
    )


# ============================================================================
# Platform Statistics (display only)
# ============================================================================
def default_platform_stats() -> Mapping[str, str]:
    return MappingProxyType({
        "totalCourses": "500+",
        "activeLearners": "10,000+",
        "expertInstructors": "150+",
        "averageRating": "4.8/5",
    })
