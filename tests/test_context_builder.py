# ============================================================================
# Context Builder Tests
# ============================================================================
import asyncio
import pytest

from learnlab_chatbot.models.chatbot import UserRole
from learnlab_chatbot.services.chatbot.context_builder import (
    ContextBuilder,
    ContextProviders,
    ContextRequest,
    LookupResult,
)


class FakeProgress:
    def __init__(self, progress=None, error=None):
        self.progress = progress if progress is not None else {"progressPercentage": 40}
        self.error = error
        self.calls = []

    async def get_user_course_progress(self, user_id, course_id):
        self.calls.append((user_id, course_id))
        if self.error:
            raise self.error
        return self.progress


class FakeCatalog:
    def __init__(self, courses=None, error=None):
        self.courses = courses if courses is not None else {"c1": {"title": "Intro to Python"}}
        self.error = error
        self.calls = []

    async def get_course_by_id(self, course_id):
        self.calls.append(course_id)
        if self.error:
            raise self.error
        return self.courses.get(course_id)


def student_request(**kwargs):
    return ContextRequest(user_id="student-1", role=UserRole.STUDENT, **kwargs)


class TestContextProviders:
    """Provider capability variants"""

    def test_kinds(self):
        progress, catalog = FakeProgress(), FakeCatalog()

        assert ContextProviders.full(progress, catalog).kind == "full"
        assert ContextProviders.progress_only(progress).kind == "progress_only"
        assert ContextProviders.course_only(catalog).kind == "course_only"
        assert ContextProviders.none().kind == "none"

    @pytest.mark.asyncio
    async def test_missing_provider_is_unavailable(self):
        result = await ContextProviders.none().lookup_progress("u", "c1")

        assert result == LookupResult.absent("unavailable")
        assert not result.found

    @pytest.mark.asyncio
    async def test_failing_provider_is_error(self):
        providers = ContextProviders.progress_only(FakeProgress(error=RuntimeError("down")))

        result = await providers.lookup_progress("u", "c1")

        assert result.reason == "error"
        assert result.value is None

    @pytest.mark.asyncio
    async def test_unknown_course_is_not_found(self):
        providers = ContextProviders.course_only(FakeCatalog())

        result = await providers.lookup_course("missing")

        assert result.reason == "not_found"


class TestContextBuilder:
    """Per-turn context assembly"""

    @pytest.mark.asyncio
    async def test_minimal_context_without_course(self):
        progress = FakeProgress()
        builder = ContextBuilder(ContextProviders.progress_only(progress))

        context = await builder.build(student_request())

        assert context.user_id == "student-1"
        assert context.role == UserRole.STUDENT
        assert context.course_id is None
        assert context.user_progress is None
        assert context.platform_stats["totalCourses"] == "500+"
        assert progress.calls == []

    @pytest.mark.asyncio
    async def test_full_lookup(self):
        builder = ContextBuilder(ContextProviders.full(FakeProgress(), FakeCatalog()))

        context = await builder.build(student_request(course_id="c1", current_page="/courses/c1"))

        assert context.user_progress == {"progressPercentage": 40}
        assert context.course_info == {"title": "Intro to Python"}
        assert context.current_page == "/courses/c1"

    @pytest.mark.asyncio
    async def test_course_id_carried_forward(self):
        catalog = FakeCatalog()
        builder = ContextBuilder(ContextProviders.course_only(catalog))

        context = await builder.build(student_request(), {"courseId": "c1", "currentPage": "/home"})

        assert context.course_id == "c1"
        assert context.current_page == "/home"
        assert catalog.calls == ["c1"]

    @pytest.mark.asyncio
    async def test_request_wins_over_prior(self):
        builder = ContextBuilder(ContextProviders.none())

        context = await builder.build(student_request(course_id="c2"), {"courseId": "c1"})

        assert context.course_id == "c2"

    @pytest.mark.asyncio
    async def test_failing_lookup_leaves_field_empty(self):
        builder = ContextBuilder(ContextProviders.full(
            FakeProgress(error=ConnectionError("refused")),
            FakeCatalog(),
        ))

        context = await builder.build(student_request(course_id="c1"))

        assert context.user_progress is None
        assert context.course_info == {"title": "Intro to Python"}

    @pytest.mark.asyncio
    async def test_lookups_run_concurrently(self):
        started = []
        release = asyncio.Event()

        class SlowProgress:
            async def get_user_course_progress(self, user_id, course_id):
                started.append("progress")
                await release.wait()
                return {"progressPercentage": 10}

        class SlowCatalog:
            async def get_course_by_id(self, course_id):
                started.append("course")
                if len(started) == 2:
                    release.set()
                await release.wait()
                return {"title": "Concurrency"}

        builder = ContextBuilder(ContextProviders.full(SlowProgress(), SlowCatalog()))

        context = await asyncio.wait_for(builder.build(student_request(course_id="c1")), timeout=2)

        assert sorted(started) == ["course", "progress"]
        assert context.course_info == {"title": "Concurrency"}

    @pytest.mark.asyncio
    async def test_snapshot_excludes_identity(self):
        builder = ContextBuilder(ContextProviders.none())

        context = await builder.build(student_request(course_id="c1"))
        snapshot = context.snapshot()

        assert "userId" not in snapshot
        assert snapshot["courseId"] == "c1"
        assert context.to_dict()["role"] == "student"
