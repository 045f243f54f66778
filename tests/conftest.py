# ============================================================================
# Test Configuration & Fixtures
# ============================================================================
import os

# Settings are cached on first use, so the environment is set before any
# learnlab_chatbot import
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["GEMINI_API_KEY"] = ""
os.environ["PLATFORM_API_URL"] = ""
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-chatbot-tests"

import asyncio
import random
import pytest
from typing import AsyncGenerator, List
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from learnlab_chatbot.config import get_settings
from learnlab_chatbot.core.database import Base, get_db
from learnlab_chatbot.core.security import create_access_token
import learnlab_chatbot.models  # noqa: F401  registers the chatbot tables
from learnlab_chatbot.services.chatbot import (
    ContextProviders,
    ConversationStore,
    SessionLockRegistry,
    build_chatbot_components,
)

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class StubBackend:
    """Generative backend double that records every call"""

    def __init__(self, reply: str = "Refunds are handled from your order history page.",
                 error: Exception = None, delay: float = 0):
        self.reply = reply
        self.error = error
        self.delay = delay
        self.calls: List[dict] = []

    async def complete(self, messages, settings):
        self.calls.append({"messages": list(messages), "settings": settings})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture(scope="function")
async def engine():
    """Fresh in-memory database for each test"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def stub_backend():
    return StubBackend()


@pytest.fixture
def store(db_session):
    return ConversationStore(db_session, locks=SessionLockRegistry())


@pytest.fixture
def components(settings, stub_backend):
    return build_chatbot_components(
        settings,
        backend=stub_backend,
        providers=ContextProviders.none(),
        rng=random.Random(42),
    )


@pytest.fixture
def orchestrator(components, db_session):
    return components.orchestrator(db_session)


@pytest.fixture(scope="function")
async def client(components, db_session) -> AsyncGenerator[AsyncClient, None]:
    """Test client with the chatbot and database overridden"""
    from learnlab_chatbot.main import app

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.state.chatbot = components

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    del app.state.chatbot


def auth_headers(user_id: str, role: str) -> dict:
    token = create_access_token({"sub": user_id, "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def student_headers():
    return auth_headers("student-1", "student")


@pytest.fixture
def other_student_headers():
    return auth_headers("student-2", "student")


@pytest.fixture
def instructor_headers():
    return auth_headers("instructor-1", "instructor")


@pytest.fixture
def admin_headers():
    return auth_headers("admin-1", "admin")
