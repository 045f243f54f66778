# ============================================================================
# FastAPI Application Entry Point
# ============================================================================
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from learnlab_chatbot.config import get_settings
from learnlab_chatbot.core.exceptions import LearnLabException
from learnlab_chatbot.schemas.responses import HealthCheckResponse

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

settings = get_settings()
APP_VERSION = "1.0.0"

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown"""
    logger.info(f"🚀 Starting {settings.APP_NAME}...")

    from learnlab_chatbot.models.chatbot import ChatbotConversation, ChatbotMessage
    from learnlab_chatbot.core.database import engine, Base

    # Initialize database tables
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("✅ Database tables created/verified")
    except Exception as e:
        logger.error(f"❌ Database initialization failed: {e}")
        raise

    # Redis backs the course cache only (optional - continue if fails)
    course_cache = None
    try:
        from learnlab_chatbot.core.redis import cache
        await cache.ping()
        course_cache = cache
        logger.info("✅ Redis connected")
    except Exception as e:
        logger.warning(f"⚠️ Redis connection failed (non-critical): {e}")

    from learnlab_chatbot.services.chatbot import build_chatbot_components
    app.state.chatbot = build_chatbot_components(settings, cache=course_cache)
    logger.info("✅ Chatbot initialized")

    logger.info("🎉 Application started successfully!")

    yield

    # Shutdown
    logger.info("👋 Shutting down...")
    await app.state.chatbot.aclose()
    try:
        from learnlab_chatbot.core.redis import redis_client
        await redis_client.aclose()
    except Exception as e:
        logger.warning(f"Redis close failed: {e}")
    await engine.dispose()

app = FastAPI(
    title=settings.APP_NAME,
    description="Role-aware in-platform assistant for LearnLab students, instructors and admins",
    version=APP_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Exception Handler
@app.exception_handler(LearnLabException)
async def learnlab_exception_handler(request: Request, exc: LearnLabException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error_code": exc.error_code}
    )

# Health Check - Root level
@app.get("/")
async def root():
    return {
        "app": settings.APP_NAME,
        "status": "running",
        "docs": "/docs",
        "health": "/health"
    }

@app.get("/health", response_model=HealthCheckResponse)
async def health_check():
    return HealthCheckResponse(
        status="healthy",
        app=settings.APP_NAME,
        version=APP_VERSION,
        timestamp=datetime.now(timezone.utc),
    )

from learnlab_chatbot.api.v1.router import api_router
app.include_router(api_router, prefix=settings.API_V1_PREFIX)
logger.info(f"✅ API router mounted at {settings.API_V1_PREFIX}")
