# ============================================================================
# Celery Application Configuration
# ============================================================================
from celery import Celery
from celery.schedules import crontab
from learnlab_chatbot.config import get_settings

settings = get_settings()

celery_app = Celery(
    "learnlab_chatbot",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=[
        "learnlab_chatbot.tasks.cleanup_tasks"
    ]
)

# Celery Configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=30 * 60,  # 30 minutes
    worker_prefetch_multiplier=1,
    task_acks_late=True,
)

# Beat Schedule (Periodic Tasks)
celery_app.conf.beat_schedule = {
    # Deactivate idle chatbot conversations (daily, 3 AM UTC)
    "daily-chatbot-cleanup": {
        "task": "learnlab_chatbot.tasks.cleanup_tasks.expire_stale_conversations",
        "schedule": crontab(hour=3, minute=0),
    },
}
