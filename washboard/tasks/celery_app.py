from datetime import timedelta
import os

from celery import Celery

from washboard.core.config import settings

broker_url = os.getenv("CELERY_BROKER_URL", "redis://redis:6379/0")
result_backend = os.getenv("CELERY_RESULT_BACKEND", "redis://redis:6379/1")

celery_app = Celery(
    "washboard",
    broker=broker_url,
    backend=result_backend,
    include=["washboard.tasks.cleanup"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    beat_schedule={
        "prune-expired-magic-links": {
            "task": "magic_links.prune_expired",
            "schedule": timedelta(minutes=settings.magic_link_prune_interval_minutes),
        },
    },
)
