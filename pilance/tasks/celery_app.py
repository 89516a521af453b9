from celery import Celery
from celery.schedules import crontab

from pilance.config import settings

app = Celery(
    "pilance",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
)

app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_routes={
        "pilance.tasks.escrow_tasks.*": {"queue": "escrow"},
    },
    beat_schedule={
        "reconcile-escrow-holds": {
            "task": "pilance.tasks.escrow_tasks.reconcile_escrow_holds",
            "schedule": crontab(minute="*/10"),  # every 10 minutes
        },
    },
)

app.autodiscover_tasks(["pilance.tasks.escrow_tasks"])
