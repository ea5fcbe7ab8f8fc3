from celery import Celery
from bluecollar.config import settings


celery_app = Celery(
    "bluecollar_tasks",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["bluecollar.notifications.tasks"],
)

celery_app.conf.update(task_track_started=True)
