import asyncio
import json

import redis
from celery.utils.log import get_task_logger

from bluecollar.celery_app import celery_app
from bluecollar.config import settings
from bluecollar.metrics import EMAIL_RETRIED
from bluecollar.services.notification_providers import get_provider
from bluecollar.services.notification_service import NotificationService

logger = get_task_logger(__name__)

DLQ_KEY = "notification_dlq"


def _push_dead_letter(payload: dict):
    client = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)
    client.rpush(DLQ_KEY, json.dumps(payload, default=str))


@celery_app.task(bind=True, max_retries=3)
def send_notification_task(self, to: str, template_name: str, context: dict = None, locale: str = "en", provider_name: str = "log", subject: str = ""):
    """Email the rendered copy of a notification.

    Retries with exponential backoff; once retries are exhausted the payload
    is parked on the Redis dead-letter list.
    """
    context = context or {}
    svc = NotificationService(provider=get_provider(provider_name))
    try:
        return asyncio.run(svc.send_email(to=to, subject=subject, template_name=template_name, context=context, locale=locale))
    except Exception as exc:
        if self.request.retries >= self.max_retries:
            logger.error("Max retries exceeded for email to %s; sending to DLQ", to)
            _push_dead_letter({"to": to, "template": template_name, "subject": subject, "context": context, "locale": locale})
            raise
        EMAIL_RETRIED.labels(provider=provider_name).inc()
        logger.warning("Error sending email to %s: %s", to, exc)
        raise self.retry(exc=exc, countdown=min(600, 2 ** self.request.retries * 10))
