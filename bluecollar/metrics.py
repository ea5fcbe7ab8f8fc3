from prometheus_client import Counter, Gauge
from bluecollar.redis_client import redis_client
from typing import List
import asyncio

# Notification DLQ depth
NOTIF_DLQ_DEPTH = Gauge("bluecollar_notification_dlq_depth", "Redis DLQ list length for notifications")

# Payment metrics
PAYMENT_SUCCESS = Counter("bluecollar_payments_success_total", "Successful payments processed", ["gateway"])
PAYMENT_FAILURE = Counter("bluecollar_payments_failure_total", "Failed payments", ["gateway"])
PAYMENT_REFUNDS = Counter("bluecollar_payments_refunded_total", "Payments refunded by an admin", ["gateway"])

# Booking lifecycle
BOOKING_TRANSITIONS = Counter("bluecollar_booking_transitions_total", "Booking status transitions", ["status"])

# In-app notifications written to the database
NOTIF_CREATED = Counter("bluecollar_inapp_notifications_total", "In-app notifications created", ["type"])

# Email copies delivered by the notification task
EMAIL_SENT = Counter("bluecollar_notification_emails_sent_total", "Notification emails sent", ["provider"])
EMAIL_FAILED = Counter("bluecollar_notification_emails_failed_total", "Notification email delivery failures", ["provider"])
EMAIL_RETRIED = Counter("bluecollar_notification_emails_retried_total", "Notification email retries", ["provider"])


async def update_queue_depth(keys: List[str] = None):
    """Update queue depth gauges by measuring Redis list lengths for configured keys."""
    keys = keys or ["notification_dlq"]

    async def _get_len(k):
        try:
            return await redis_client.llen(k)
        except Exception:
            return 0

    results = await asyncio.gather(*[_get_len(k) for k in keys])
    # currently map first key to NOTIF_DLQ_DEPTH
    if results:
        NOTIF_DLQ_DEPTH.set(results[0])
