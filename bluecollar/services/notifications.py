"""In-app notifications plus the booking-flow helpers that create them.

Helpers only ``add`` rows to the session; the caller owns the commit so the
notification lands in the same transaction as the state change it reports.
Email copies wait on the session until that commit goes through.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import event, func, select as sa_select, update as sa_update
from sqlalchemy.orm import Session
from sqlalchemy.ext.asyncio import AsyncSession

from bluecollar.config import settings
from bluecollar.metrics import NOTIF_CREATED
from bluecollar.models.models import (
    Booking,
    ClientProfile,
    Notification,
    NotificationType,
    Payment,
    ProviderProfile,
    Service,
    User,
)

logger = logging.getLogger(__name__)


@dataclass
class BookingParties:
    booking: Booking
    service: Optional[Service]
    client: ClientProfile
    client_user: User
    provider: ProviderProfile
    provider_user: User

    @property
    def service_title(self) -> str:
        return self.service.title if self.service else "your service"


async def load_parties(db: AsyncSession, booking: Booking) -> BookingParties:
    client, client_user = (
        await db.execute(
            sa_select(ClientProfile, User).join(User, User.id == ClientProfile.user_id).where(ClientProfile.id == booking.client_id)
        )
    ).one()
    provider, provider_user = (
        await db.execute(
            sa_select(ProviderProfile, User).join(User, User.id == ProviderProfile.user_id).where(ProviderProfile.id == booking.provider_id)
        )
    ).one()
    service = None
    if booking.service_id:
        service = (await db.execute(sa_select(Service).where(Service.id == booking.service_id))).scalars().first()
    return BookingParties(booking, service, client, client_user, provider, provider_user)


PENDING_EMAILS = "pending_emails"


def _queue_email(db: AsyncSession, to: Optional[str], template_name: str, subject: str, context: dict):
    """Hold an email copy on the session; it is sent once the transaction commits."""
    if not settings.EMAIL_NOTIFICATIONS_ENABLED or not to:
        return
    db.sync_session.info.setdefault(PENDING_EMAILS, []).append((to, template_name, subject, context))


@event.listens_for(Session, "after_commit")
def _send_pending_emails(session):
    pending = session.info.pop(PENDING_EMAILS, [])
    if not pending:
        return
    from bluecollar.notifications.tasks import send_notification_task

    for to, template_name, subject, context in pending:
        try:
            send_notification_task.delay(to, template_name, context=context, subject=subject)
        except Exception:
            # the in-app row is the source of truth; a broker outage only loses the copy
            logger.exception("Failed to queue %s email to %s", template_name, to)


@event.listens_for(Session, "after_rollback")
def _drop_pending_emails(session):
    session.info.pop(PENDING_EMAILS, None)


async def create_notification(
    db: AsyncSession,
    user_id: int,
    type_: str,
    title: str,
    message: str,
    booking_id: Optional[int] = None,
) -> Notification:
    notif = Notification(user_id=user_id, type=type_, title=title, message=message, booking_id=booking_id, read=False)
    db.add(notif)
    NOTIF_CREATED.labels(type=type_).inc()
    return notif


async def notify_new_booking(db: AsyncSession, booking: Booking, paid: bool = False) -> Notification:
    p = await load_parties(db, booking)
    distance = f"{booking.distance_km:.1f} km" if booking.distance_km is not None else "N/A"
    if paid:
        title = "New Paid Booking Request!"
        message = f"You have a new booking request for {p.service_title} from {p.client.name}. Payment has been secured. Distance: {distance}"
    else:
        title = "New Booking Request!"
        message = f"You have a new booking request for {p.service_title} from {p.client.name}. Distance: {distance}"
    _queue_email(
        db,
        p.provider_user.email,
        "booking_created.txt",
        title,
        {
            "name": p.provider.name,
            "service_title": p.service_title,
            "client_name": p.client.name,
            "distance_km": booking.distance_km,
            "date": booking.date.isoformat() if booking.date else "",
        },
    )
    return await create_notification(db, p.provider_user.id, NotificationType.BOOKING_CREATED, title, message, booking.id)


async def notify_booking_accepted(db: AsyncSession, booking: Booking) -> Notification:
    p = await load_parties(db, booking)
    _queue_email(
        db,
        p.client_user.email,
        "booking_accepted.txt",
        "Booking Accepted!",
        {"name": p.client.name, "provider_name": p.provider.name, "service_title": p.service_title},
    )
    return await create_notification(
        db,
        p.client_user.id,
        NotificationType.BOOKING_ACCEPTED,
        "Booking Accepted!",
        f"{p.provider.name} has accepted your booking for {p.service_title}. They will contact you soon.",
        booking.id,
    )


async def notify_booking_completed(db: AsyncSession, booking: Booking) -> Notification:
    p = await load_parties(db, booking)
    _queue_email(
        db,
        p.client_user.email,
        "booking_completed.txt",
        "Service Completed!",
        {"name": p.client.name, "service_title": p.service_title},
    )
    return await create_notification(
        db,
        p.client_user.id,
        NotificationType.BOOKING_COMPLETED,
        "Service Completed!",
        f"Your {p.service_title} service has been completed. Please leave a review!",
        booking.id,
    )


async def notify_booking_cancelled(db: AsyncSession, booking: Booking, cancelled_by: int) -> Notification:
    """Tell the party that did *not* cancel."""
    p = await load_parties(db, booking)
    if cancelled_by == p.client_user.id:
        recipient, name = p.provider_user, p.provider.name
    else:
        recipient, name = p.client_user, p.client.name
    _queue_email(
        db,
        recipient.email,
        "booking_cancelled.txt",
        "Booking Cancelled",
        {"name": name, "service_title": p.service_title, "reason": booking.cancel_reason},
    )
    message = f"The booking for {p.service_title} was cancelled."
    if booking.cancel_reason:
        message += f" Reason: {booking.cancel_reason}"
    return await create_notification(db, recipient.id, NotificationType.BOOKING_CANCELLED, "Booking Cancelled", message, booking.id)


async def notify_payment_received(db: AsyncSession, booking: Booking, payment: Payment) -> Notification:
    p = await load_parties(db, booking)
    _queue_email(
        db,
        p.client_user.email,
        "payment_received.txt",
        "Payment Received",
        {"name": p.client.name, "amount": str(payment.amount), "currency": payment.currency, "service_title": p.service_title},
    )
    return await create_notification(
        db,
        p.client_user.id,
        NotificationType.PAYMENT_RECEIVED,
        "Payment Received",
        f"Payment of {payment.currency} {payment.amount} for {p.service_title} received. The provider has been notified.",
        booking.id,
    )


async def notify_provider_verification(db: AsyncSession, provider: ProviderProfile, approved: bool, reason: Optional[str] = None) -> Notification:
    user = (await db.execute(sa_select(User).where(User.id == provider.user_id))).scalars().first()
    if approved:
        type_, title = NotificationType.PROVIDER_VERIFIED, "Account Approved"
        message = "Your provider account has been approved. Your services are now visible to clients."
        template = "provider_verified.txt"
    else:
        type_, title = NotificationType.PROVIDER_REJECTED, "Verification Rejected"
        message = "Your provider application was not approved. You can resubmit your documents."
        if reason:
            message += f" Reason: {reason}"
        template = "provider_rejected.txt"
    _queue_email(db, user.email if user else None, template, title, {"name": provider.name, "reason": reason})
    return await create_notification(db, provider.user_id, type_, title, message)


async def list_for_user(db: AsyncSession, user_id: int, unread_only: bool = False) -> List[Notification]:
    stmt = sa_select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        stmt = stmt.where(Notification.read.is_(False))
    stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc())
    return list((await db.execute(stmt)).scalars().all())


async def unread_count(db: AsyncSession, user_id: int) -> int:
    stmt = sa_select(func.count(Notification.id)).where(Notification.user_id == user_id, Notification.read.is_(False))
    return (await db.execute(stmt)).scalar_one()


async def mark_read(db: AsyncSession, notification_id: int, user_id: int) -> Optional[Notification]:
    notif = (await db.execute(sa_select(Notification).where(Notification.id == notification_id))).scalars().first()
    if not notif or notif.user_id != user_id:
        return None
    notif.read = True
    await db.commit()
    await db.refresh(notif)
    return notif


async def mark_all_read(db: AsyncSession, user_id: int) -> int:
    res = await db.execute(
        sa_update(Notification).where(Notification.user_id == user_id, Notification.read.is_(False)).values(read=True)
    )
    await db.commit()
    return res.rowcount
