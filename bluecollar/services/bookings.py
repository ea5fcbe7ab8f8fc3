"""Booking lifecycle.

Bookings paid online start in PENDING_PAYMENT and stay hidden from the
provider until the payment gateway confirms the charge; cash bookings start
in PENDING and go straight to the provider.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import or_, select as sa_select, update as sa_update
from sqlalchemy.ext.asyncio import AsyncSession

from bluecollar.config import settings
from bluecollar.metrics import BOOKING_TRANSITIONS
from bluecollar.models.models import (
    Booking,
    BookingStatus,
    ClientAddress,
    ClientProfile,
    Payment,
    PaymentStatus,
    ProviderProfile,
    Role,
    Service,
    User,
    VerificationStatus,
)
from bluecollar.schemas.booking import BookingCreate, PaymentMethod
from bluecollar.services import notifications
from bluecollar.services.pricing import distance_between, split_commission

logger = logging.getLogger(__name__)


class BookingError(Exception):
    """Business rule violation on a booking."""


class BookingNotFound(BookingError):
    pass


class BookingForbidden(BookingError):
    pass


S = BookingStatus

TRANSITIONS = {
    S.PENDING_PAYMENT: {S.ACCEPTED, S.CANCELLED},
    S.PENDING: {S.ACCEPTED, S.CANCELLED},
    S.ACCEPTED: {S.IN_PROGRESS, S.COMPLETED, S.CANCELLED},
    S.IN_PROGRESS: {S.COMPLETED},
    S.COMPLETED: set(),
    S.CANCELLED: set(),
}

# states only the provider (or an admin) may move a booking into
PROVIDER_ONLY = {S.ACCEPTED, S.IN_PROGRESS, S.COMPLETED}

TIMESTAMP_FIELDS = {
    S.ACCEPTED: "accepted_at",
    S.IN_PROGRESS: "started_at",
    S.COMPLETED: "completed_at",
    S.CANCELLED: "cancelled_at",
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, set())


def check_transition(current: str, target: str, actor: str) -> None:
    """Validate a manual status change by ``actor`` ('client', 'provider' or 'admin')."""
    if target not in S.ALL:
        raise BookingError(f"Unknown booking status: {target}")
    if not can_transition(current, target):
        raise BookingError(f"Cannot change booking status from {current} to {target}")
    if current == S.PENDING_PAYMENT and target == S.ACCEPTED:
        raise BookingError("Booking is awaiting payment")
    if target in PROVIDER_ONLY and actor == "client":
        raise BookingForbidden(f"Only the provider can mark a booking as {target}")


def never_paid(booking: Booking) -> bool:
    """True for an online booking whose payment was never confirmed."""
    return booking.payment_method == PaymentMethod.ONLINE.value and booking.accepted_at is None


# SQL form of ``not never_paid``: what a provider is allowed to see
VISIBLE_TO_PROVIDER = or_(Booking.payment_method != PaymentMethod.ONLINE.value, Booking.accepted_at.isnot(None))


def set_status(booking: Booking, target: str):
    booking.status = target
    field = TIMESTAMP_FIELDS.get(target)
    if field:
        setattr(booking, field, _now())
    BOOKING_TRANSITIONS.labels(status=target).inc()


async def create_booking(db: AsyncSession, client: ClientProfile, data: BookingCreate) -> Booking:
    service = (await db.execute(sa_select(Service).where(Service.id == data.service_id))).scalars().first()
    if not service:
        raise BookingNotFound("Service not found")
    if not service.is_active:
        raise BookingError("Service is not currently offered")

    provider = (await db.execute(sa_select(ProviderProfile).where(ProviderProfile.id == service.provider_id))).scalars().first()
    if not provider or not provider.verified or provider.verification_status != VerificationStatus.APPROVED:
        raise BookingError("Provider is not verified")
    if not provider.is_active:
        raise BookingError("Provider is currently unavailable")

    when = data.date if data.date.tzinfo else data.date.replace(tzinfo=timezone.utc)
    if when < _now():
        raise BookingError("Booking date must be in the future")

    address, lat, lon = data.client_address, data.client_latitude, data.client_longitude
    if data.address_id is not None:
        saved = (
            await db.execute(
                sa_select(ClientAddress).where(ClientAddress.id == data.address_id, ClientAddress.client_id == client.id)
            )
        ).scalars().first()
        if not saved:
            raise BookingNotFound("Address not found")
        address, lat, lon = saved.address, saved.latitude, saved.longitude

    online = data.payment_method == PaymentMethod.ONLINE
    booking = Booking(
        client_id=client.id,
        provider_id=provider.id,
        service_id=service.id,
        date=when,
        notes=data.notes,
        status=S.PENDING_PAYMENT if online else S.PENDING,
        payment_method=data.payment_method.value,
        total_amount=service.price,
        client_address=address,
        client_latitude=lat,
        client_longitude=lon,
        distance_km=distance_between(lat, lon, provider.latitude, provider.longitude),
    )
    db.add(booking)
    await db.flush()
    BOOKING_TRANSITIONS.labels(status=booking.status).inc()
    if not online:
        # cash bookings skip the payment gate
        await notifications.notify_new_booking(db, booking)
    await db.commit()
    await db.refresh(booking)
    logger.info("booking created id=%s status=%s", booking.id, booking.status)
    return booking


async def _party_ids(db: AsyncSession, booking: Booking):
    client_user_id = (await db.execute(sa_select(ClientProfile.user_id).where(ClientProfile.id == booking.client_id))).scalar_one()
    provider_user_id = (await db.execute(sa_select(ProviderProfile.user_id).where(ProviderProfile.id == booking.provider_id))).scalar_one()
    return client_user_id, provider_user_id


async def actor_for(db: AsyncSession, booking: Booking, user: User) -> str:
    """Which side of ``booking`` ``user`` is on; raises when it is neither."""
    client_user_id, provider_user_id = await _party_ids(db, booking)
    if user.id == provider_user_id:
        return "provider"
    if user.id == client_user_id:
        return "client"
    if user.role == Role.ADMIN:
        return "admin"
    raise BookingForbidden("Unauthorized to access this booking")


async def get_booking(db: AsyncSession, booking_id: int) -> Booking:
    booking = (await db.execute(sa_select(Booking).where(Booking.id == booking_id))).scalars().first()
    if not booking:
        raise BookingNotFound("Booking not found")
    return booking


async def get_booking_for_user(db: AsyncSession, booking_id: int, user: User) -> Booking:
    booking = await get_booking(db, booking_id)
    actor = await actor_for(db, booking, user)
    if actor == "provider" and never_paid(booking):
        # unpaid bookings do not exist as far as the provider is concerned,
        # including the ones the client abandoned
        raise BookingNotFound("Booking not found")
    return booking


async def update_status(db: AsyncSession, booking_id: int, user: User, target: str, reason: Optional[str] = None) -> Booking:
    booking = await get_booking_for_user(db, booking_id, user)
    actor = await actor_for(db, booking, user)
    check_transition(booking.status, target, actor)
    unpaid = booking.status == S.PENDING_PAYMENT

    set_status(booking, target)
    if target == S.CANCELLED:
        booking.cancel_reason = reason
        # the provider was never told about an unpaid booking
        if not (unpaid and actor == "client"):
            await notifications.notify_booking_cancelled(db, booking, cancelled_by=user.id)
    elif target == S.ACCEPTED:
        await notifications.notify_booking_accepted(db, booking)
    elif target == S.COMPLETED:
        await notifications.notify_booking_completed(db, booking)
        await record_cash_payment(db, booking)

    await db.commit()
    await db.refresh(booking)
    logger.info("booking %s -> %s by %s", booking.id, target, actor)
    return booking


async def confirm_after_payment(db: AsyncSession, booking: Booking) -> bool:
    """Move a paid booking to ACCEPTED and notify the provider.

    Returns False when the booking was not waiting for payment (already
    confirmed, cancelled, ...). The status change is a conditional UPDATE so
    concurrent confirmations cannot both win. Does not commit.
    """
    res = await db.execute(
        sa_update(Booking)
        .where(Booking.id == booking.id, Booking.status == S.PENDING_PAYMENT)
        .values(status=S.ACCEPTED, accepted_at=_now())
        .execution_options(synchronize_session=False)
    )
    await db.refresh(booking)
    if res.rowcount != 1:
        return False
    BOOKING_TRANSITIONS.labels(status=S.ACCEPTED).inc()
    await notifications.notify_new_booking(db, booking, paid=True)
    return True


async def list_for_client(db: AsyncSession, client_id: int) -> List[Booking]:
    stmt = sa_select(Booking).where(Booking.client_id == client_id).order_by(Booking.created_at.desc(), Booking.id.desc())
    return list((await db.execute(stmt)).scalars().all())


async def list_for_provider(db: AsyncSession, provider_id: int, status: Optional[str] = None) -> List[Booking]:
    stmt = (
        sa_select(Booking)
        .where(Booking.provider_id == provider_id, VISIBLE_TO_PROVIDER)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    if status:
        stmt = stmt.where(Booking.status == status)
    return list((await db.execute(stmt)).scalars().all())


async def payment_for(db: AsyncSession, booking_id: int) -> Optional[Payment]:
    return (await db.execute(sa_select(Payment).where(Payment.booking_id == booking_id))).scalars().first()


async def record_cash_payment(db: AsyncSession, booking: Booking) -> Optional[Payment]:
    """Book the commission split for a completed booking that was never paid online."""
    if await payment_for(db, booking.id):
        return None
    commission, provider_amount = split_commission(booking.total_amount)
    payment = Payment(
        booking_id=booking.id,
        amount=booking.total_amount,
        currency=settings.PAYMENT_CURRENCY,
        commission=commission,
        provider_amount=provider_amount,
        status=PaymentStatus.PAID,
        method="CASH",
        paid_at=_now(),
    )
    db.add(payment)
    return payment
