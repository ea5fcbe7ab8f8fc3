"""Payment orders, verification, webhooks and refunds.

Every state change here ends in a single commit that covers the payment row,
the booking transition and the notifications it triggers.
"""
import json
import logging
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Optional, Tuple

from sqlalchemy import func, select as sa_select, update as sa_update
from sqlalchemy.ext.asyncio import AsyncSession

from bluecollar.config import settings
from bluecollar.metrics import PAYMENT_FAILURE, PAYMENT_REFUNDS, PAYMENT_SUCCESS
from bluecollar.models.models import Booking, BookingStatus, ClientProfile, Payment, PaymentStatus, Role, User
from bluecollar.services import bookings as booking_service
from bluecollar.services import notifications
from bluecollar.services.payment_gateway import (
    FAILED,
    PAID,
    PaymentError,
    RazorpayAdapter,
    get_adapter,
    mark_event_processed,
    release_event,
)
from bluecollar.services.pricing import split_commission, to_money

logger = logging.getLogger(__name__)


class PaymentNotFound(PaymentError):
    pass


def _now() -> datetime:
    return datetime.now(timezone.utc)


def order_reference(booking: Booking, gateway: str) -> str:
    ts = int(time.time())
    if gateway == "cashfree":
        return f"BLC_{booking.id}_{ts}"
    return f"booking_{booking.id}_{ts}"


async def get_by_order_id(db: AsyncSession, order_id: str) -> Optional[Payment]:
    return (await db.execute(sa_select(Payment).where(Payment.gateway_order_id == order_id))).scalars().first()


async def _booking_client_user(db: AsyncSession, booking: Booking) -> Tuple[ClientProfile, User]:
    return (
        await db.execute(
            sa_select(ClientProfile, User).join(User, User.id == ClientProfile.user_id).where(ClientProfile.id == booking.client_id)
        )
    ).one()


async def create_order(db: AsyncSession, booking_id: int, user: User, gateway: str) -> Tuple[Payment, Dict]:
    adapter = get_adapter(gateway)
    booking = await booking_service.get_booking(db, booking_id)
    client, client_user = await _booking_client_user(db, booking)
    if client_user.id != user.id:
        raise booking_service.BookingForbidden("Only the booking's client can pay for it")
    if booking.status != BookingStatus.PENDING_PAYMENT:
        raise PaymentError("Booking is not awaiting payment")

    amount = to_money(booking.total_amount)
    if amount < Decimal(str(settings.PAYMENT_MIN_AMOUNT)) or amount > Decimal(str(settings.PAYMENT_MAX_AMOUNT)):
        raise PaymentError(
            f"Amount must be between {settings.PAYMENT_MIN_AMOUNT} and {settings.PAYMENT_MAX_AMOUNT} {settings.PAYMENT_CURRENCY}"
        )

    payment = await booking_service.payment_for(db, booking.id)
    if payment and payment.status == PaymentStatus.PAID:
        raise PaymentError("Booking is already paid")

    checkout = await adapter.create_order(
        order_reference(booking, adapter.gateway_name),
        amount,
        settings.PAYMENT_CURRENCY,
        customer={
            "customer_id": f"client_{client.id}",
            "customer_name": client.name,
            "customer_email": client_user.email,
            "customer_phone": client_user.phone or "9999999999",
        },
        notes={"booking_id": str(booking.id), "note": f"Payment for booking {booking.id}"},
    )

    if payment is None:
        payment = Payment(booking_id=booking.id)
        db.add(payment)
    # a retry after a failed attempt reuses the row with a fresh order
    payment.amount = amount
    payment.currency = settings.PAYMENT_CURRENCY
    payment.status = PaymentStatus.PENDING
    payment.gateway = adapter.gateway_name
    payment.method = adapter.method
    payment.gateway_order_id = checkout["gateway_order_id"]
    payment.transaction_id = None
    payment.signature = None
    payment.commission = Decimal("0")
    payment.provider_amount = Decimal("0")
    await db.commit()
    await db.refresh(payment)
    logger.info("payment order created booking=%s gateway=%s order=%s", booking.id, adapter.gateway_name, payment.gateway_order_id)
    return payment, checkout


async def mark_paid(
    db: AsyncSession,
    payment: Payment,
    transaction_id: Optional[str] = None,
    method: Optional[str] = None,
    signature: Optional[str] = None,
) -> Payment:
    """Record a successful charge and confirm the booking. Does not commit.

    Verify and webhook calls for the same order can race; the PAID write is a
    conditional UPDATE and only the call that flips the row goes on to
    confirm the booking.
    """
    commission, provider_amount = split_commission(payment.amount)
    values = {
        "status": PaymentStatus.PAID,
        "commission": commission,
        "provider_amount": provider_amount,
        "paid_at": _now(),
    }
    if transaction_id:
        values["transaction_id"] = transaction_id
    if signature:
        values["signature"] = signature
    if method:
        values["method"] = method.upper()
    res = await db.execute(
        sa_update(Payment)
        .where(Payment.id == payment.id, Payment.status.in_([PaymentStatus.PENDING, PaymentStatus.FAILED]))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(payment)
    if res.rowcount != 1:
        logger.info("payment %s already settled as %s", payment.id, payment.status)
        return payment

    booking = await booking_service.get_booking(db, payment.booking_id)
    if await booking_service.confirm_after_payment(db, booking):
        await notifications.notify_payment_received(db, booking, payment)
    else:
        # paid for a booking that moved on meanwhile; the reconciliation report lists these
        logger.warning("payment %s captured for booking %s in status %s", payment.id, booking.id, booking.status)
    PAYMENT_SUCCESS.labels(gateway=payment.gateway or "unknown").inc()
    return payment


async def mark_failed(db: AsyncSession, payment: Payment, transaction_id: Optional[str] = None) -> Payment:
    """Flag a failed attempt. The booking stays in PENDING_PAYMENT so the client can retry.

    A charge that already settled is left alone. Does not commit.
    """
    values = {"status": PaymentStatus.FAILED}
    if transaction_id:
        values["transaction_id"] = transaction_id
    res = await db.execute(
        sa_update(Payment)
        .where(Payment.id == payment.id, Payment.status == PaymentStatus.PENDING)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(payment)
    if res.rowcount == 1:
        PAYMENT_FAILURE.labels(gateway=payment.gateway or "unknown").inc()
    return payment


async def verify_payment(
    db: AsyncSession,
    user: User,
    gateway: Optional[str],
    order_id: str,
    payment_id: Optional[str] = None,
    signature: Optional[str] = None,
) -> Payment:
    payment = await get_by_order_id(db, order_id)
    if not payment:
        raise PaymentNotFound("Payment not found")
    # the order decides how it is verified, never the caller
    if gateway and gateway.lower() != payment.gateway:
        raise PaymentError(f"Order {order_id} was not created on {gateway}")
    adapter = get_adapter(payment.gateway)
    booking = await booking_service.get_booking(db, payment.booking_id)
    _, client_user = await _booking_client_user(db, booking)
    if client_user.id != user.id and user.role != Role.ADMIN:
        raise booking_service.BookingForbidden("Unauthorized to verify this payment")
    if payment.status == PaymentStatus.PAID:
        raise PaymentError("Payment already verified")

    if isinstance(adapter, RazorpayAdapter):
        if not payment_id or not adapter.verify_checkout(order_id, payment_id, signature):
            await mark_failed(db, payment, payment_id)
            await db.commit()
            raise PaymentError("Invalid payment signature")
        await mark_paid(db, payment, transaction_id=payment_id, signature=signature)
    else:
        result = await adapter.fetch_status(order_id)
        if result.outcome == FAILED:
            await mark_failed(db, payment, result.transaction_id)
            await db.commit()
            raise PaymentError("Payment failed at the gateway")
        if result.outcome != PAID:
            raise PaymentError("Payment not completed yet")
        await mark_paid(db, payment, transaction_id=result.transaction_id, method=result.method)

    await db.commit()
    await db.refresh(payment)
    logger.info("payment verified order=%s booking=%s", order_id, payment.booking_id)
    return payment


async def handle_webhook(db: AsyncSession, gateway: str, headers: Dict[str, str], body: bytes) -> bool:
    """Apply a gateway notification. Returns False for replays and unknown orders."""
    adapter = get_adapter(gateway)
    if not adapter.verify_webhook(headers, body):
        raise PaymentError("Invalid signature")
    try:
        payload = json.loads(body or b"{}")
    except ValueError as exc:
        raise PaymentError("Malformed webhook body") from exc

    event = adapter.parse_webhook(headers, payload)
    if not event.event_id:
        raise PaymentError("Missing event id for idempotency")

    # set-if-absent in redis: whoever gets the key applies the event
    if not await mark_event_processed(adapter.gateway_name, str(event.event_id)):
        logger.info("duplicate %s webhook %s ignored", adapter.gateway_name, event.event_id)
        return False

    try:
        payment = await get_by_order_id(db, event.order_id) if event.order_id else None
        if not payment:
            logger.warning("%s webhook for unknown order %s", adapter.gateway_name, event.order_id)
            return False
        if event.outcome == PAID:
            await mark_paid(db, payment, transaction_id=event.transaction_id, method=event.method)
        elif event.outcome == FAILED:
            await mark_failed(db, payment, event.transaction_id)
        else:
            return False
        await db.commit()
    except Exception:
        # let the gateway's retry through
        await release_event(adapter.gateway_name, str(event.event_id))
        raise
    return True


async def refund(db: AsyncSession, payment_id: int, reason: str = "Refund by admin") -> Tuple[Payment, Dict]:
    payment = (await db.execute(sa_select(Payment).where(Payment.id == payment_id))).scalars().first()
    if not payment:
        raise PaymentNotFound("Payment not found")
    if payment.status != PaymentStatus.PAID:
        raise PaymentError("Only PAID payments can be refunded")

    if payment.gateway:
        result = await get_adapter(payment.gateway).refund(payment.gateway_order_id, payment.transaction_id, to_money(payment.amount), reason)
    else:
        # cash collected in person; nothing to call
        result = {"refund_id": None, "amount": float(payment.amount), "status": "manual"}

    payment.status = PaymentStatus.REFUNDED
    booking = await booking_service.get_booking(db, payment.booking_id)
    if booking.status != BookingStatus.CANCELLED:
        booking_service.set_status(booking, BookingStatus.CANCELLED)
        booking.cancel_reason = reason
    PAYMENT_REFUNDS.labels(gateway=payment.gateway or "cash").inc()
    await db.commit()
    await db.refresh(payment)
    logger.info("payment %s refunded (booking %s)", payment.id, payment.booking_id)
    return payment, result


async def payment_for_user(db: AsyncSession, booking_id: int, user: User) -> Optional[Payment]:
    booking = await booking_service.get_booking_for_user(db, booking_id, user)
    return await booking_service.payment_for(db, booking.id)


async def list_payments(db: AsyncSession, page: int = 1, limit: int = 20, status: Optional[str] = None):
    stmt = sa_select(Payment)
    count_stmt = sa_select(func.count(Payment.id))
    if status:
        stmt = stmt.where(Payment.status == status)
        count_stmt = count_stmt.where(Payment.status == status)
    total = (await db.execute(count_stmt)).scalar_one()
    stmt = stmt.order_by(Payment.created_at.desc(), Payment.id.desc()).offset((page - 1) * limit).limit(limit)
    return list((await db.execute(stmt)).scalars().all()), total


async def payment_stats(db: AsyncSession) -> Dict:
    paid = (
        await db.execute(
            sa_select(
                func.count(Payment.id),
                func.coalesce(func.sum(Payment.amount), 0),
                func.coalesce(func.sum(Payment.commission), 0),
            ).where(Payment.status == PaymentStatus.PAID)
        )
    ).one()
    count, revenue, commission = paid
    rows = (await db.execute(sa_select(Payment.status, func.count(Payment.id)).group_by(Payment.status))).all()
    revenue = to_money(revenue)
    return {
        "total_revenue": float(revenue),
        "total_commission": float(to_money(commission)),
        "total_transactions": count,
        "status_distribution": {s: n for s, n in rows},
        "average_transaction_value": float(to_money(revenue / count)) if count else 0.0,
    }
