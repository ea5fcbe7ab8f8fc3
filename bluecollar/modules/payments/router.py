from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from bluecollar.auth.deps import get_current_user, role_required
from bluecollar.db.session import get_session
from bluecollar.errors import to_http
from bluecollar.models.models import PaymentStatus, Role, User
from bluecollar.schemas.payment import (
    CreateOrderRequest,
    CreateOrderResponse,
    PaymentOut,
    RefundRequest,
    VerifyPaymentRequest,
    WebhookAck,
)
from bluecollar.services import payments as payment_service
from bluecollar.services.audit import client_ip, log_audit
from bluecollar.services.bookings import BookingError
from bluecollar.services.payment_gateway import PaymentError

router = APIRouter(tags=["payments"])


@router.post("/create-order", response_model=CreateOrderResponse)
async def create_order(req: CreateOrderRequest, current_user: User = Depends(role_required([Role.CLIENT])), db: AsyncSession = Depends(get_session)):
    try:
        payment, checkout = await payment_service.create_order(db, req.booking_id, current_user, req.gateway)
    except (BookingError, PaymentError) as exc:
        raise to_http(exc)
    return CreateOrderResponse(
        payment_id=payment.id,
        gateway=payment.gateway,
        order_id=payment.gateway_order_id,
        amount=float(payment.amount),
        currency=payment.currency,
        checkout=checkout,
    )


@router.post("/verify", response_model=PaymentOut)
async def verify_payment(req: VerifyPaymentRequest, current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_session)):
    try:
        return await payment_service.verify_payment(db, current_user, req.gateway, req.order_id, req.payment_id, req.signature)
    except (BookingError, PaymentError) as exc:
        raise to_http(exc)


@router.post("/webhook/{gateway}", response_model=WebhookAck)
async def payment_webhook(gateway: str, request: Request, db: AsyncSession = Depends(get_session)):
    body = await request.body()
    headers = {k.lower(): v for k, v in request.headers.items()}
    try:
        processed = await payment_service.handle_webhook(db, gateway, headers, body)
    except PaymentError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return WebhookAck(received=True, processed=processed)


@router.get("/booking/{booking_id}", response_model=PaymentOut)
async def booking_payment(booking_id: int, current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_session)):
    try:
        payment = await payment_service.payment_for_user(db, booking_id, current_user)
    except BookingError as exc:
        raise to_http(exc)
    if not payment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment not found")
    return payment


@router.get("/status/{order_id}")
async def payment_status(order_id: str, current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_session)):
    payment = await payment_service.get_by_order_id(db, order_id)
    if not payment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment not found")
    try:
        # parties and admins only
        await payment_service.payment_for_user(db, payment.booking_id, current_user)
    except BookingError as exc:
        raise to_http(exc)
    return {
        "order_id": order_id,
        "status": payment.status,
        "amount": float(payment.amount),
        "currency": payment.currency,
        "booking_id": payment.booking_id,
        "paid_at": payment.paid_at,
    }


@router.get("/admin/all", dependencies=[Depends(role_required([Role.ADMIN]))])
async def all_payments(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: str = Query(None, alias="status"),
    db: AsyncSession = Depends(get_session),
):
    if status_filter and status_filter not in PaymentStatus.ALL:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unknown payment status")
    items, total = await payment_service.list_payments(db, page, limit, status_filter)
    return {
        "data": [PaymentOut.model_validate(p) for p in items],
        "pagination": {"page": page, "limit": limit, "total": total, "total_pages": (total + limit - 1) // limit},
    }


@router.post("/admin/refund/{payment_id}")
async def refund_payment(
    payment_id: int,
    request: Request,
    req: RefundRequest = None,
    current_user: User = Depends(role_required([Role.ADMIN])),
    db: AsyncSession = Depends(get_session),
):
    reason = (req.reason if req else None) or "Refund by admin"
    try:
        payment, result = await payment_service.refund(db, payment_id, reason)
    except PaymentError as exc:
        raise to_http(exc)
    await log_audit(
        db,
        actor_id=current_user.id,
        action="refund_payment",
        object_type="payment",
        object_id=str(payment.id),
        detail={"reason": reason, "refund": result},
        ip_address=client_ip(request),
    )
    await db.commit()
    return {"payment": PaymentOut.model_validate(payment), "refund": result}


@router.get("/admin/stats", dependencies=[Depends(role_required([Role.ADMIN]))])
async def stats(db: AsyncSession = Depends(get_session)):
    return await payment_service.payment_stats(db)
