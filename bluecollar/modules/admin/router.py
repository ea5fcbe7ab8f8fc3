from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel
from sqlalchemy import func, select as sa_select
from sqlalchemy.ext.asyncio import AsyncSession

from bluecollar.auth.deps import get_current_user, role_required
from bluecollar.db.session import get_session
from bluecollar.models.models import (
    Booking,
    BookingStatus,
    ClientProfile,
    Payment,
    PaymentStatus,
    ProviderProfile,
    Role,
    Service,
    User,
    VerificationStatus,
)
from bluecollar.schemas.booking import BookingOut
from bluecollar.schemas.payment import PaymentOut
from bluecollar.schemas.profile import ProviderProfileOut
from bluecollar.schemas.review import ReviewOut
from bluecollar.schemas.service import ServiceOut
from bluecollar.services import notifications
from bluecollar.services import reviews as review_service
from bluecollar.services.audit import client_ip, list_audit_logs, log_audit
from bluecollar.services.pricing import to_money

router = APIRouter(tags=["admin"], dependencies=[Depends(role_required([Role.ADMIN]))])

TIME_RANGES = {"7days": 7, "30days": 30, "90days": 90, "year": 365}


class VerifyProviderIn(BaseModel):
    approved: bool
    reason: Optional[str] = None


class UserStatusIn(BaseModel):
    is_active: bool


async def _audit(db: AsyncSession, user: User, request: Request, action: str, object_type: str, object_id=None, detail: dict = None):
    await log_audit(
        db,
        actor_id=user.id,
        action=action,
        object_type=object_type,
        object_id=str(object_id) if object_id is not None else None,
        detail=detail,
        ip_address=client_ip(request),
    )
    await db.commit()


async def _paginate(db: AsyncSession, stmt, count_stmt, page: int, limit: int):
    total = (await db.execute(count_stmt)).scalar_one()
    rows = (await db.execute(stmt.offset((page - 1) * limit).limit(limit))).scalars().all()
    return rows, {"page": page, "limit": limit, "total": total, "total_pages": (total + limit - 1) // limit}


def _user_dict(u: User) -> dict:
    return {
        "id": u.id,
        "email": u.email,
        "name": u.name,
        "phone": u.phone,
        "role": u.role,
        "is_active": u.is_active,
        "created_at": u.created_at,
    }


async def _count(db: AsyncSession, stmt) -> int:
    return (await db.execute(stmt)).scalar_one()


@router.get("/stats")
async def dashboard_stats(
    request: Request,
    time_range: str = "30days",
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    if time_range not in TIME_RANGES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"time_range must be one of {', '.join(TIME_RANGES)}")
    since = datetime.now(timezone.utc) - timedelta(days=TIME_RANGES[time_range])

    revenue = await _count(
        db,
        sa_select(func.coalesce(func.sum(Booking.total_amount), 0)).where(
            Booking.status == BookingStatus.COMPLETED, Booking.completed_at >= since
        ),
    )
    earnings = await _count(
        db,
        sa_select(func.coalesce(func.sum(Payment.commission), 0)).where(Payment.status == PaymentStatus.PAID, Payment.paid_at >= since),
    )
    out = {
        "time_range": time_range,
        "total_users": await _count(db, sa_select(func.count(User.id))),
        "total_providers": await _count(db, sa_select(func.count(ProviderProfile.id))),
        "active_providers": await _count(db, sa_select(func.count(ProviderProfile.id)).where(ProviderProfile.verified.is_(True))),
        "total_bookings": await _count(db, sa_select(func.count(Booking.id))),
        "pending_bookings": await _count(
            db, sa_select(func.count(Booking.id)).where(Booking.status.in_([BookingStatus.PENDING, BookingStatus.PENDING_PAYMENT]))
        ),
        "completed_bookings": await _count(db, sa_select(func.count(Booking.id)).where(Booking.status == BookingStatus.COMPLETED)),
        "total_revenue": float(to_money(revenue)),
        "platform_earnings": float(to_money(earnings)),
    }
    await _audit(db, current_user, request, "view_stats", "report", "stats", {"time_range": time_range})
    return out


@router.get("/recent-activities")
async def recent_activities(
    request: Request,
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    booking_rows = (
        await db.execute(
            sa_select(Booking, ClientProfile.name, Service.title)
            .join(ClientProfile, ClientProfile.id == Booking.client_id)
            .outerjoin(Service, Service.id == Booking.service_id)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .limit(limit)
        )
    ).all()
    users = (await db.execute(sa_select(User).order_by(User.created_at.desc(), User.id.desc()).limit(limit))).scalars().all()

    activities = [
        {
            "type": "booking",
            "id": b.id,
            "message": f"{client_name} booked {title or 'a service'}",
            "status": b.status,
            "created_at": b.created_at,
        }
        for b, client_name, title in booking_rows
    ]
    activities += [
        {
            "type": "signup",
            "id": u.id,
            "message": f"{u.name or u.email} joined as {u.role.lower()}",
            "status": "ACTIVE" if u.is_active else "SUSPENDED",
            "created_at": u.created_at,
        }
        for u in users
    ]
    activities.sort(key=lambda a: a["created_at"], reverse=True)
    await _audit(db, current_user, request, "view_recent_activities", "report", "activities", {"limit": limit})
    return activities[:limit]


@router.get("/users")
async def list_users(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    role: Optional[str] = None,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    stmt = sa_select(User).order_by(User.created_at.desc(), User.id.desc())
    count_stmt = sa_select(func.count(User.id))
    if role:
        stmt, count_stmt = stmt.where(User.role == role.upper()), count_stmt.where(User.role == role.upper())
    rows, pagination = await _paginate(db, stmt, count_stmt, page, limit)
    await _audit(db, current_user, request, "list_users", "user", detail={"role": role, "page": page})
    return {"data": [_user_dict(u) for u in rows], "pagination": pagination}


@router.get("/bookings")
async def list_bookings(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    booking_status: Optional[str] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    stmt = sa_select(Booking).order_by(Booking.created_at.desc(), Booking.id.desc())
    count_stmt = sa_select(func.count(Booking.id))
    if booking_status:
        stmt, count_stmt = stmt.where(Booking.status == booking_status), count_stmt.where(Booking.status == booking_status)
    rows, pagination = await _paginate(db, stmt, count_stmt, page, limit)
    await _audit(db, current_user, request, "list_bookings", "booking", detail={"status": booking_status, "page": page})
    return {"data": [BookingOut.model_validate(b) for b in rows], "pagination": pagination}


@router.get("/services")
async def list_services(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    is_active: Optional[bool] = None,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    stmt = sa_select(Service).order_by(Service.created_at.desc(), Service.id.desc())
    count_stmt = sa_select(func.count(Service.id))
    if is_active is not None:
        stmt, count_stmt = stmt.where(Service.is_active.is_(is_active)), count_stmt.where(Service.is_active.is_(is_active))
    rows, pagination = await _paginate(db, stmt, count_stmt, page, limit)
    await _audit(db, current_user, request, "list_services", "service", detail={"is_active": is_active, "page": page})
    return {"data": [ServiceOut.model_validate(s) for s in rows], "pagination": pagination}


@router.get("/providers")
async def list_providers(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    verified: Optional[bool] = None,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    stmt = sa_select(ProviderProfile).order_by(ProviderProfile.created_at.desc(), ProviderProfile.id.desc())
    count_stmt = sa_select(func.count(ProviderProfile.id))
    if verified is not None:
        stmt, count_stmt = stmt.where(ProviderProfile.verified.is_(verified)), count_stmt.where(ProviderProfile.verified.is_(verified))
    rows, pagination = await _paginate(db, stmt, count_stmt, page, limit)
    await _audit(db, current_user, request, "list_providers", "provider", detail={"verified": verified, "page": page})
    return {"data": [ProviderProfileOut.model_validate(p) for p in rows], "pagination": pagination}


@router.get("/providers/pending")
async def pending_providers(request: Request, db: AsyncSession = Depends(get_session), current_user: User = Depends(get_current_user)):
    rows = (
        await db.execute(
            sa_select(ProviderProfile, User.email)
            .join(User, User.id == ProviderProfile.user_id)
            .where(ProviderProfile.verification_status.in_([VerificationStatus.PENDING, VerificationStatus.RESUBMITTED]))
            .order_by(ProviderProfile.created_at.asc(), ProviderProfile.id.asc())
        )
    ).all()
    out = [{**ProviderProfileOut.model_validate(p).model_dump(), "email": email} for p, email in rows]
    await _audit(db, current_user, request, "list_pending_providers", "provider", detail={"count": len(out)})
    return out


async def _provider_or_404(db: AsyncSession, provider_id: int) -> ProviderProfile:
    provider = (await db.execute(sa_select(ProviderProfile).where(ProviderProfile.id == provider_id))).scalars().first()
    if not provider:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Provider not found")
    return provider


@router.get("/providers/{provider_id}")
async def provider_details(provider_id: int, request: Request, db: AsyncSession = Depends(get_session), current_user: User = Depends(get_current_user)):
    provider = await _provider_or_404(db, provider_id)
    user = (await db.execute(sa_select(User).where(User.id == provider.user_id))).scalars().first()
    services = (await db.execute(sa_select(Service).where(Service.provider_id == provider.id).order_by(Service.id))).scalars().all()
    bookings = (
        await db.execute(sa_select(Booking).where(Booking.provider_id == provider.id).order_by(Booking.created_at.desc(), Booking.id.desc()))
    ).scalars().all()
    reviews = await review_service.list_for_provider(db, provider.id)
    avg, count = (await review_service.rating_summary(db, [provider.id]))[provider.id]
    out = {
        "provider": ProviderProfileOut.model_validate(provider),
        "user": _user_dict(user) if user else None,
        "services": [ServiceOut.model_validate(s) for s in services],
        "bookings": [BookingOut.model_validate(b) for b in bookings],
        "reviews": [ReviewOut.model_validate(r) for r in reviews],
        "average_rating": avg,
        "review_count": count,
    }
    await _audit(db, current_user, request, "view_provider", "provider", provider.id)
    return out


@router.patch("/providers/{provider_id}/verify")
async def verify_provider(
    provider_id: int,
    payload: VerifyProviderIn,
    request: Request,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    provider = await _provider_or_404(db, provider_id)
    if payload.approved:
        provider.verified = True
        provider.verification_status = VerificationStatus.APPROVED
        provider.rejection_reason = None
    else:
        provider.verified = False
        provider.verification_status = VerificationStatus.REJECTED
        provider.rejection_reason = payload.reason
    provider.verified_at = datetime.now(timezone.utc)
    provider.verified_by = current_user.id
    await notifications.notify_provider_verification(db, provider, payload.approved, payload.reason)
    await log_audit(
        db,
        actor_id=current_user.id,
        action="approve_provider" if payload.approved else "reject_provider",
        object_type="provider",
        object_id=str(provider.id),
        detail={"reason": payload.reason},
        ip_address=client_ip(request),
    )
    await db.commit()
    await db.refresh(provider)
    return ProviderProfileOut.model_validate(provider)


@router.patch("/users/{user_id}/status")
async def set_user_status(
    user_id: int,
    payload: UserStatusIn,
    request: Request,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    if user_id == current_user.id and not payload.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot suspend your own account")
    user = (await db.execute(sa_select(User).where(User.id == user_id))).scalars().first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    user.is_active = payload.is_active
    await log_audit(
        db,
        actor_id=current_user.id,
        action="activate_user" if payload.is_active else "suspend_user",
        object_type="user",
        object_id=str(user.id),
        detail={"email": user.email},
        ip_address=client_ip(request),
    )
    await db.commit()
    await db.refresh(user)
    return _user_dict(user)


# Reports: revenue, reconciliation and payouts
@router.get("/reports/revenue")
async def revenue_report(
    request: Request,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    stmt = sa_select(Payment).where(Payment.status == PaymentStatus.PAID)
    if start:
        stmt = stmt.where(Payment.paid_at >= start)
    if end:
        stmt = stmt.where(Payment.paid_at <= end)
    payments = (await db.execute(stmt.order_by(Payment.paid_at.desc()))).scalars().all()
    total = sum(to_money(p.amount) for p in payments)
    commission = sum(to_money(p.commission) for p in payments)
    await _audit(
        db,
        current_user,
        request,
        "generate_revenue_report",
        "report",
        "revenue",
        {"start": start.isoformat() if start else None, "end": end.isoformat() if end else None},
    )
    return {
        "total": float(to_money(total)),
        "commission": float(to_money(commission)),
        "provider_amount": float(to_money(total - commission)),
        "count": len(payments),
        "payments": [PaymentOut.model_validate(p) for p in payments],
    }


@router.get("/reports/reconciliation")
async def reconciliation_report(request: Request, db: AsyncSession = Depends(get_session), current_user: User = Depends(get_current_user)):
    settled = [BookingStatus.ACCEPTED, BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED]
    paid_unsettled = (
        await db.execute(
            sa_select(Payment, Booking.status)
            .join(Booking, Booking.id == Payment.booking_id)
            .where(Payment.status == PaymentStatus.PAID, Booking.status.not_in(settled))
        )
    ).all()
    failed_open = (
        await db.execute(
            sa_select(Booking, Payment.id)
            .join(Payment, Payment.booking_id == Booking.id)
            .where(
                Payment.status == PaymentStatus.FAILED,
                Booking.status.not_in([BookingStatus.COMPLETED, BookingStatus.CANCELLED]),
            )
        )
    ).all()
    await _audit(db, current_user, request, "generate_reconciliation_report", "report", "reconciliation")
    return {
        "paid_without_active_booking": [
            {"payment_id": p.id, "booking_id": p.booking_id, "booking_status": b_status, "amount": float(p.amount)}
            for p, b_status in paid_unsettled
        ],
        "open_bookings_with_failed_payment": [
            {"booking_id": b.id, "payment_id": pid, "booking_status": b.status} for b, pid in failed_open
        ],
        "paid_without_active_booking_count": len(paid_unsettled),
        "open_bookings_with_failed_payment_count": len(failed_open),
    }


@router.get("/reports/payouts")
async def payouts_report(
    request: Request,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    stmt = (
        sa_select(
            ProviderProfile.id,
            ProviderProfile.name,
            func.count(Booking.id),
            func.coalesce(func.sum(Payment.amount), 0),
            func.coalesce(func.sum(Payment.commission), 0),
            func.coalesce(func.sum(Payment.provider_amount), 0),
        )
        .join(Booking, Booking.provider_id == ProviderProfile.id)
        .join(Payment, Payment.booking_id == Booking.id)
        .where(Booking.status == BookingStatus.COMPLETED, Payment.status == PaymentStatus.PAID)
        .group_by(ProviderProfile.id, ProviderProfile.name)
        .order_by(ProviderProfile.id)
    )
    if start:
        stmt = stmt.where(Booking.completed_at >= start)
    if end:
        stmt = stmt.where(Booking.completed_at <= end)
    rows = (await db.execute(stmt)).all()
    await _audit(db, current_user, request, "generate_payout_report", "report", "payouts")
    return [
        {
            "provider_id": pid,
            "provider_name": name,
            "completed_bookings": count,
            "gross": float(to_money(gross)),
            "commission": float(to_money(commission)),
            "net": float(to_money(net)),
        }
        for pid, name, count, gross, commission, net in rows
    ]


@router.get("/audit-logs")
async def audit_logs(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    action: Optional[str] = None,
    actor_id: Optional[int] = None,
    db: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    rows, total = await list_audit_logs(db, page, limit, action, actor_id)
    await _audit(db, current_user, request, "view_audit_logs", "audit_log", detail={"page": page, "action": action})
    return {
        "data": [
            {
                "id": a.id,
                "actor_id": a.actor_id,
                "action": a.action,
                "object_type": a.object_type,
                "object_id": a.object_id,
                "detail": a.detail,
                "ip_address": a.ip_address,
                "created_at": a.created_at,
            }
            for a in rows
        ],
        "pagination": {"page": page, "limit": limit, "total": total, "total_pages": (total + limit - 1) // limit},
    }
