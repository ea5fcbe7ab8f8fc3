from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, select as sa_select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bluecollar.models.models import Booking, BookingStatus, ClientProfile, Review
from bluecollar.services.bookings import BookingError, BookingForbidden, get_booking


async def create_review(db: AsyncSession, client: ClientProfile, booking_id: int, rating: int, comment: Optional[str]) -> Review:
    booking = await get_booking(db, booking_id)
    if booking.client_id != client.id:
        raise BookingForbidden("You can only review your own bookings")
    if booking.status != BookingStatus.COMPLETED:
        raise BookingError("Only completed bookings can be reviewed")
    review = Review(booking_id=booking.id, client_id=client.id, provider_id=booking.provider_id, rating=rating, comment=comment)
    db.add(review)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise BookingError("Booking already reviewed")
    await db.refresh(review)
    return review


async def list_for_provider(db: AsyncSession, provider_id: int) -> List[Review]:
    stmt = sa_select(Review).where(Review.provider_id == provider_id).order_by(Review.created_at.desc(), Review.id.desc())
    return list((await db.execute(stmt)).scalars().all())


async def rating_summary(db: AsyncSession, provider_ids: Iterable[int]) -> Dict[int, Tuple[Optional[float], int]]:
    """provider id -> (average rating rounded to 1 place, review count)."""
    ids = list(provider_ids)
    if not ids:
        return {}
    stmt = (
        sa_select(Review.provider_id, func.avg(Review.rating), func.count(Review.id))
        .where(Review.provider_id.in_(ids))
        .group_by(Review.provider_id)
    )
    out = {pid: (None, 0) for pid in ids}
    for pid, avg, count in (await db.execute(stmt)).all():
        out[pid] = (round(float(avg), 1), count)
    return out
