from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bluecollar.auth.deps import get_client_profile
from bluecollar.db.session import get_session
from bluecollar.errors import to_http
from bluecollar.models.models import ClientProfile
from bluecollar.schemas.review import ReviewIn, ReviewOut
from bluecollar.services import reviews as review_service
from bluecollar.services.bookings import BookingError

router = APIRouter(tags=["reviews"])


@router.post("", response_model=ReviewOut, status_code=201)
async def create_review(payload: ReviewIn, client: ClientProfile = Depends(get_client_profile), db: AsyncSession = Depends(get_session)):
    try:
        return await review_service.create_review(db, client, payload.booking_id, payload.rating, payload.comment)
    except BookingError as exc:
        raise to_http(exc)


@router.get("/provider/{provider_id}")
async def provider_reviews(provider_id: int, db: AsyncSession = Depends(get_session)):
    reviews = await review_service.list_for_provider(db, provider_id)
    avg, count = (await review_service.rating_summary(db, [provider_id]))[provider_id]
    return {
        "provider_id": provider_id,
        "average_rating": avg,
        "review_count": count,
        "reviews": [ReviewOut.model_validate(r) for r in reviews],
    }
