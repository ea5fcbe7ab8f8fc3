from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bluecollar.auth.deps import get_client_profile, get_current_user, get_provider_profile
from bluecollar.db.session import get_session
from bluecollar.errors import to_http
from bluecollar.models.models import ClientProfile, ProviderProfile, User
from bluecollar.schemas.booking import BookingCreate, BookingOut, BookingStatusUpdate
from bluecollar.services import bookings as booking_service
from bluecollar.services.bookings import BookingError

router = APIRouter(tags=["bookings"])


@router.post("", response_model=BookingOut, status_code=201)
async def create_booking(payload: BookingCreate, client: ClientProfile = Depends(get_client_profile), db: AsyncSession = Depends(get_session)):
    """Create a booking. Online bookings wait for payment before the provider sees them."""
    try:
        return await booking_service.create_booking(db, client, payload)
    except BookingError as exc:
        raise to_http(exc)


@router.get("/client", response_model=List[BookingOut])
async def client_bookings(client: ClientProfile = Depends(get_client_profile), db: AsyncSession = Depends(get_session)):
    return await booking_service.list_for_client(db, client.id)


@router.get("/provider", response_model=List[BookingOut])
async def provider_bookings(
    status: Optional[str] = None,
    provider: ProviderProfile = Depends(get_provider_profile),
    db: AsyncSession = Depends(get_session),
):
    return await booking_service.list_for_provider(db, provider.id, status)


@router.get("/{booking_id}", response_model=BookingOut)
async def get_booking(booking_id: int, current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_session)):
    try:
        return await booking_service.get_booking_for_user(db, booking_id, current_user)
    except BookingError as exc:
        raise to_http(exc)


@router.patch("/{booking_id}/status", response_model=BookingOut)
async def update_booking_status(
    booking_id: int,
    payload: BookingStatusUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    try:
        return await booking_service.update_status(db, booking_id, current_user, payload.status, payload.reason)
    except BookingError as exc:
        raise to_http(exc)
