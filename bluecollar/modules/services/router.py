from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_, select as sa_select
from sqlalchemy.ext.asyncio import AsyncSession

from bluecollar.auth.deps import get_provider_profile
from bluecollar.config import settings
from bluecollar.db.session import get_session
from bluecollar.models.models import ProviderProfile, Service, VerificationStatus
from bluecollar.schemas.service import ServiceIn, ServiceOut, ServiceUpdate, ServiceWithProvider
from bluecollar.services.pricing import distance_between

router = APIRouter(tags=["services"])


def _bookable():
    # services of approved providers only
    return (
        sa_select(Service, ProviderProfile)
        .join(ProviderProfile, ProviderProfile.id == Service.provider_id)
        .where(ProviderProfile.verified.is_(True), ProviderProfile.verification_status == VerificationStatus.APPROVED)
    )


def _with_provider(service: Service, provider: ProviderProfile, distance_km: Optional[float] = None) -> ServiceWithProvider:
    item = ServiceWithProvider.model_validate(service)
    item.provider_name = provider.name
    item.provider_city = provider.city
    item.distance_km = distance_km
    return item


@router.get("", response_model=List[ServiceWithProvider])
async def list_services(
    category: Optional[str] = None,
    search: Optional[str] = None,
    is_active: Optional[bool] = True,
    db: AsyncSession = Depends(get_session),
):
    stmt = _bookable()
    if category:
        stmt = stmt.where(Service.category == category)
    if search:
        pattern = f"%{search.lower()}%"
        stmt = stmt.where(or_(Service.title.ilike(pattern), Service.description.ilike(pattern)))
    if is_active is not None:
        stmt = stmt.where(Service.is_active.is_(is_active))
    rows = (await db.execute(stmt.order_by(Service.created_at.desc(), Service.id.desc()))).all()
    return [_with_provider(s, p) for s, p in rows]


@router.get("/nearby", response_model=List[ServiceWithProvider])
async def nearby_services(
    latitude: Optional[float] = Query(None, ge=-90, le=90),
    longitude: Optional[float] = Query(None, ge=-180, le=180),
    category: Optional[str] = None,
    max_distance: Optional[float] = Query(None, gt=0),
    db: AsyncSession = Depends(get_session),
):
    if latitude is None or longitude is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Latitude and longitude are required")
    radius = max_distance or settings.NEARBY_DEFAULT_RADIUS_KM

    stmt = _bookable().where(
        Service.is_active.is_(True),
        ProviderProfile.is_active.is_(True),
        ProviderProfile.latitude.is_not(None),
        ProviderProfile.longitude.is_not(None),
    )
    if category:
        stmt = stmt.where(Service.category == category)

    found = []
    for s, p in (await db.execute(stmt)).all():
        d = distance_between(latitude, longitude, p.latitude, p.longitude)
        if d is not None and d <= radius:
            found.append(_with_provider(s, p, d))
    found.sort(key=lambda item: item.distance_km)
    return found


@router.get("/mine", response_model=List[ServiceOut])
async def my_services(provider: ProviderProfile = Depends(get_provider_profile), db: AsyncSession = Depends(get_session)):
    stmt = sa_select(Service).where(Service.provider_id == provider.id).order_by(Service.created_at.desc(), Service.id.desc())
    return (await db.execute(stmt)).scalars().all()


@router.get("/{service_id}", response_model=ServiceWithProvider)
async def get_service(service_id: int, db: AsyncSession = Depends(get_session)):
    row = (await db.execute(_bookable().where(Service.id == service_id))).first()
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found")
    return _with_provider(*row)


@router.post("", response_model=ServiceOut, status_code=201)
async def create_service(payload: ServiceIn, provider: ProviderProfile = Depends(get_provider_profile), db: AsyncSession = Depends(get_session)):
    service = Service(provider_id=provider.id, **payload.model_dump())
    db.add(service)
    await db.commit()
    await db.refresh(service)
    return service


async def _owned(db: AsyncSession, service_id: int, provider: ProviderProfile) -> Service:
    service = (
        await db.execute(sa_select(Service).where(Service.id == service_id, Service.provider_id == provider.id))
    ).scalars().first()
    if not service:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found")
    return service


@router.put("/{service_id}", response_model=ServiceOut)
async def update_service(
    service_id: int,
    payload: ServiceUpdate,
    provider: ProviderProfile = Depends(get_provider_profile),
    db: AsyncSession = Depends(get_session),
):
    service = await _owned(db, service_id, provider)
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(service, field, value)
    await db.commit()
    await db.refresh(service)
    return service


@router.patch("/{service_id}/toggle-status", response_model=ServiceOut)
async def toggle_service(service_id: int, provider: ProviderProfile = Depends(get_provider_profile), db: AsyncSession = Depends(get_session)):
    service = await _owned(db, service_id, provider)
    service.is_active = not service.is_active
    await db.commit()
    await db.refresh(service)
    return service


@router.delete("/{service_id}", status_code=204)
async def delete_service(service_id: int, provider: ProviderProfile = Depends(get_provider_profile), db: AsyncSession = Depends(get_session)):
    service = await _owned(db, service_id, provider)
    await db.delete(service)
    await db.commit()
    return None
