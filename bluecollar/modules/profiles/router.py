from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy import select as sa_select
from sqlalchemy.ext.asyncio import AsyncSession

from bluecollar.auth.deps import get_current_user, get_provider_profile
from bluecollar.db.session import get_session
from bluecollar.models.models import ClientProfile, ProviderProfile, Role, User, VerificationStatus
from bluecollar.schemas.profile import (
    AvailabilityUpdate,
    ClientProfileIn,
    ClientProfileOut,
    ClientProfileUpdate,
    ProviderListItem,
    ProviderProfileIn,
    ProviderProfileOut,
    ProviderProfileUpdate,
    ResubmitVerification,
)
from bluecollar.services.reviews import rating_summary

router = APIRouter(tags=["profiles"])


async def _client_profile(db: AsyncSession, user_id: int) -> Optional[ClientProfile]:
    return (await db.execute(sa_select(ClientProfile).where(ClientProfile.user_id == user_id))).scalars().first()


async def _provider_profile(db: AsyncSession, user_id: int) -> Optional[ProviderProfile]:
    return (await db.execute(sa_select(ProviderProfile).where(ProviderProfile.user_id == user_id))).scalars().first()


@router.post("/client", response_model=ClientProfileOut, status_code=201)
async def create_client_profile(payload: ClientProfileIn, current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_session)):
    if current_user.role != Role.CLIENT:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only clients can create a client profile")
    if await _client_profile(db, current_user.id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Profile already exists")
    profile = ClientProfile(user_id=current_user.id, **payload.model_dump())
    db.add(profile)
    await db.commit()
    await db.refresh(profile)
    return profile


@router.post("/provider", response_model=ProviderProfileOut, status_code=201)
async def create_provider_profile(payload: ProviderProfileIn, current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_session)):
    if current_user.role != Role.PROVIDER:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only providers can create a provider profile")
    if await _provider_profile(db, current_user.id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Profile already exists")
    profile = ProviderProfile(user_id=current_user.id, **payload.model_dump())
    db.add(profile)
    await db.commit()
    await db.refresh(profile)
    return profile


def _serialize(profile):
    if isinstance(profile, ProviderProfile):
        return ProviderProfileOut.model_validate(profile)
    return ClientProfileOut.model_validate(profile)


@router.get("/me")
async def get_my_profile(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_session)):
    if current_user.role == Role.PROVIDER:
        profile = await _provider_profile(db, current_user.id)
    else:
        profile = await _client_profile(db, current_user.id)
    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return _serialize(profile)


@router.put("/me")
async def update_my_profile(payload: dict = Body(...), current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_session)):
    # validated against the schema that matches the caller's role
    schema = ProviderProfileUpdate if current_user.role == Role.PROVIDER else ClientProfileUpdate
    try:
        changes = schema(**payload).model_dump(exclude_unset=True)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors())
    if current_user.role == Role.PROVIDER:
        profile = await _provider_profile(db, current_user.id)
    else:
        profile = await _client_profile(db, current_user.id)
    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    for field, value in changes.items():
        setattr(profile, field, value)
    await db.commit()
    await db.refresh(profile)
    return _serialize(profile)


@router.get("/providers", response_model=List[ProviderListItem])
async def list_providers(
    skill: Optional[str] = None,
    verified: Optional[bool] = None,
    min_rate: Optional[float] = None,
    max_rate: Optional[float] = None,
    db: AsyncSession = Depends(get_session),
):
    stmt = sa_select(ProviderProfile).where(ProviderProfile.is_active.is_(True))
    if verified is not None:
        stmt = stmt.where(ProviderProfile.verified.is_(verified))
    if min_rate is not None:
        stmt = stmt.where(ProviderProfile.rate >= min_rate)
    if max_rate is not None:
        stmt = stmt.where(ProviderProfile.rate <= max_rate)
    providers = (await db.execute(stmt.order_by(ProviderProfile.created_at.desc()))).scalars().all()
    if skill:
        # skills is a JSON list; match case-insensitively in python so sqlite and postgres agree
        needle = skill.lower()
        providers = [p for p in providers if any(needle in s.lower() for s in (p.skills or []))]

    ratings = await rating_summary(db, [p.id for p in providers])
    out = []
    for p in providers:
        avg, count = ratings.get(p.id, (None, 0))
        item = ProviderListItem.model_validate(p)
        item.average_rating, item.review_count = avg, count
        out.append(item)
    return out


@router.get("/providers/{provider_id}", response_model=ProviderListItem)
async def get_provider(provider_id: int, db: AsyncSession = Depends(get_session)):
    p = (await db.execute(sa_select(ProviderProfile).where(ProviderProfile.id == provider_id))).scalars().first()
    if not p:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Provider not found")
    avg, count = (await rating_summary(db, [p.id]))[p.id]
    item = ProviderListItem.model_validate(p)
    item.average_rating, item.review_count = avg, count
    return item


@router.get("/provider/availability")
async def get_availability(profile: ProviderProfile = Depends(get_provider_profile)):
    return {"is_active": profile.is_active}


@router.patch("/provider/availability")
async def set_availability(payload: AvailabilityUpdate, profile: ProviderProfile = Depends(get_provider_profile), db: AsyncSession = Depends(get_session)):
    profile.is_active = payload.is_active
    await db.commit()
    return {"is_active": profile.is_active}


@router.post("/provider/resubmit", response_model=ProviderProfileOut)
async def resubmit_verification(
    payload: ResubmitVerification,
    profile: ProviderProfile = Depends(get_provider_profile),
    db: AsyncSession = Depends(get_session),
):
    if profile.verification_status != VerificationStatus.REJECTED:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only rejected applications can be resubmitted")
    if payload.gov_id_url:
        profile.gov_id_url = payload.gov_id_url
    profile.verification_status = VerificationStatus.RESUBMITTED
    profile.rejection_reason = None
    await db.commit()
    await db.refresh(profile)
    return profile
