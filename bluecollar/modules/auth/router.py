from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from jose import JWTError
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import select as sa_select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bluecollar.auth.deps import get_current_user
from bluecollar.config import settings
from bluecollar.db.session import get_session
from bluecollar.models.models import ClientProfile, ProviderProfile, Role, User
from bluecollar.redis_client import redis_client
from bluecollar.services import auth as auth_service

router = APIRouter(tags=["auth"])


class RegisterIn(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    role: Literal["CLIENT", "PROVIDER"] = Role.CLIENT
    # client
    age: Optional[int] = Field(None, ge=0, le=150)
    # provider
    skills: List[str] = Field(default_factory=list)
    rate: float = Field(0, ge=0)
    bank_name: Optional[str] = None
    bank_acc: Optional[str] = None
    gov_id_url: Optional[str] = None
    address: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    refresh_token: str
    role: Optional[str] = None


class MeOut(BaseModel):
    id: int
    email: str
    name: Optional[str] = None
    phone: Optional[str] = None
    role: str
    is_active: bool
    profile_id: Optional[int] = None


@router.post("/register", status_code=201)
async def register(payload: RegisterIn, db: AsyncSession = Depends(get_session)):
    email = payload.email.lower()
    res = await db.execute(sa_select(User).where(User.email == email))
    if res.scalars().first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")

    user = User(
        email=email,
        name=payload.name,
        phone=payload.phone,
        hashed_password=auth_service.hash_password(payload.password),
        role=payload.role,
    )
    db.add(user)
    try:
        await db.flush()
        if payload.role == Role.PROVIDER:
            profile = ProviderProfile(
                user_id=user.id,
                name=payload.name,
                skills=payload.skills,
                rate=payload.rate,
                bank_name=payload.bank_name,
                bank_acc=payload.bank_acc,
                gov_id_url=payload.gov_id_url,
                address=payload.address,
                latitude=payload.latitude,
                longitude=payload.longitude,
                city=payload.city,
                state=payload.state,
                zip_code=payload.zip_code,
            )
        else:
            profile = ClientProfile(user_id=user.id, name=payload.name, age=payload.age)
        db.add(profile)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")
    await db.refresh(user)
    await db.refresh(profile)
    return {"id": user.id, "email": user.email, "name": user.name, "role": user.role, "profile_id": profile.id}


@router.post("/login", response_model=TokenOut)
async def login(form_data: OAuth2PasswordRequestForm = Depends(), db: AsyncSession = Depends(get_session)):
    identifier = form_data.username.lower()
    rl_key = f"rl:login:{identifier}"
    attempts = await redis_client.get(rl_key)
    if attempts and int(attempts) >= settings.LOGIN_RATE_LIMIT_ATTEMPTS:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Too many login attempts, try later")

    res = await db.execute(sa_select(User).where(User.email == identifier))
    user = res.scalars().first()
    if not user or not auth_service.verify_password(form_data.password, user.hashed_password):
        await redis_client.incr(rl_key)
        await redis_client.expire(rl_key, settings.LOGIN_RATE_LIMIT_WINDOW_SECONDS)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account is deactivated")

    await redis_client.delete(rl_key)
    access = auth_service.create_access_token(user.id, user.role)
    refresh_token, _ = await auth_service.create_refresh_token(user.id)
    return {"access_token": access, "refresh_token": refresh_token, "role": user.role}


class RefreshIn(BaseModel):
    refresh_token: str


@router.post("/refresh", response_model=TokenOut)
async def refresh(payload: RefreshIn, db: AsyncSession = Depends(get_session)):
    try:
        user_id, old_jti = await auth_service.verify_refresh_token(payload.refresh_token)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")
    user = (await db.execute(sa_select(User).where(User.id == user_id))).scalars().first()
    if not user or not user.is_active:
        await auth_service.revoke_refresh_token(old_jti)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")
    new_refresh, _ = await auth_service.rotate_refresh_token(old_jti, user_id)
    access = auth_service.create_access_token(user_id, user.role)
    return {"access_token": access, "refresh_token": new_refresh, "role": user.role}


@router.post("/logout", status_code=204)
async def logout(payload: RefreshIn):
    try:
        _, jti = await auth_service.verify_refresh_token(payload.refresh_token)
    except JWTError:
        # already invalid / revoked
        return None
    await auth_service.revoke_refresh_token(jti)
    return None


@router.get("/me", response_model=MeOut)
async def me(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_session)):
    profile_id = None
    if current_user.role == Role.CLIENT:
        profile_id = (await db.execute(sa_select(ClientProfile.id).where(ClientProfile.user_id == current_user.id))).scalar()
    elif current_user.role == Role.PROVIDER:
        profile_id = (await db.execute(sa_select(ProviderProfile.id).where(ProviderProfile.user_id == current_user.id))).scalar()
    return MeOut(
        id=current_user.id,
        email=current_user.email,
        name=current_user.name,
        phone=current_user.phone,
        role=current_user.role,
        is_active=current_user.is_active,
        profile_id=profile_id,
    )
