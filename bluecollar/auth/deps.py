from fastapi import HTTPException, status, Depends
from fastapi.security import OAuth2PasswordBearer
from typing import List
from sqlalchemy.ext.asyncio import AsyncSession
from bluecollar.db.session import get_session
from bluecollar.models.models import User, Role, ClientProfile, ProviderProfile
from sqlalchemy import select as sa_select
from jose import JWTError
from bluecollar.services import auth as auth_service


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


async def get_current_user(token: str = Depends(oauth2_scheme), db: AsyncSession = Depends(get_session)) -> User:
    try:
        user_id = auth_service.verify_access_token(token)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication credentials")
    res = await db.execute(sa_select(User).where(User.id == int(user_id)))
    user = res.scalars().first()
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")
    return user


def role_required(allowed: List[str]):
    async def _dep(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed and current_user.role != Role.ADMIN:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return current_user

    return _dep


async def get_client_profile(
    current_user: User = Depends(role_required([Role.CLIENT])), db: AsyncSession = Depends(get_session)
) -> ClientProfile:
    res = await db.execute(sa_select(ClientProfile).where(ClientProfile.user_id == current_user.id))
    profile = res.scalars().first()
    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client profile not found")
    return profile


async def get_provider_profile(
    current_user: User = Depends(role_required([Role.PROVIDER])), db: AsyncSession = Depends(get_session)
) -> ProviderProfile:
    res = await db.execute(sa_select(ProviderProfile).where(ProviderProfile.user_id == current_user.id))
    profile = res.scalars().first()
    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Provider profile not found")
    return profile
