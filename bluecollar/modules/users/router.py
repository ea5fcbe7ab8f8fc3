from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from bluecollar.auth.deps import get_current_user
from bluecollar.db.session import get_session
from bluecollar.models.models import User
from bluecollar.services import auth as auth_service

router = APIRouter(tags=["users"])


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    phone: Optional[str] = None


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6)


@router.put("/me")
async def update_me(payload: UserUpdate, current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_session)):
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(current_user, field, value)
    await db.commit()
    await db.refresh(current_user)
    return {"id": current_user.id, "email": current_user.email, "name": current_user.name, "phone": current_user.phone, "role": current_user.role}


@router.put("/me/password", status_code=204)
async def change_password(payload: PasswordChange, current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_session)):
    if not auth_service.verify_password(payload.current_password, current_user.hashed_password):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")
    current_user.hashed_password = auth_service.hash_password(payload.new_password)
    await db.commit()
    return None
