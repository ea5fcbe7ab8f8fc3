from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from bluecollar.auth.deps import get_current_user
from bluecollar.db.session import get_session
from bluecollar.models.models import User
from bluecollar.schemas.notification import NotificationOut, UnreadCount
from bluecollar.services import notifications as notification_service

router = APIRouter(tags=["notifications"])


@router.get("", response_model=List[NotificationOut])
async def my_notifications(unread_only: bool = False, current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_session)):
    return await notification_service.list_for_user(db, current_user.id, unread_only)


@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_session)):
    return UnreadCount(count=await notification_service.unread_count(db, current_user.id))


@router.patch("/read-all")
async def mark_all_read(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_session)):
    updated = await notification_service.mark_all_read(db, current_user.id)
    return {"updated": updated}


@router.patch("/{notification_id}/read", response_model=NotificationOut)
async def mark_read(notification_id: int, current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_session)):
    notif = await notification_service.mark_read(db, notification_id, current_user.id)
    if not notif:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return notif
