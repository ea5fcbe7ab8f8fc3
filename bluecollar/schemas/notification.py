from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    title: str
    message: str
    booking_id: Optional[int] = None
    read: bool
    created_at: datetime


class UnreadCount(BaseModel):
    count: int
