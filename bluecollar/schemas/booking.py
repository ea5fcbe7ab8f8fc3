from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PaymentMethod(str, Enum):
    ONLINE = "ONLINE"
    CASH = "CASH"


class BookingCreate(BaseModel):
    service_id: int
    date: datetime
    notes: Optional[str] = None
    # either a saved address or an ad-hoc one
    address_id: Optional[int] = None
    client_address: Optional[str] = None
    client_latitude: Optional[float] = Field(None, ge=-90, le=90)
    client_longitude: Optional[float] = Field(None, ge=-180, le=180)
    payment_method: PaymentMethod = PaymentMethod.ONLINE


class BookingStatusUpdate(BaseModel):
    status: str
    reason: Optional[str] = Field(None, description="Cancellation reason")


class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    client_id: int
    provider_id: int
    service_id: Optional[int] = None
    date: datetime
    notes: Optional[str] = None
    status: str
    payment_method: str
    total_amount: float
    client_address: Optional[str] = None
    client_latitude: Optional[float] = None
    client_longitude: Optional[float] = None
    distance_km: Optional[float] = None
    cancel_reason: Optional[str] = None
    accepted_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
