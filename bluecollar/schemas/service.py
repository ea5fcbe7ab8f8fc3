from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ServiceIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    price: float = Field(..., gt=0)
    category: str = Field(..., min_length=1, max_length=64)
    duration: Optional[str] = None
    is_active: bool = True


class ServiceUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    price: Optional[float] = Field(None, gt=0)
    category: Optional[str] = Field(None, min_length=1, max_length=64)
    duration: Optional[str] = None
    is_active: Optional[bool] = None


class ServiceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    provider_id: int
    title: str
    description: Optional[str] = None
    price: float
    category: str
    duration: Optional[str] = None
    is_active: bool
    created_at: datetime


class ServiceWithProvider(ServiceOut):
    provider_name: Optional[str] = None
    provider_city: Optional[str] = None
    distance_km: Optional[float] = None
