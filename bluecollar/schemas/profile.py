from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ClientProfileIn(BaseModel):
    name: str = Field(..., min_length=1)
    age: Optional[int] = Field(None, ge=0, le=150)


class ClientProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    age: Optional[int] = Field(None, ge=0, le=150)


class ClientProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    name: str
    age: Optional[int] = None
    created_at: datetime


class ProviderProfileIn(BaseModel):
    name: str = Field(..., min_length=1)
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


class ProviderProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    skills: Optional[List[str]] = None
    rate: Optional[float] = Field(None, ge=0)
    bank_name: Optional[str] = None
    bank_acc: Optional[str] = None
    gov_id_url: Optional[str] = None
    address: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None


class ProviderProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    name: str
    skills: List[str] = Field(default_factory=list)
    rate: float
    bank_name: Optional[str] = None
    bank_acc: Optional[str] = None
    gov_id_url: Optional[str] = None
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    is_active: bool
    verified: bool
    verification_status: str
    rejection_reason: Optional[str] = None
    verified_at: Optional[datetime] = None
    created_at: datetime


class ProviderListItem(ProviderProfileOut):
    average_rating: Optional[float] = None
    review_count: int = 0


class AvailabilityUpdate(BaseModel):
    is_active: bool


class ResubmitVerification(BaseModel):
    gov_id_url: Optional[str] = None
