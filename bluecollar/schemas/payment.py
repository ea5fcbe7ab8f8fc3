from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CreateOrderRequest(BaseModel):
    booking_id: int
    gateway: str = Field("razorpay", description="one of: razorpay, cashfree")


class CreateOrderResponse(BaseModel):
    payment_id: int
    gateway: str
    order_id: str
    amount: float
    currency: str
    checkout: dict = Field(default_factory=dict, description="Gateway specific checkout parameters")


class VerifyPaymentRequest(BaseModel):
    # defaults to the gateway the order was created on
    gateway: Optional[str] = None
    order_id: str
    # Razorpay checkout callback fields; unused for Cashfree
    payment_id: Optional[str] = None
    signature: Optional[str] = None


class PaymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    booking_id: int
    amount: float
    currency: str
    commission: float
    provider_amount: float
    status: str
    method: Optional[str] = None
    gateway: Optional[str] = None
    gateway_order_id: Optional[str] = None
    transaction_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: datetime


class RefundRequest(BaseModel):
    reason: Optional[str] = "Refund by admin"


class WebhookAck(BaseModel):
    received: bool
    processed: bool = False
