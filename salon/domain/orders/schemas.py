"""Order schemas - Pydantic models for checkout, payment and fulfilment"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

from ..cart.schemas import ShippingAddress

ORDER_STATUS_PATTERN = "^(pending|confirmed|processing|shipped|delivered|cancelled|returned)$"
PAYMENT_STATUS_PATTERN = "^(pending|processing|completed|failed|cancelled|refunded)$"


class OrderCreate(BaseModel):
    payment_method: str = Field("razorpay", pattern="^(razorpay|cod|wallet|card)$")
    shipping_address: Optional[ShippingAddress] = None
    notes: Optional[str] = Field(None, max_length=500)


class PaymentVerification(BaseModel):
    razorpay_order_id: str = Field(..., min_length=1)
    razorpay_payment_id: str = Field(..., min_length=1)
    razorpay_signature: str = Field(..., min_length=1)


class OrderCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=200)


class ReturnRequest(BaseModel):
    reason: str = Field(..., max_length=500)

    @field_validator("reason")
    @classmethod
    def require_reason(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Return reason is required")
        return v


class ReturnProcess(BaseModel):
    action: str = Field(..., pattern="^(approve|reject)$")
    notes: Optional[str] = Field(None, max_length=500)


class OrderStatusUpdate(BaseModel):
    status: str = Field(..., pattern=ORDER_STATUS_PATTERN)
    note: Optional[str] = Field(None, max_length=200)
    tracking_number: Optional[str] = Field(None, max_length=100)
    estimated_delivery: Optional[datetime] = None


class OrderResponse(BaseModel):
    id: int
    order_number: str
    user_id: int
    items: List[dict]
    total_items: int
    subtotal: float
    discount: float
    discount_code: Optional[str] = None
    shipping_charges: float
    tax: float
    total_amount: float
    status: str
    status_history: List[dict] = []
    shipping_address: dict
    payment_details: dict
    payment_status: str
    can_be_cancelled: bool
    tracking_number: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    return_status: str
    return_reason: Optional[str] = None
    return_requested_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OrderTracking(BaseModel):
    order_number: str
    status: str
    status_history: List[Any] = []
    tracking_number: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    delivered_at: Optional[datetime] = None

    class Config:
        from_attributes = True
