"""Membership schemas - Pydantic models for membership validation"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

MEMBERSHIP_STATUS_PATTERN = "^(active|expired|cancelled|pending_payment|not_started)$"


class MembershipPurchase(BaseModel):
    package_id: int
    payment_method: str = Field("razorpay", pattern="^(razorpay|cash|card|upi|wallet)$")
    payment_id: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=500)


class MembershipExtend(BaseModel):
    additional_days: int = Field(..., gt=0, le=3650)
    reason: Optional[str] = Field(None, max_length=200)


class MembershipCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=200)


class MembershipAdminUpdate(BaseModel):
    notes: Optional[str] = Field(None, max_length=500)
    payment_status: Optional[str] = Field(None, pattern="^(pending|paid|failed|refunded)$")
    payment_id: Optional[str] = Field(None, max_length=100)
    remaining_appointments: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class MembershipUserSummary(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None

    class Config:
        from_attributes = True


class MembershipResponse(BaseModel):
    id: int
    user_id: int
    package_id: int
    package_name: str
    description: Optional[str] = None
    benefits: List[str] = []
    start_date: datetime
    expiry_date: datetime
    is_active: bool
    payment_status: str
    payment_id: Optional[str] = None
    payment_method: str
    amount_paid: float
    discount_applied: float
    remaining_appointments: Optional[int] = None
    used_appointments: int
    notes: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    status: str
    is_valid: bool
    days_remaining: int
    is_expiring_soon: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MembershipAdminResponse(MembershipResponse):
    user: Optional[MembershipUserSummary] = None
