"""Appointment schemas - Pydantic models for appointment validation"""

from datetime import date as date_type
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import validate_time_slot

APPOINTMENT_STATUS_PATTERN = "^(pending|confirmed|in_progress|completed|cancelled|no_show)$"


class AppointmentAddress(BaseModel):
    street: str = Field(..., min_length=3, max_length=255)
    city: str = Field(..., min_length=2, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    zip_code: Optional[str] = Field(None, max_length=10)
    country: str = "India"


class AppointmentCreate(BaseModel):
    """Schema for booking an appointment"""

    service_id: int
    stylist_id: Optional[int] = None
    date: date_type
    time_slot: str
    location: str = Field("salon", pattern="^(home|salon)$")
    notes: Optional[str] = Field(None, max_length=500)
    address: Optional[AppointmentAddress] = None

    @field_validator("time_slot")
    @classmethod
    def check_time_slot(cls, v):
        return validate_time_slot(v)


class AppointmentUpdate(BaseModel):
    """Schema for rescheduling or editing an appointment"""

    stylist_id: Optional[int] = None
    date: Optional[date_type] = None
    time_slot: Optional[str] = None
    location: Optional[str] = Field(None, pattern="^(home|salon)$")
    notes: Optional[str] = Field(None, max_length=500)
    address: Optional[AppointmentAddress] = None
    status: Optional[str] = Field(None, pattern=APPOINTMENT_STATUS_PATTERN)

    @field_validator("time_slot")
    @classmethod
    def check_time_slot(cls, v):
        return validate_time_slot(v)


class AppointmentCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=200)


class AppointmentStatusUpdate(BaseModel):
    status: str = Field(..., pattern=APPOINTMENT_STATUS_PATTERN)


class ServiceSummary(BaseModel):
    id: int
    name: str
    duration: int
    price: float
    category: str

    class Config:
        from_attributes = True


class StylistSummary(BaseModel):
    id: int
    name: str
    rating: float

    class Config:
        from_attributes = True


class CustomerSummary(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None

    class Config:
        from_attributes = True


class AppointmentResponse(BaseModel):
    id: int
    user_id: int
    service_id: int
    stylist_id: Optional[int] = None
    date: date_type
    time_slot: str
    location: str
    status: str
    notes: Optional[str] = None
    total_price: float
    address: Optional[dict] = None
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[int] = None
    created_at: Optional[datetime] = None
    service: Optional[ServiceSummary] = None
    stylist: Optional[StylistSummary] = None
    user: Optional[CustomerSummary] = None

    class Config:
        from_attributes = True
