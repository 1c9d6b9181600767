"""Appointment router - FastAPI endpoints for bookings and availability"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_admin
from ...database import get_db
from ...models import User
from ...schemas import dump
from ...shared.responses import api_response
from .schemas import (
    APPOINTMENT_STATUS_PATTERN,
    AppointmentCancel,
    AppointmentCreate,
    AppointmentResponse,
    AppointmentStatusUpdate,
    AppointmentUpdate,
)
from .service import AppointmentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])


def get_appointment_service(db: Session = Depends(get_db)) -> AppointmentService:
    """Dependency injection for AppointmentService"""
    return AppointmentService(db)


# ============================================================================
# BOOKING
# ============================================================================


@router.post("", status_code=201)
async def create_appointment(
    data: AppointmentCreate,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Book an appointment (stylist and user slot conflicts are rejected)"""
    appointment = await service.create_appointment(data, current_user)
    return api_response(dump(AppointmentResponse, appointment), "Appointment booked successfully")


@router.get("")
async def list_appointments(
    status: Optional[str] = Query(None, pattern=APPOINTMENT_STATUS_PATTERN),
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    stylist_id: Optional[int] = None,
    service_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: str = Query("date", pattern="^(date|created_at|total_price)$"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """List appointments - customers see their own, admins see all"""
    items, pagination = service.list_appointments(
        current_user,
        page=page,
        limit=limit,
        status=status,
        date_from=date_from,
        date_to=date_to,
        stylist_id=stylist_id,
        service_id=service_id,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return api_response(
        {"appointments": [dump(AppointmentResponse, a) for a in items], "pagination": pagination},
        "Appointments retrieved successfully",
    )


@router.get("/available-slots")
async def get_available_slots(
    stylist_id: int,
    date: date,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Free 30-minute slots for a stylist on a given day"""
    slots = service.get_available_slots(stylist_id, date)
    return api_response(
        {"stylist_id": stylist_id, "date": date.isoformat(), "available_slots": slots},
        "Available slots retrieved successfully",
    )


@router.get("/stats")
async def get_appointment_stats(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    admin: User = Depends(require_admin),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Per-status counts and revenue, optionally limited to a date range"""
    return api_response(
        service.get_stats(date_from=date_from, date_to=date_to), "Appointment statistics retrieved successfully"
    )


# ============================================================================
# SINGLE APPOINTMENT
# ============================================================================


@router.get("/{appointment_id}")
async def get_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    appointment = service.get_appointment(appointment_id, current_user)
    return api_response(dump(AppointmentResponse, appointment), "Appointment retrieved successfully")


@router.put("/{appointment_id}")
async def update_appointment(
    appointment_id: int,
    data: AppointmentUpdate,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Reschedule or edit an appointment; status changes are admin-only"""
    appointment = service.update_appointment(appointment_id, data, current_user)
    return api_response(dump(AppointmentResponse, appointment), "Appointment updated successfully")


@router.patch("/{appointment_id}/cancel")
async def cancel_appointment(
    appointment_id: int,
    data: Optional[AppointmentCancel] = None,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Cancel an appointment (customers: not within 2 hours of the slot)"""
    appointment = await service.cancel_appointment(appointment_id, current_user, data.reason if data else None)
    return api_response(dump(AppointmentResponse, appointment), "Appointment cancelled successfully")


@router.patch("/{appointment_id}/status")
async def update_appointment_status(
    appointment_id: int,
    data: AppointmentStatusUpdate,
    admin: User = Depends(require_admin),
    service: AppointmentService = Depends(get_appointment_service),
):
    appointment = service.update_status(appointment_id, data.status, admin)
    return api_response(dump(AppointmentResponse, appointment), "Appointment status updated successfully")


@router.delete("/{appointment_id}")
async def delete_appointment(
    appointment_id: int,
    admin: User = Depends(require_admin),
    service: AppointmentService = Depends(get_appointment_service),
):
    service.delete_appointment(appointment_id, admin)
    return api_response(None, "Appointment deleted successfully")
