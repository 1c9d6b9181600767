"""Appointment service - Booking rules, conflict checks and cancellation policy"""

import logging
from datetime import date, datetime, time
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import CANCELLATION_WINDOW_HOURS
from ...models import User
from ...models_booking import ACTIVE_APPOINTMENT_STATUSES, Appointment
from ...models_catalog import Stylist
from ...services.notification_service import notify_appointment_cancelled, notify_appointment_confirmed
from ...shared.responses import paginate
from ...shared.validators import parse_time, weekday_name
from . import slots
from .repository import AppointmentRepository
from .schemas import AppointmentCreate, AppointmentUpdate

logger = logging.getLogger(__name__)

CLOSED_STATUSES = ("completed", "cancelled")


def slot_datetime(day: date, time_slot: str) -> datetime:
    hour, minute = parse_time(time_slot)
    return datetime.combine(day, time(hour, minute))


class AppointmentService:
    """Service layer for appointment business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AppointmentRepository()

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def _check_stylist(self, stylist_id: int, day: date, time_slot: str, location: str) -> Stylist:
        stylist = self.repo.get_stylist(self.db, stylist_id)
        if not stylist:
            raise HTTPException(status_code=404, detail="Stylist not found")
        if not stylist.is_active:
            raise HTTPException(status_code=400, detail="Stylist is not currently available")
        if not stylist.is_available_at(location):
            raise HTTPException(status_code=400, detail=f"Stylist is not available for {location} appointments")
        if not slots.works_on(stylist.working_days, day):
            raise HTTPException(status_code=400, detail=f"Stylist is not available on {weekday_name(day)}")
        if not slots.is_within_working_hours(time_slot, stylist.working_hours):
            raise HTTPException(status_code=400, detail="Time slot is outside stylist working hours")
        return stylist

    def _check_conflicts(
        self,
        day: date,
        time_slot: str,
        stylist_id: Optional[int],
        user_id: int,
        exclude_id: Optional[int] = None,
    ) -> None:
        if stylist_id and self.repo.find_conflict(
            self.db, day, time_slot, stylist_id=stylist_id, exclude_id=exclude_id
        ):
            logger.info(f"⚠️ Slot conflict for stylist {stylist_id} on {day} {time_slot}")
            raise HTTPException(status_code=409, detail="Stylist is already booked at this time")

        if self.repo.find_conflict(self.db, day, time_slot, user_id=user_id, exclude_id=exclude_id):
            raise HTTPException(status_code=409, detail="You already have an appointment at this time")

    def _get_accessible(self, appointment_id: int, user: User) -> Appointment:
        appointment = self.repo.get_by_id(self.db, appointment_id)
        if not appointment:
            raise HTTPException(status_code=404, detail="Appointment not found")
        if not user.is_admin and appointment.user_id != user.id:
            raise HTTPException(status_code=403, detail="You do not have access to this appointment")
        return appointment

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def create_appointment(self, data: AppointmentCreate, user: User) -> Appointment:
        logger.info(f"📥 Booking appointment for user {user.id}: service={data.service_id} {data.date} {data.time_slot}")

        if slot_datetime(data.date, data.time_slot) <= datetime.now():
            raise HTTPException(status_code=400, detail="Appointment date must be in the future")

        service = self.repo.get_service(self.db, data.service_id)
        if not service:
            raise HTTPException(status_code=404, detail="Service not found")
        if not service.is_active:
            raise HTTPException(status_code=400, detail="Service is not currently available")
        if not service.is_available_at(data.location):
            raise HTTPException(status_code=400, detail=f"Service is not available at {data.location}")
        if data.location == "home" and not data.address:
            raise HTTPException(status_code=400, detail="Address is required for home appointments")

        if data.stylist_id:
            self._check_stylist(data.stylist_id, data.date, data.time_slot, data.location)

        self._check_conflicts(data.date, data.time_slot, data.stylist_id, user.id)

        appointment = self.repo.create(
            self.db,
            user_id=user.id,
            service_id=service.id,
            stylist_id=data.stylist_id,
            date=data.date,
            time_slot=data.time_slot,
            location=data.location,
            notes=data.notes,
            total_price=service.price,
            address=data.address.model_dump() if data.location == "home" and data.address else None,
            status="pending",
        )
        logger.info(f"✅ Appointment {appointment.id} booked for user {user.id}")

        appointment = self.repo.get_by_id(self.db, appointment.id)
        await notify_appointment_confirmed(appointment)
        return appointment

    def list_appointments(self, user: User, page: int = 1, limit: int = 10, **filters) -> tuple[list, dict]:
        query = self.repo.list_query(self.db, user_id=None if user.is_admin else user.id, **filters)
        return paginate(query, page, limit)

    def get_appointment(self, appointment_id: int, user: User) -> Appointment:
        return self._get_accessible(appointment_id, user)

    def update_appointment(self, appointment_id: int, data: AppointmentUpdate, user: User) -> Appointment:
        appointment = self._get_accessible(appointment_id, user)

        if appointment.status in CLOSED_STATUSES:
            raise HTTPException(status_code=400, detail=f"Cannot update a {appointment.status} appointment")

        updates = data.model_dump(exclude_unset=True)
        if "status" in updates and not user.is_admin:
            raise HTTPException(status_code=403, detail="Only admins can change appointment status")

        new_date = updates.get("date") or appointment.date
        new_slot = updates.get("time_slot") or appointment.time_slot
        new_location = updates.get("location") or appointment.location
        new_stylist_id = updates["stylist_id"] if "stylist_id" in updates else appointment.stylist_id

        rescheduled = (
            new_date != appointment.date
            or new_slot != appointment.time_slot
            or new_stylist_id != appointment.stylist_id
            or new_location != appointment.location
        )

        if rescheduled:
            if slot_datetime(new_date, new_slot) <= datetime.now():
                raise HTTPException(status_code=400, detail="Appointment date must be in the future")
            if not appointment.service.is_available_at(new_location):
                raise HTTPException(status_code=400, detail=f"Service is not available at {new_location}")
            if new_stylist_id:
                self._check_stylist(new_stylist_id, new_date, new_slot, new_location)
            self._check_conflicts(new_date, new_slot, new_stylist_id, appointment.user_id, exclude_id=appointment.id)

        address = updates.get("address", appointment.address)
        if new_location == "home" and not address:
            raise HTTPException(status_code=400, detail="Address is required for home appointments")

        appointment.date = new_date
        appointment.time_slot = new_slot
        appointment.location = new_location
        appointment.stylist_id = new_stylist_id
        appointment.address = address if new_location == "home" else None
        if "notes" in updates:
            appointment.notes = updates["notes"]
        if "status" in updates:
            self._apply_status(appointment, updates["status"], user)

        logger.info(f"✏️ Appointment {appointment.id} updated by user {user.id}")
        return self.repo.save(self.db, appointment)

    def _apply_status(self, appointment: Appointment, status: str, user: User) -> None:
        # Reopening a closed appointment must not double-book its slot
        if status in ACTIVE_APPOINTMENT_STATUSES and appointment.status not in ACTIVE_APPOINTMENT_STATUSES:
            self._check_conflicts(
                appointment.date,
                appointment.time_slot,
                appointment.stylist_id,
                appointment.user_id,
                exclude_id=appointment.id,
            )
            appointment.cancelled_at = None
            appointment.cancelled_by = None
            appointment.cancellation_reason = None
        appointment.status = status
        if status == "cancelled" and not appointment.cancelled_at:
            appointment.cancelled_at = datetime.now()
            appointment.cancelled_by = user.id

    async def cancel_appointment(self, appointment_id: int, user: User, reason: Optional[str] = None) -> Appointment:
        appointment = self._get_accessible(appointment_id, user)

        if appointment.status == "cancelled":
            raise HTTPException(status_code=400, detail="Appointment is already cancelled")
        if appointment.status == "completed":
            raise HTTPException(status_code=400, detail="Cannot cancel a completed appointment")

        if not user.is_admin and slots.within_cancellation_window(
            appointment.scheduled_at, datetime.now(), CANCELLATION_WINDOW_HOURS
        ):
            raise HTTPException(
                status_code=400,
                detail=f"Appointment cannot be cancelled less than {CANCELLATION_WINDOW_HOURS} hours before the scheduled time",
            )

        appointment.status = "cancelled"
        appointment.cancellation_reason = reason or "Cancelled by customer"
        appointment.cancelled_at = datetime.now()
        appointment.cancelled_by = user.id
        appointment = self.repo.save(self.db, appointment)
        logger.info(f"🚫 Appointment {appointment.id} cancelled by user {user.id}")

        await notify_appointment_cancelled(appointment)
        return appointment

    def update_status(self, appointment_id: int, status: str, admin: User) -> Appointment:
        appointment = self._get_accessible(appointment_id, admin)
        self._apply_status(appointment, status, admin)
        logger.info(f"🔄 Appointment {appointment.id} status -> {status} by admin {admin.id}")
        return self.repo.save(self.db, appointment)

    def delete_appointment(self, appointment_id: int, admin: User) -> None:
        appointment = self._get_accessible(appointment_id, admin)
        self.repo.delete(self.db, appointment)
        logger.info(f"🗑️ Appointment {appointment_id} deleted by admin {admin.id}")

    def get_available_slots(self, stylist_id: int, day: date) -> list[str]:
        stylist = self.repo.get_stylist(self.db, stylist_id)
        if not stylist:
            raise HTTPException(status_code=404, detail="Stylist not found")
        if not stylist.is_active:
            raise HTTPException(status_code=400, detail="Stylist is not currently available")

        if not slots.works_on(stylist.working_days, day):
            return []

        free = slots.available_slots(stylist.working_hours, self.repo.booked_slots(self.db, stylist_id, day))

        now = datetime.now()
        if day == now.date():
            free = [slot for slot in free if slot_datetime(day, slot) > now]
        return free

    def get_stats(self, date_from: Optional[date] = None, date_to: Optional[date] = None) -> dict:
        """Count and booked value per status; total_revenue sums total_price over every status"""
        by_status = {}
        total_count = 0
        total_revenue = 0.0
        for row in self.repo.status_breakdown(self.db, date_from=date_from, date_to=date_to):
            by_status[row.status] = {"count": row.count, "revenue": float(row.revenue or 0)}
            total_count += row.count
            total_revenue += float(row.revenue or 0)

        return {"by_status": by_status, "total_appointments": total_count, "total_revenue": total_revenue}
