"""Appointment repository - Database operations for appointments"""

from datetime import date
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Query, Session, joinedload

from ...models_booking import ACTIVE_APPOINTMENT_STATUSES, Appointment
from ...models_catalog import Service, Stylist

SORTABLE_FIELDS = {
    "date": Appointment.date,
    "created_at": Appointment.created_at,
    "total_price": Appointment.total_price,
}


class AppointmentRepository:
    """Repository for appointment database operations"""

    @staticmethod
    def get_by_id(db: Session, appointment_id: int) -> Optional[Appointment]:
        return (
            db.query(Appointment)
            .options(
                joinedload(Appointment.service),
                joinedload(Appointment.stylist),
                joinedload(Appointment.user),
            )
            .filter(Appointment.id == appointment_id)
            .first()
        )

    @staticmethod
    def get_service(db: Session, service_id: int) -> Optional[Service]:
        return db.query(Service).filter(Service.id == service_id).first()

    @staticmethod
    def get_stylist(db: Session, stylist_id: int) -> Optional[Stylist]:
        return db.query(Stylist).filter(Stylist.id == stylist_id).first()

    @staticmethod
    def find_conflict(
        db: Session,
        day: date,
        time_slot: str,
        stylist_id: Optional[int] = None,
        user_id: Optional[int] = None,
        exclude_id: Optional[int] = None,
    ) -> Optional[Appointment]:
        """An active appointment already holding (stylist|user, date, time_slot)"""
        query = db.query(Appointment).filter(
            Appointment.date == day,
            Appointment.time_slot == time_slot,
            Appointment.status.in_(ACTIVE_APPOINTMENT_STATUSES),
        )
        if stylist_id is not None:
            query = query.filter(Appointment.stylist_id == stylist_id)
        if user_id is not None:
            query = query.filter(Appointment.user_id == user_id)
        if exclude_id is not None:
            query = query.filter(Appointment.id != exclude_id)
        return query.first()

    @staticmethod
    def booked_slots(db: Session, stylist_id: int, day: date) -> list[str]:
        rows = (
            db.query(Appointment.time_slot)
            .filter(
                Appointment.stylist_id == stylist_id,
                Appointment.date == day,
                Appointment.status.in_(ACTIVE_APPOINTMENT_STATUSES),
            )
            .all()
        )
        return [row.time_slot for row in rows]

    @staticmethod
    def list_query(
        db: Session,
        user_id: Optional[int] = None,
        status: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        stylist_id: Optional[int] = None,
        service_id: Optional[int] = None,
        sort_by: str = "date",
        sort_order: str = "desc",
    ) -> Query:
        query = db.query(Appointment).options(
            joinedload(Appointment.service),
            joinedload(Appointment.stylist),
            joinedload(Appointment.user),
        )
        if user_id is not None:
            query = query.filter(Appointment.user_id == user_id)
        if status:
            query = query.filter(Appointment.status == status)
        if date_from:
            query = query.filter(Appointment.date >= date_from)
        if date_to:
            query = query.filter(Appointment.date <= date_to)
        if stylist_id:
            query = query.filter(Appointment.stylist_id == stylist_id)
        if service_id:
            query = query.filter(Appointment.service_id == service_id)

        column = SORTABLE_FIELDS.get(sort_by, Appointment.date)
        ordering = column.asc() if sort_order == "asc" else column.desc()
        secondary = Appointment.time_slot.asc() if sort_order == "asc" else Appointment.time_slot.desc()
        return query.order_by(ordering, secondary, Appointment.id)

    @staticmethod
    def create(db: Session, **data) -> Appointment:
        appointment = Appointment(**data)
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    @staticmethod
    def save(db: Session, appointment: Appointment) -> Appointment:
        db.commit()
        db.refresh(appointment)
        return appointment

    @staticmethod
    def delete(db: Session, appointment: Appointment) -> None:
        db.delete(appointment)
        db.commit()

    @staticmethod
    def status_breakdown(db: Session, date_from: Optional[date] = None, date_to: Optional[date] = None) -> list:
        query = db.query(
            Appointment.status,
            func.count(Appointment.id).label("count"),
            func.coalesce(func.sum(Appointment.total_price), 0).label("revenue"),
        )
        if date_from:
            query = query.filter(Appointment.date >= date_from)
        if date_to:
            query = query.filter(Appointment.date <= date_to)
        return query.group_by(Appointment.status).all()
