"""
Admin Dashboard Routes
Aggregated statistics, recent activity and revenue analytics for the admin panel
"""

import logging
from collections import OrderedDict
from datetime import date, datetime, timedelta

from dateutil.relativedelta import relativedelta
from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ..auth import require_admin
from ..database import get_db
from ..domain.appointments.schemas import AppointmentResponse
from ..domain.memberships.repository import status_condition
from ..models import Enquiry, User
from ..models_booking import ACTIVE_APPOINTMENT_STATUSES, Appointment, Membership
from ..models_catalog import Product
from ..models_commerce import Order
from ..schemas import dump
from ..shared.responses import api_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/dashboard", tags=["Admin Dashboard"])

OVERVIEW_LIST_SIZE = 5
PAID_ORDER = Order.payment_details["status"].as_string() == "completed"


def _with_relations(query):
    return query.options(
        joinedload(Appointment.service),
        joinedload(Appointment.stylist),
        joinedload(Appointment.user),
    )


def _recent_bookings(db: Session, limit: int) -> list:
    appointments = (
        _with_relations(db.query(Appointment))
        .order_by(Appointment.created_at.desc(), Appointment.id.desc())
        .limit(limit)
        .all()
    )
    return [dump(AppointmentResponse, a) for a in appointments]


def _upcoming_appointments(db: Session, limit: int) -> list:
    appointments = (
        _with_relations(db.query(Appointment))
        .filter(Appointment.date >= date.today(), Appointment.status.in_(("pending", "confirmed")))
        .order_by(Appointment.date.asc(), Appointment.time_slot.asc())
        .limit(limit)
        .all()
    )
    return [dump(AppointmentResponse, a) for a in appointments]


def _dashboard_stats(db: Session) -> dict:
    today = date.today()
    users_by_role = dict(
        db.query(User.role, func.count(User.id)).filter(User.is_active.is_(True)).group_by(User.role).all()
    )

    total_appointments = db.query(func.count(Appointment.id)).scalar() or 0
    todays_appointments = db.query(func.count(Appointment.id)).filter(Appointment.date == today).scalar() or 0
    pending_appointments = (
        db.query(func.count(Appointment.id)).filter(Appointment.status == "pending").scalar() or 0
    )
    upcoming = (
        db.query(func.count(Appointment.id))
        .filter(Appointment.date >= today, Appointment.status.in_(ACTIVE_APPOINTMENT_STATUSES))
        .scalar()
        or 0
    )

    total_orders = db.query(func.count(Order.id)).scalar() or 0
    pending_orders = db.query(func.count(Order.id)).filter(Order.status == "pending").scalar() or 0
    order_revenue = db.query(func.coalesce(func.sum(Order.total_amount), 0)).filter(PAID_ORDER).scalar()
    appointment_revenue = (
        db.query(func.coalesce(func.sum(Appointment.total_price), 0))
        .filter(Appointment.status == "completed")
        .scalar()
    )

    total_products = db.query(func.count(Product.id)).filter(Product.is_active.is_(True)).scalar() or 0
    low_stock = (
        db.query(func.count(Product.id))
        .filter(Product.is_active.is_(True), Product.stock <= Product.reorder_level)
        .scalar()
        or 0
    )

    active_memberships = (
        db.query(func.count(Membership.id)).filter(status_condition("active", datetime.now())).scalar() or 0
    )
    new_enquiries = db.query(func.count(Enquiry.id)).filter(Enquiry.status == "new").scalar() or 0

    return {
        "users": {
            "total": sum(users_by_role.values()),
            "by_role": users_by_role,
        },
        "appointments": {
            "total": total_appointments,
            "today": todays_appointments,
            "pending": pending_appointments,
            "upcoming": upcoming,
        },
        "orders": {
            "total": total_orders,
            "pending": pending_orders,
        },
        "revenue": {
            "orders": round(float(order_revenue or 0), 2),
            "appointments": round(float(appointment_revenue or 0), 2),
            "total": round(float(order_revenue or 0) + float(appointment_revenue or 0), 2),
        },
        "products": {
            "total": total_products,
            "low_stock": low_stock,
        },
        "memberships": {"active": active_memberships},
        "enquiries": {"new": new_enquiries},
    }


@router.get("/overview")
async def get_dashboard_overview(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return api_response(
        {
            "stats": _dashboard_stats(db),
            "recent_bookings": _recent_bookings(db, OVERVIEW_LIST_SIZE),
            "upcoming_appointments": _upcoming_appointments(db, OVERVIEW_LIST_SIZE),
        },
        "Dashboard overview retrieved successfully",
    )


@router.get("/stats")
async def get_dashboard_stats(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return api_response(_dashboard_stats(db), "Dashboard statistics retrieved successfully")


@router.get("/recent-bookings")
async def get_recent_bookings(
    limit: int = Query(10, ge=1, le=50),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    bookings = _recent_bookings(db, limit)
    return api_response({"bookings": bookings, "total": len(bookings)}, "Recent bookings retrieved successfully")


@router.get("/upcoming-appointments")
async def get_upcoming_appointments(
    limit: int = Query(10, ge=1, le=50),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    appointments = _upcoming_appointments(db, limit)
    return api_response(
        {"appointments": appointments, "total": len(appointments)},
        "Upcoming appointments retrieved successfully",
    )


# ============================================================================
# REVENUE ANALYTICS
# ============================================================================


def _revenue_buckets(period: str, today: date) -> tuple[date, "OrderedDict[str, dict]"]:
    """Empty buckets for the period: one per day for week/month, one per month for year"""
    buckets: OrderedDict[str, dict] = OrderedDict()
    if period == "year":
        start = (today - relativedelta(months=11)).replace(day=1)
        for offset in range(12):
            key = (start + relativedelta(months=offset)).strftime("%Y-%m")
            buckets[key] = {"appointments": 0.0, "orders": 0.0}
        return start, buckets

    days = 7 if period == "week" else 30
    start = today - timedelta(days=days - 1)
    for offset in range(days):
        buckets[(start + timedelta(days=offset)).isoformat()] = {"appointments": 0.0, "orders": 0.0}
    return start, buckets


@router.get("/revenue-analytics")
async def get_revenue_analytics(
    period: str = Query("month", pattern="^(week|month|year)$"),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    today = date.today()
    start, buckets = _revenue_buckets(period, today)
    key_format = "%Y-%m" if period == "year" else "%Y-%m-%d"

    appointment_rows = (
        db.query(Appointment.date, Appointment.total_price)
        .filter(Appointment.status == "completed", Appointment.date >= start, Appointment.date <= today)
        .all()
    )
    for day, amount in appointment_rows:
        key = day.strftime(key_format)
        if key in buckets:
            buckets[key]["appointments"] += float(amount or 0)

    order_rows = (
        db.query(Order.created_at, Order.total_amount)
        .filter(PAID_ORDER, Order.created_at >= datetime.combine(start, datetime.min.time()))
        .all()
    )
    for created_at, amount in order_rows:
        key = created_at.strftime(key_format)
        if key in buckets:
            buckets[key]["orders"] += float(amount or 0)

    series = [
        {
            "period": key,
            "appointments": round(values["appointments"], 2),
            "orders": round(values["orders"], 2),
            "total": round(values["appointments"] + values["orders"], 2),
        }
        for key, values in buckets.items()
    ]
    totals = {
        "appointments": round(sum(p["appointments"] for p in series), 2),
        "orders": round(sum(p["orders"] for p in series), 2),
    }
    totals["total"] = round(totals["appointments"] + totals["orders"], 2)

    return api_response(
        {"period": period, "start_date": start.isoformat(), "end_date": today.isoformat(), "series": series, "totals": totals},
        "Revenue analytics retrieved successfully",
    )
