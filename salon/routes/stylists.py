import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..auth import get_optional_user, require_admin
from ..database import get_db
from ..models import User
from ..models_booking import ACTIVE_APPOINTMENT_STATUSES, Appointment
from ..models_catalog import Stylist
from ..schemas import StylistCreate, StylistRatingUpdate, StylistResponse, StylistUpdate, dump
from ..security_utils import sanitize_text
from ..shared.responses import api_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stylists", tags=["Stylists"])


def _get_stylist_or_404(db: Session, stylist_id: int) -> Stylist:
    stylist = db.query(Stylist).filter(Stylist.id == stylist_id).first()
    if not stylist:
        raise HTTPException(status_code=404, detail="Stylist not found")
    return stylist


def _ensure_unique_email(db: Session, email: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(Stylist.id).filter(Stylist.email == email)
    if exclude_id is not None:
        query = query.filter(Stylist.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=409, detail="Stylist with this email already exists")


@router.get("")
async def list_stylists(
    specialty: Optional[str] = None,
    location: Optional[str] = Query(None, pattern="^(home|salon)$"),
    include_inactive: bool = False,
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    query = db.query(Stylist)
    if not (include_inactive and current_user and current_user.is_admin):
        query = query.filter(Stylist.is_active.is_(True))
    if location == "home":
        query = query.filter(Stylist.available_for_home.is_(True))
    elif location == "salon":
        query = query.filter(Stylist.available_for_salon.is_(True))

    stylists = query.order_by(Stylist.rating.desc(), Stylist.name).all()
    if specialty:
        # specialties is a JSON list; match case-insensitively in Python
        wanted = specialty.strip().lower()
        stylists = [s for s in stylists if any(wanted in sp.lower() for sp in s.specialties or [])]

    return api_response(
        {"stylists": [dump(StylistResponse, s) for s in stylists], "total": len(stylists)},
        "Stylists retrieved successfully",
    )


@router.get("/admin/stats")
async def get_stylist_stats(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    stylists = db.query(Stylist).all()
    active = [s for s in stylists if s.is_active]

    specialties: dict[str, int] = {}
    for s in stylists:
        for sp in s.specialties or []:
            specialties[sp] = specialties.get(sp, 0) + 1

    booking_rows = (
        db.query(Appointment.stylist_id, func.count(Appointment.id))
        .filter(Appointment.stylist_id.isnot(None))
        .group_by(Appointment.stylist_id)
        .all()
    )

    return api_response(
        {
            "total_stylists": len(stylists),
            "active_stylists": len(active),
            "inactive_stylists": len(stylists) - len(active),
            "average_rating": round(sum(s.rating for s in stylists) / len(stylists), 2) if stylists else 0,
            "average_experience": (
                round(sum(s.experience for s in stylists) / len(stylists), 1) if stylists else 0
            ),
            "home_service_stylists": sum(1 for s in active if s.available_for_home),
            "by_specialty": specialties,
            "appointments_by_stylist": {stylist_id: count for stylist_id, count in booking_rows},
        },
        "Stylist statistics retrieved successfully",
    )


@router.get("/{stylist_id}")
async def get_stylist(
    stylist_id: int,
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    stylist = _get_stylist_or_404(db, stylist_id)
    if not stylist.is_active and not (current_user and current_user.is_admin):
        raise HTTPException(status_code=404, detail="Stylist not found")
    return api_response(dump(StylistResponse, stylist), "Stylist retrieved successfully")


# ============================================================================
# ADMIN
# ============================================================================


@router.post("", status_code=201)
async def create_stylist(
    data: StylistCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    _ensure_unique_email(db, data.email)
    values = data.model_dump()
    if values.get("bio"):
        values["bio"] = sanitize_text(values["bio"])

    stylist = Stylist(**values)
    db.add(stylist)
    db.commit()
    db.refresh(stylist)
    logger.info(f"✅ Stylist created: {stylist.name} (id={stylist.id}) by admin {admin.id}")
    return api_response(dump(StylistResponse, stylist), "Stylist created successfully")


@router.put("/{stylist_id}")
async def update_stylist(
    stylist_id: int,
    data: StylistUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    stylist = _get_stylist_or_404(db, stylist_id)
    updates = data.model_dump(exclude_unset=True)
    if updates.get("email"):
        _ensure_unique_email(db, updates["email"], exclude_id=stylist.id)
    if updates.get("bio"):
        updates["bio"] = sanitize_text(updates["bio"])

    for field, value in updates.items():
        setattr(stylist, field, value)
    db.commit()
    db.refresh(stylist)
    logger.info(f"✏️ Stylist {stylist.id} updated by admin {admin.id}: {list(updates)}")
    return api_response(dump(StylistResponse, stylist), "Stylist updated successfully")


@router.delete("/{stylist_id}")
async def delete_stylist(
    stylist_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    stylist = _get_stylist_or_404(db, stylist_id)
    active_bookings = (
        db.query(func.count(Appointment.id))
        .filter(Appointment.stylist_id == stylist.id, Appointment.status.in_(ACTIVE_APPOINTMENT_STATUSES))
        .scalar()
    )
    if active_bookings:
        raise HTTPException(
            status_code=400,
            detail=f"Cannot delete stylist with {active_bookings} active appointment(s). Deactivate them instead.",
        )

    db.delete(stylist)
    db.commit()
    logger.info(f"🗑️ Stylist {stylist_id} deleted by admin {admin.id}")
    return api_response({}, "Stylist deleted successfully")


@router.patch("/{stylist_id}/deactivate")
async def deactivate_stylist(
    stylist_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    stylist = _get_stylist_or_404(db, stylist_id)
    stylist.is_active = False
    db.commit()
    db.refresh(stylist)
    return api_response(dump(StylistResponse, stylist), "Stylist deactivated successfully")


@router.patch("/{stylist_id}/reactivate")
async def reactivate_stylist(
    stylist_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    stylist = _get_stylist_or_404(db, stylist_id)
    stylist.is_active = True
    db.commit()
    db.refresh(stylist)
    return api_response(dump(StylistResponse, stylist), "Stylist reactivated successfully")


@router.patch("/{stylist_id}/rating")
async def update_stylist_rating(
    stylist_id: int,
    data: StylistRatingUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    stylist = _get_stylist_or_404(db, stylist_id)
    stylist.rating = data.rating
    db.commit()
    db.refresh(stylist)
    return api_response(dump(StylistResponse, stylist), "Stylist rating updated successfully")
