"""
Profile API Routes

Self-service profile, preferences, avatar upload, activity feed and data export.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..domain.appointments.schemas import AppointmentResponse
from ..domain.memberships.schemas import MembershipResponse
from ..domain.orders.schemas import OrderResponse
from ..models import Address, User, default_preferences
from ..models_booking import Appointment, Membership
from ..models_catalog import Review
from ..models_commerce import Order
from ..schemas import (
    AddressResponse,
    ChangePasswordRequest,
    PreferencesUpdate,
    ProfileUpdate,
    ReviewResponse,
    UserResponse,
    dump,
)
from ..security_utils import hash_password_bcrypt, sanitize_text, verify_password_bcrypt
from ..services import storage_service
from ..shared.responses import api_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/profile", tags=["Profile"])

ACTIVITY_LIMIT = 10


@router.get("")
async def get_profile(current_user: User = Depends(get_current_user)):
    return api_response(dump(UserResponse, current_user), "Profile retrieved successfully")


@router.put("")
async def update_profile(
    data: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    updates = data.model_dump(exclude_unset=True)
    if updates.get("bio"):
        updates["bio"] = sanitize_text(updates["bio"])
    for field, value in updates.items():
        setattr(current_user, field, value)
    db.commit()
    db.refresh(current_user)
    logger.info(f"✏️ Profile updated for user {current_user.id}: {list(updates)}")
    return api_response(dump(UserResponse, current_user), "Profile updated successfully")


@router.put("/change-password")
async def change_password(
    data: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not verify_password_bcrypt(data.old_password, current_user.password_hash):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    if data.old_password == data.new_password:
        raise HTTPException(status_code=400, detail="New password must be different from the current password")

    current_user.password_hash = hash_password_bcrypt(data.new_password)
    # Existing refresh tokens stop working after a password change
    current_user.refresh_token = None
    db.commit()
    logger.info(f"🔑 Password changed for user {current_user.id}")
    return api_response({}, "Password changed successfully")


# ============================================================================
# PREFERENCES
# ============================================================================


@router.get("/preferences")
async def get_preferences(current_user: User = Depends(get_current_user)):
    preferences = {**default_preferences(), **(current_user.preferences or {})}
    return api_response(preferences, "Preferences retrieved successfully")


@router.put("/preferences")
async def update_preferences(
    data: PreferencesUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    preferences = {**default_preferences(), **(current_user.preferences or {})}
    preferences.update(data.model_dump(exclude_unset=True, exclude_none=True))
    current_user.preferences = preferences
    db.commit()
    db.refresh(current_user)
    return api_response(current_user.preferences, "Preferences updated successfully")


# ============================================================================
# STATS, ACTIVITY & EXPORT
# ============================================================================


@router.get("/stats")
async def get_profile_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    appointment_rows = (
        db.query(Appointment.status, func.count(Appointment.id))
        .filter(Appointment.user_id == current_user.id)
        .group_by(Appointment.status)
        .all()
    )
    appointments_by_status = {status: count for status, count in appointment_rows}

    orders = db.query(Order).filter(Order.user_id == current_user.id).all()
    order_spend = sum(o.total_amount for o in orders if o.payment_status == "completed")

    memberships = db.query(Membership).filter(Membership.user_id == current_user.id).all()
    membership_spend = sum(m.amount_paid for m in memberships if m.payment_status == "paid")

    completed_appointment_spend = (
        db.query(func.coalesce(func.sum(Appointment.total_price), 0))
        .filter(Appointment.user_id == current_user.id, Appointment.status == "completed")
        .scalar()
    )

    stats = {
        "appointments": {
            "total": sum(appointments_by_status.values()),
            "completed": appointments_by_status.get("completed", 0),
            "upcoming": sum(appointments_by_status.get(s, 0) for s in ("pending", "confirmed")),
            "cancelled": appointments_by_status.get("cancelled", 0),
        },
        "orders": {
            "total": len(orders),
            "delivered": sum(1 for o in orders if o.status == "delivered"),
        },
        "memberships": {
            "total": len(memberships),
            "active": sum(1 for m in memberships if m.is_valid),
        },
        "total_spent": round(order_spend + membership_spend + float(completed_appointment_spend or 0), 2),
        "member_since": current_user.created_at.isoformat() if current_user.created_at else None,
    }
    return api_response(stats, "Profile statistics retrieved successfully")


@router.post("/picture")
async def upload_profile_picture(
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    _, url = await storage_service.upload_image(file, f"profile-pictures/{current_user.id}")
    current_user.profile_picture = url
    db.commit()
    db.refresh(current_user)
    logger.info(f"🖼️ Profile picture updated for user {current_user.id}")
    return api_response({"profile_picture": url}, "Profile picture uploaded successfully")


@router.get("/activity")
async def get_activity(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Latest appointments, orders and reviews merged newest first"""
    activity = []

    appointments = (
        db.query(Appointment)
        .filter(Appointment.user_id == current_user.id)
        .order_by(Appointment.created_at.desc())
        .limit(ACTIVITY_LIMIT)
        .all()
    )
    for a in appointments:
        activity.append(
            {
                "type": "appointment",
                "id": a.id,
                "title": f"Appointment for {a.service.name if a.service else 'a service'}",
                "status": a.status,
                "timestamp": a.created_at,
            }
        )

    orders = (
        db.query(Order)
        .filter(Order.user_id == current_user.id)
        .order_by(Order.created_at.desc())
        .limit(ACTIVITY_LIMIT)
        .all()
    )
    for o in orders:
        activity.append(
            {
                "type": "order",
                "id": o.id,
                "title": f"Order {o.order_number}",
                "status": o.status,
                "amount": o.total_amount,
                "timestamp": o.created_at,
            }
        )

    reviews = (
        db.query(Review)
        .filter(Review.user_id == current_user.id, Review.is_active.is_(True))
        .order_by(Review.created_at.desc())
        .limit(ACTIVITY_LIMIT)
        .all()
    )
    for r in reviews:
        activity.append(
            {
                "type": "review",
                "id": r.id,
                "title": f"Reviewed a {r.target_type}",
                "rating": r.rating,
                "timestamp": r.created_at,
            }
        )

    activity.sort(key=lambda item: item["timestamp"] or datetime.min, reverse=True)
    for item in activity[:ACTIVITY_LIMIT]:
        item["timestamp"] = item["timestamp"].isoformat() if item["timestamp"] else None
    return api_response({"activity": activity[:ACTIVITY_LIMIT]}, "Activity retrieved successfully")


@router.get("/export")
async def export_data(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    addresses = db.query(Address).filter(Address.user_id == current_user.id).all()
    appointments = db.query(Appointment).filter(Appointment.user_id == current_user.id).all()
    orders = db.query(Order).filter(Order.user_id == current_user.id).all()
    memberships = db.query(Membership).filter(Membership.user_id == current_user.id).all()
    reviews = db.query(Review).filter(Review.user_id == current_user.id).all()

    logger.info(f"📤 Data export generated for user {current_user.id}")
    return api_response(
        {
            "profile": {**dump(UserResponse, current_user), "preferences": current_user.preferences},
            "addresses": [dump(AddressResponse, a) for a in addresses],
            "appointments": [dump(AppointmentResponse, a) for a in appointments],
            "orders": [dump(OrderResponse, o) for o in orders],
            "memberships": [dump(MembershipResponse, m) for m in memberships],
            "reviews": [dump(ReviewResponse, r) for r in reviews],
            "exported_at": datetime.now().isoformat(),
        },
        "Data exported successfully",
    )
