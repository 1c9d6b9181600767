import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..auth import get_optional_user, require_admin
from ..database import get_db
from ..models import User
from ..models_booking import ACTIVE_APPOINTMENT_STATUSES, Appointment
from ..models_catalog import Service
from ..schemas import SERVICE_CATEGORY_PATTERN, ServiceCreate, ServiceResponse, ServiceUpdate, dump
from ..shared.responses import api_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/services", tags=["Services"])


def _get_service_or_404(db: Session, service_id: int) -> Service:
    service = db.query(Service).filter(Service.id == service_id).first()
    if not service:
        raise HTTPException(status_code=404, detail="Service not found")
    return service


def _ensure_unique_name(db: Session, name: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(Service.id).filter(func.lower(Service.name) == name.strip().lower())
    if exclude_id is not None:
        query = query.filter(Service.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=409, detail="Service with this name already exists")


@router.get("")
async def list_services(
    category: Optional[str] = Query(None, pattern=SERVICE_CATEGORY_PATTERN),
    location: Optional[str] = Query(None, pattern="^(home|salon)$"),
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    search: Optional[str] = None,
    include_inactive: bool = False,
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    query = db.query(Service)
    if not (include_inactive and current_user and current_user.is_admin):
        query = query.filter(Service.is_active.is_(True))
    if category:
        query = query.filter(Service.category == category)
    if location == "home":
        query = query.filter(Service.available_at_home.is_(True))
    elif location == "salon":
        query = query.filter(Service.available_at_salon.is_(True))
    if min_price is not None:
        query = query.filter(Service.price >= min_price)
    if max_price is not None:
        query = query.filter(Service.price <= max_price)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Service.name.ilike(pattern), Service.description.ilike(pattern)))

    services = query.order_by(Service.category, Service.name).all()
    return api_response(
        {"services": [dump(ServiceResponse, s) for s in services], "total": len(services)},
        "Services retrieved successfully",
    )


@router.get("/admin/stats")
async def get_service_stats(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    rows = (
        db.query(Service.category, func.count(Service.id), func.avg(Service.price))
        .group_by(Service.category)
        .all()
    )
    total = db.query(func.count(Service.id)).scalar() or 0
    active = db.query(func.count(Service.id)).filter(Service.is_active.is_(True)).scalar() or 0
    average_price = db.query(func.avg(Service.price)).scalar()

    return api_response(
        {
            "total_services": total,
            "active_services": active,
            "inactive_services": total - active,
            "average_price": round(float(average_price), 2) if average_price is not None else 0,
            "by_category": {
                category: {"count": count, "average_price": round(float(avg or 0), 2)}
                for category, count, avg in rows
            },
        },
        "Service statistics retrieved successfully",
    )


@router.get("/{service_id}")
async def get_service(
    service_id: int,
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    service = _get_service_or_404(db, service_id)
    if not service.is_active and not (current_user and current_user.is_admin):
        raise HTTPException(status_code=404, detail="Service not found")
    return api_response(dump(ServiceResponse, service), "Service retrieved successfully")


# ============================================================================
# ADMIN
# ============================================================================


@router.post("", status_code=201)
async def create_service(
    data: ServiceCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    _ensure_unique_name(db, data.name)
    if not (data.available_at_home or data.available_at_salon):
        raise HTTPException(status_code=400, detail="Service must be available at home or at the salon")

    service = Service(**{**data.model_dump(), "name": data.name.strip()})
    db.add(service)
    db.commit()
    db.refresh(service)
    logger.info(f"✅ Service created: {service.name} (id={service.id}) by admin {admin.id}")
    return api_response(dump(ServiceResponse, service), "Service created successfully")


@router.put("/{service_id}")
async def update_service(
    service_id: int,
    data: ServiceUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    service = _get_service_or_404(db, service_id)
    updates = data.model_dump(exclude_unset=True)
    if updates.get("name"):
        _ensure_unique_name(db, updates["name"], exclude_id=service.id)
        updates["name"] = updates["name"].strip()

    for field, value in updates.items():
        setattr(service, field, value)
    if not (service.available_at_home or service.available_at_salon):
        raise HTTPException(status_code=400, detail="Service must be available at home or at the salon")

    db.commit()
    db.refresh(service)
    logger.info(f"✏️ Service {service.id} updated by admin {admin.id}: {list(updates)}")
    return api_response(dump(ServiceResponse, service), "Service updated successfully")


@router.delete("/{service_id}")
async def delete_service(
    service_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    service = _get_service_or_404(db, service_id)
    active_bookings = (
        db.query(func.count(Appointment.id))
        .filter(Appointment.service_id == service.id, Appointment.status.in_(ACTIVE_APPOINTMENT_STATUSES))
        .scalar()
    )
    if active_bookings:
        raise HTTPException(
            status_code=400,
            detail=f"Cannot delete service with {active_bookings} active appointment(s). Deactivate it instead.",
        )

    db.delete(service)
    db.commit()
    logger.info(f"🗑️ Service {service_id} deleted by admin {admin.id}")
    return api_response({}, "Service deleted successfully")


@router.patch("/{service_id}/deactivate")
async def deactivate_service(
    service_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    service = _get_service_or_404(db, service_id)
    service.is_active = False
    db.commit()
    db.refresh(service)
    return api_response(dump(ServiceResponse, service), "Service deactivated successfully")


@router.patch("/{service_id}/reactivate")
async def reactivate_service(
    service_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    service = _get_service_or_404(db, service_id)
    service.is_active = True
    db.commit()
    db.refresh(service)
    return api_response(dump(ServiceResponse, service), "Service reactivated successfully")
