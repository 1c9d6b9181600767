import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..auth import get_optional_user, require_admin
from ..database import get_db
from ..domain.memberships.repository import status_condition
from ..models import User
from ..models_booking import Membership
from ..models_catalog import Package
from ..schemas import PackageCreate, PackageResponse, PackageUpdate, dump
from ..shared.responses import api_response, paginate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/packages", tags=["Packages"])


def _get_package_or_404(db: Session, package_id: int) -> Package:
    package = db.query(Package).filter(Package.id == package_id).first()
    if not package:
        raise HTTPException(status_code=404, detail="Package not found")
    return package


def _ensure_unique_name(db: Session, name: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(Package.id).filter(func.lower(Package.name) == name.strip().lower())
    if exclude_id is not None:
        query = query.filter(Package.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=409, detail="Package with this name already exists")


def _ordered(query):
    return query.order_by(Package.sort_order.asc(), Package.price.asc(), Package.id)


@router.get("")
async def list_packages(
    is_popular: Optional[bool] = None,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    query = db.query(Package).filter(Package.is_active.is_(True))
    if is_popular is not None:
        query = query.filter(Package.is_popular.is_(is_popular))
    if min_price is not None:
        query = query.filter(Package.price >= min_price)
    if max_price is not None:
        query = query.filter(Package.price <= max_price)

    packages, pagination = paginate(_ordered(query), page, limit)
    return api_response(
        {"packages": [dump(PackageResponse, p) for p in packages], "pagination": pagination},
        "Packages retrieved successfully",
    )


@router.get("/popular")
async def get_popular_packages(
    limit: int = Query(6, ge=1, le=50),
    db: Session = Depends(get_db),
):
    packages = (
        _ordered(db.query(Package).filter(Package.is_active.is_(True), Package.is_popular.is_(True)))
        .limit(limit)
        .all()
    )
    return api_response({"packages": [dump(PackageResponse, p) for p in packages]}, "Popular packages retrieved")


@router.get("/search")
async def search_packages(
    q: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
):
    pattern = f"%{q.strip()}%"
    packages = _ordered(
        db.query(Package).filter(
            Package.is_active.is_(True),
            or_(Package.name.ilike(pattern), Package.description.ilike(pattern)),
        )
    ).all()
    return api_response(
        {"packages": [dump(PackageResponse, p) for p in packages], "total": len(packages), "query": q},
        "Search results retrieved successfully",
    )


@router.get("/admin/stats")
async def get_package_stats(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    total = db.query(func.count(Package.id)).scalar() or 0
    active = db.query(func.count(Package.id)).filter(Package.is_active.is_(True)).scalar() or 0
    popular = db.query(func.count(Package.id)).filter(Package.is_popular.is_(True)).scalar() or 0
    average_price = db.query(func.avg(Package.price)).scalar()

    subscriber_rows = (
        db.query(Membership.package_id, func.count(Membership.id))
        .filter(Membership.payment_status == "paid")
        .group_by(Membership.package_id)
        .all()
    )

    return api_response(
        {
            "total_packages": total,
            "active_packages": active,
            "inactive_packages": total - active,
            "popular_packages": popular,
            "average_price": round(float(average_price), 2) if average_price is not None else 0,
            "subscribers_by_package": {package_id: count for package_id, count in subscriber_rows},
        },
        "Package statistics retrieved successfully",
    )


@router.post("", status_code=201)
async def create_package(
    data: PackageCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    _ensure_unique_name(db, data.name)
    package = Package(**{**data.model_dump(), "name": data.name.strip()})
    db.add(package)
    db.commit()
    db.refresh(package)
    logger.info(f"✅ Package created: {package.name} (id={package.id}) by admin {admin.id}")
    return api_response(dump(PackageResponse, package), "Package created successfully")


@router.get("/{package_id}")
async def get_package(
    package_id: int,
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    package = _get_package_or_404(db, package_id)
    if not package.is_active and not (current_user and current_user.is_admin):
        raise HTTPException(status_code=404, detail="Package not found")
    return api_response(dump(PackageResponse, package), "Package retrieved successfully")


@router.put("/{package_id}")
async def update_package(
    package_id: int,
    data: PackageUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    package = _get_package_or_404(db, package_id)
    updates = data.model_dump(exclude_unset=True)
    if updates.get("name"):
        _ensure_unique_name(db, updates["name"], exclude_id=package.id)
        updates["name"] = updates["name"].strip()

    for field, value in updates.items():
        setattr(package, field, value)
    db.commit()
    db.refresh(package)
    logger.info(f"✏️ Package {package.id} updated by admin {admin.id}: {list(updates)}")
    return api_response(dump(PackageResponse, package), "Package updated successfully")


@router.delete("/{package_id}")
async def delete_package(
    package_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    package = _get_package_or_404(db, package_id)
    live_members = (
        db.query(func.count(Membership.id))
        .filter(Membership.package_id == package.id, status_condition("active", datetime.now()))
        .scalar()
    )
    if live_members:
        raise HTTPException(
            status_code=400,
            detail=f"Cannot delete package with {live_members} active membership(s). Deactivate it instead.",
        )

    db.delete(package)
    db.commit()
    logger.info(f"🗑️ Package {package_id} deleted by admin {admin.id}")
    return api_response({}, "Package deleted successfully")
