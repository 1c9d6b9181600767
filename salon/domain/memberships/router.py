"""Membership router - FastAPI endpoints for package memberships"""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_admin
from ...database import get_db
from ...models import User
from ...schemas import dump
from ...shared.responses import api_response
from .schemas import (
    MEMBERSHIP_STATUS_PATTERN,
    MembershipAdminResponse,
    MembershipAdminUpdate,
    MembershipCancel,
    MembershipExtend,
    MembershipPurchase,
    MembershipResponse,
)
from .service import MembershipService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/memberships", tags=["Memberships"])


def get_membership_service(db: Session = Depends(get_db)) -> MembershipService:
    """Dependency injection for MembershipService"""
    return MembershipService(db)


@router.post("/purchase", status_code=201)
async def purchase_membership(
    data: MembershipPurchase,
    current_user: User = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service),
):
    membership = await service.purchase(data, current_user)
    return api_response(dump(MembershipResponse, membership), "Membership purchased successfully")


@router.get("/my-memberships")
async def get_my_memberships(
    status: Optional[str] = Query(None, pattern=MEMBERSHIP_STATUS_PATTERN),
    current_user: User = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service),
):
    memberships = service.list_mine(current_user, status)
    return api_response(
        {"memberships": [dump(MembershipResponse, m) for m in memberships], "total": len(memberships)},
        "Memberships retrieved successfully",
    )


@router.get("/stats")
async def get_my_membership_stats(
    current_user: User = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service),
):
    return api_response(service.user_stats(current_user), "Membership statistics retrieved successfully")


# ============================================================================
# ADMIN
# ============================================================================


@router.get("/admin/all")
async def get_all_memberships(
    status: Optional[str] = Query(None, pattern=MEMBERSHIP_STATUS_PATTERN),
    package_id: Optional[int] = None,
    user_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    admin: User = Depends(require_admin),
    service: MembershipService = Depends(get_membership_service),
):
    memberships, pagination = service.list_all(
        page=page, limit=limit, status=status, package_id=package_id, user_id=user_id
    )
    return api_response(
        {"memberships": [dump(MembershipAdminResponse, m) for m in memberships], "pagination": pagination},
        "Memberships retrieved successfully",
    )


@router.get("/admin/stats")
async def get_membership_admin_stats(
    admin: User = Depends(require_admin),
    service: MembershipService = Depends(get_membership_service),
):
    return api_response(service.admin_stats(), "Membership statistics retrieved successfully")


@router.get("/admin/search")
async def search_memberships(
    q: str = Query(..., min_length=2),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    admin: User = Depends(require_admin),
    service: MembershipService = Depends(get_membership_service),
):
    memberships, pagination = service.search(q, page, limit)
    return api_response(
        {"memberships": [dump(MembershipAdminResponse, m) for m in memberships], "pagination": pagination},
        "Search results retrieved successfully",
    )


@router.put("/admin/{membership_id}")
async def admin_update_membership(
    membership_id: int,
    data: MembershipAdminUpdate,
    admin: User = Depends(require_admin),
    service: MembershipService = Depends(get_membership_service),
):
    membership = service.admin_update(membership_id, data, admin)
    return api_response(dump(MembershipAdminResponse, membership), "Membership updated successfully")


# ============================================================================
# SINGLE MEMBERSHIP
# ============================================================================


@router.get("/{membership_id}")
async def get_membership(
    membership_id: int,
    current_user: User = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service),
):
    membership = service.get_membership(membership_id, current_user)
    return api_response(dump(MembershipResponse, membership), "Membership retrieved successfully")


@router.post("/{membership_id}/use-appointment")
async def use_membership_appointment(
    membership_id: int,
    current_user: User = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service),
):
    membership = service.use_appointment(membership_id, current_user)
    return api_response(dump(MembershipResponse, membership), "Appointment credit used")


@router.patch("/{membership_id}/extend")
async def extend_membership(
    membership_id: int,
    data: MembershipExtend,
    admin: User = Depends(require_admin),
    service: MembershipService = Depends(get_membership_service),
):
    membership = service.extend(membership_id, data.additional_days, admin, data.reason)
    return api_response(dump(MembershipResponse, membership), "Membership extended successfully")


@router.patch("/{membership_id}/cancel")
async def cancel_membership(
    membership_id: int,
    data: Optional[MembershipCancel] = Body(None),
    current_user: User = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service),
):
    membership = service.cancel(membership_id, current_user, data.reason if data else None)
    return api_response(dump(MembershipResponse, membership), "Membership cancelled successfully")
