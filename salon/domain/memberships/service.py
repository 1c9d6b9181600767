"""Membership service - Package purchase, appointment credits, extension and cancellation"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta
from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import User
from ...models_booking import Membership
from ...security_utils import sanitize_text
from ...services.notification_service import notify_membership_confirmed
from ...shared.responses import paginate
from .repository import MembershipRepository, status_condition
from .schemas import MembershipAdminUpdate, MembershipPurchase

logger = logging.getLogger(__name__)


def compute_expiry(start: datetime, duration: int, unit: str) -> datetime:
    """Add a package duration to start; months and years are calendar aware"""
    if unit not in ("days", "weeks", "months", "years"):
        raise ValueError(f"Unsupported duration unit: {unit}")
    return start + relativedelta(**{unit: duration})


class MembershipService:
    """Service layer for membership business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = MembershipRepository()

    def _get_accessible(self, membership_id: int, user: User) -> Membership:
        membership = self.repo.get_by_id(self.db, membership_id)
        if not membership:
            raise HTTPException(status_code=404, detail="Membership not found")
        if not user.is_admin and membership.user_id != user.id:
            raise HTTPException(status_code=403, detail="You do not have access to this membership")
        return membership

    async def purchase(self, data: MembershipPurchase, user: User) -> Membership:
        package = self.repo.get_package(self.db, data.package_id)
        if not package:
            raise HTTPException(status_code=404, detail="Package not found")
        if not package.is_active:
            raise HTTPException(status_code=400, detail="Package is not available")

        if self.repo.find_open_for_package(self.db, user.id, package.id):
            raise HTTPException(status_code=400, detail="You already have an active membership for this package")

        start = datetime.now()
        membership = Membership(
            user_id=user.id,
            package_id=package.id,
            package_name=package.name,
            description=package.description,
            benefits=list(package.benefits or []),
            start_date=start,
            expiry_date=compute_expiry(start, package.duration, package.duration_unit),
            is_active=True,
            payment_status="paid" if data.payment_id else "pending",
            payment_id=data.payment_id,
            payment_method=data.payment_method,
            amount_paid=package.discounted_price,
            discount_applied=round(package.price - package.discounted_price, 2),
            remaining_appointments=package.max_appointments,
            used_appointments=0,
            notes=sanitize_text(data.notes) if data.notes else None,
        )
        membership = self.repo.create(self.db, membership)
        logger.info(f"👑 User {user.id} purchased package {package.id} ({package.name}), membership {membership.id}")

        await notify_membership_confirmed(membership)
        return membership

    def list_mine(self, user: User, status: Optional[str] = None) -> list[Membership]:
        return self.repo.list_query(self.db, user_id=user.id, status=status).all()

    def get_membership(self, membership_id: int, user: User) -> Membership:
        return self._get_accessible(membership_id, user)

    def use_appointment(self, membership_id: int, user: User) -> Membership:
        membership = self._get_accessible(membership_id, user)
        if not membership.is_valid:
            raise HTTPException(status_code=400, detail="Membership is not active")
        if membership.remaining_appointments == 0:
            raise HTTPException(status_code=400, detail="No remaining appointments")

        if membership.remaining_appointments is not None:
            membership.remaining_appointments -= 1
        membership.used_appointments = (membership.used_appointments or 0) + 1
        logger.info(f"🎟️ Membership {membership.id} appointment used, remaining={membership.remaining_appointments}")
        return self.repo.save(self.db, membership)

    def extend(self, membership_id: int, additional_days: int, admin: User, reason: Optional[str] = None) -> Membership:
        membership = self._get_accessible(membership_id, admin)
        if membership.status == "cancelled":
            raise HTTPException(status_code=400, detail="Cannot extend a cancelled membership")

        membership.expiry_date = membership.expiry_date + timedelta(days=additional_days)
        if reason:
            note = f"Extended by {additional_days} days: {sanitize_text(reason)}"
            membership.notes = f"{membership.notes}\n{note}"[:500] if membership.notes else note
        logger.info(f"⏩ Membership {membership.id} extended by {additional_days} days by admin {admin.id}")
        return self.repo.save(self.db, membership)

    def cancel(self, membership_id: int, user: User, reason: Optional[str] = None) -> Membership:
        membership = self._get_accessible(membership_id, user)
        if membership.status == "cancelled":
            raise HTTPException(status_code=400, detail="Membership is already cancelled")

        membership.is_active = False
        membership.cancelled_at = datetime.now()
        membership.cancellation_reason = sanitize_text(reason) if reason else "Cancelled by user"
        logger.info(f"🚫 Membership {membership.id} cancelled by user {user.id}")
        return self.repo.save(self.db, membership)

    def user_stats(self, user: User) -> dict:
        memberships = self.repo.list_query(self.db, user_id=user.id).all()
        statuses = [m.status for m in memberships]
        return {
            "total_memberships": len(memberships),
            "active_memberships": statuses.count("active"),
            "expired_memberships": statuses.count("expired"),
            "cancelled_memberships": statuses.count("cancelled"),
            "total_spent": self.repo.paid_revenue(self.db, user_id=user.id),
            "used_appointments": self.repo.used_appointments(self.db, user.id),
        }

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    def list_all(self, page: int = 1, limit: int = 10, **filters):
        return paginate(self.repo.list_query(self.db, **filters), page, limit)

    def admin_update(self, membership_id: int, data: MembershipAdminUpdate, admin: User) -> Membership:
        membership = self._get_accessible(membership_id, admin)
        updates = data.model_dump(exclude_unset=True)
        if "notes" in updates and updates["notes"]:
            updates["notes"] = sanitize_text(updates["notes"])
        for field, value in updates.items():
            setattr(membership, field, value)
        if updates.get("is_active") is True:
            membership.cancelled_at = None
            membership.cancellation_reason = None
        elif updates.get("is_active") is False and not membership.cancelled_at:
            membership.cancelled_at = datetime.now()
        logger.info(f"✏️ Membership {membership.id} updated by admin {admin.id}: {list(updates)}")
        return self.repo.save(self.db, membership)

    def admin_stats(self) -> dict:
        now = datetime.now()
        return {
            "total_memberships": self.repo.count(self.db),
            "active_memberships": self.repo.count(self.db, status_condition("active", now)),
            "expired_memberships": self.repo.count(self.db, status_condition("expired", now)),
            "cancelled_memberships": self.repo.count(self.db, status_condition("cancelled", now)),
            "pending_payment": self.repo.count(self.db, status_condition("pending_payment", now)),
            "total_revenue": self.repo.paid_revenue(self.db),
            "by_package": [
                {
                    "package_id": row.package_id,
                    "package_name": row.package_name,
                    "count": row.count,
                    "revenue": float(row.revenue or 0),
                }
                for row in self.repo.per_package(self.db)
            ],
        }

    def search(self, q: str, page: int = 1, limit: int = 10):
        return paginate(self.repo.search(self.db, q), page, limit)
