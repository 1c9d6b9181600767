"""Membership repository - Database operations for memberships"""

from datetime import datetime
from typing import Optional

from sqlalchemy import and_, case, func, or_
from sqlalchemy.orm import Query, Session, joinedload

from ...models import User
from ...models_booking import Membership
from ...models_catalog import Package


def status_condition(status: str, now: datetime):
    """SQL condition matching Membership.status for a given derived status"""
    cancelled = or_(Membership.cancelled_at.isnot(None), Membership.is_active.is_(False))
    live = and_(Membership.cancelled_at.is_(None), Membership.is_active.is_(True))
    paid = and_(live, Membership.payment_status == "paid")

    if status == "cancelled":
        return cancelled
    if status == "pending_payment":
        return and_(live, Membership.payment_status != "paid")
    if status == "not_started":
        return and_(paid, Membership.start_date > now)
    if status == "expired":
        return and_(paid, Membership.start_date <= now, Membership.expiry_date < now)
    return and_(paid, Membership.start_date <= now, Membership.expiry_date >= now)


class MembershipRepository:
    """Repository for membership database operations"""

    @staticmethod
    def get_by_id(db: Session, membership_id: int) -> Optional[Membership]:
        return (
            db.query(Membership)
            .options(joinedload(Membership.user))
            .filter(Membership.id == membership_id)
            .first()
        )

    @staticmethod
    def get_package(db: Session, package_id: int) -> Optional[Package]:
        return db.query(Package).filter(Package.id == package_id).first()

    @staticmethod
    def find_open_for_package(db: Session, user_id: int, package_id: int) -> Optional[Membership]:
        """A live membership for the package whose payment is paid or still pending"""
        return (
            db.query(Membership)
            .filter(
                Membership.user_id == user_id,
                Membership.package_id == package_id,
                Membership.is_active.is_(True),
                Membership.cancelled_at.is_(None),
                Membership.payment_status.in_(("paid", "pending")),
                Membership.expiry_date >= datetime.now(),
            )
            .first()
        )

    @staticmethod
    def list_query(
        db: Session,
        user_id: Optional[int] = None,
        status: Optional[str] = None,
        package_id: Optional[int] = None,
    ) -> Query:
        query = db.query(Membership).options(joinedload(Membership.user))
        if user_id is not None:
            query = query.filter(Membership.user_id == user_id)
        if package_id is not None:
            query = query.filter(Membership.package_id == package_id)
        if status:
            query = query.filter(status_condition(status, datetime.now()))
        return query.order_by(Membership.created_at.desc(), Membership.id.desc())

    @staticmethod
    def search(db: Session, q: str) -> Query:
        pattern = f"%{q}%"
        return (
            db.query(Membership)
            .join(User, Membership.user_id == User.id)
            .options(joinedload(Membership.user))
            .filter(
                or_(
                    Membership.package_name.ilike(pattern),
                    User.name.ilike(pattern),
                    User.email.ilike(pattern),
                )
            )
            .order_by(Membership.created_at.desc(), Membership.id.desc())
        )

    @staticmethod
    def create(db: Session, membership: Membership) -> Membership:
        db.add(membership)
        db.commit()
        db.refresh(membership)
        return membership

    @staticmethod
    def save(db: Session, membership: Membership) -> Membership:
        db.commit()
        db.refresh(membership)
        return membership

    @staticmethod
    def count(db: Session, *conditions) -> int:
        return db.query(func.count(Membership.id)).filter(*conditions).scalar() or 0

    @staticmethod
    def paid_revenue(db: Session, user_id: Optional[int] = None) -> float:
        query = db.query(func.coalesce(func.sum(Membership.amount_paid), 0)).filter(Membership.payment_status == "paid")
        if user_id is not None:
            query = query.filter(Membership.user_id == user_id)
        return float(query.scalar() or 0)

    @staticmethod
    def used_appointments(db: Session, user_id: int) -> int:
        total = (
            db.query(func.coalesce(func.sum(Membership.used_appointments), 0))
            .filter(Membership.user_id == user_id)
            .scalar()
        )
        return int(total or 0)

    @staticmethod
    def per_package(db: Session) -> list:
        return (
            db.query(
                Membership.package_id,
                Membership.package_name,
                func.count(Membership.id).label("count"),
                func.coalesce(
                    func.sum(case((Membership.payment_status == "paid", Membership.amount_paid), else_=0)), 0
                ).label("revenue"),
            )
            .group_by(Membership.package_id, Membership.package_name)
            .all()
        )
