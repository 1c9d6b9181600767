from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

APPOINTMENT_STATUSES = ("pending", "confirmed", "in_progress", "completed", "cancelled", "no_show")
# Statuses that hold a slot
ACTIVE_APPOINTMENT_STATUSES = ("pending", "confirmed", "in_progress")


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False, index=True)
    stylist_id = Column(Integer, ForeignKey("stylists.id"), nullable=True, index=True)
    date = Column(Date, nullable=False, index=True)
    time_slot = Column(String(5), nullable=False)  # HH:MM
    location = Column(String(10), default="salon", nullable=False)  # home, salon
    status = Column(String(20), default="pending", nullable=False, index=True)
    notes = Column(String(500), nullable=True)
    total_price = Column(Float, nullable=False)
    address = Column(JSON, nullable=True)  # Only kept for home appointments
    cancellation_reason = Column(String(200), nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancelled_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="appointments", foreign_keys=[user_id])
    service = relationship("Service")
    stylist = relationship("Stylist")

    @property
    def scheduled_at(self) -> datetime:
        hour, minute = (int(part) for part in self.time_slot.split(":"))
        return datetime(self.date.year, self.date.month, self.date.day, hour, minute)


class Membership(Base):
    __tablename__ = "memberships"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    package_id = Column(Integer, ForeignKey("packages.id"), nullable=False, index=True)
    # Package snapshot at purchase time
    package_name = Column(String(100), nullable=False)
    description = Column(String(1000), nullable=True)
    benefits = Column(JSON, default=list)
    start_date = Column(DateTime, nullable=False)
    expiry_date = Column(DateTime, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    payment_status = Column(String(20), default="pending", nullable=False)  # pending, paid, failed, refunded
    payment_id = Column(String(100), nullable=True)
    payment_method = Column(String(20), default="razorpay", nullable=False)
    amount_paid = Column(Float, nullable=False)
    discount_applied = Column(Float, default=0, nullable=False)
    remaining_appointments = Column(Integer, nullable=True)  # None = unlimited
    used_appointments = Column(Integer, default=0, nullable=False)
    notes = Column(String(500), nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(String(200), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="memberships")
    package = relationship("Package")

    @property
    def status(self) -> str:
        now = datetime.now()
        if self.cancelled_at or not self.is_active:
            return "cancelled"
        if self.payment_status != "paid":
            return "pending_payment"
        if self.start_date > now:
            return "not_started"
        if self.expiry_date < now:
            return "expired"
        return "active"

    @property
    def is_valid(self) -> bool:
        return self.status == "active"

    @property
    def days_remaining(self) -> int:
        if self.status != "active":
            return 0
        return max(0, (self.expiry_date - datetime.now()).days)

    @property
    def is_expiring_soon(self) -> bool:
        return self.is_valid and self.days_remaining <= 7
