from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

ORDER_STATUSES = ("pending", "confirmed", "processing", "shipped", "delivered", "cancelled", "returned")
PAYMENT_METHODS = ("razorpay", "cod", "wallet", "card")
PAYMENT_STATUSES = ("pending", "processing", "completed", "failed", "cancelled", "refunded")
RETURN_STATUSES = ("none", "requested", "approved", "rejected", "completed")


class Cart(Base):
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False, index=True)
    # [{"product_id": int, "quantity": int, "price": float, "added_at": iso str}]
    items = Column(JSON, default=list)
    total_items = Column(Integer, default=0, nullable=False)
    total_amount = Column(Float, default=0, nullable=False)
    discount = Column(Float, default=0, nullable=False)
    discount_code = Column(String(20), nullable=True)
    final_amount = Column(Float, default=0, nullable=False)
    shipping_address = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(20), unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # Snapshot of cart lines at order time
    items = Column(JSON, nullable=False)
    total_items = Column(Integer, nullable=False)
    subtotal = Column(Float, nullable=False)
    discount = Column(Float, default=0, nullable=False)
    discount_code = Column(String(20), nullable=True)
    shipping_charges = Column(Float, default=0, nullable=False)
    tax = Column(Float, default=0, nullable=False)
    total_amount = Column(Float, nullable=False)
    status = Column(String(20), default="pending", nullable=False, index=True)
    status_history = Column(JSON, default=list)
    shipping_address = Column(JSON, nullable=False)
    payment_details = Column(JSON, nullable=False)
    tracking_number = Column(String(100), nullable=True)
    estimated_delivery = Column(DateTime, nullable=True)
    delivered_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancelled_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    cancellation_reason = Column(String(200), nullable=True)
    return_status = Column(String(20), default="none", nullable=False)
    return_reason = Column(String(500), nullable=True)
    return_requested_at = Column(DateTime, nullable=True)
    stock_reserved = Column(Boolean, default=False, nullable=False)
    notes = Column(String(500), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="orders", foreign_keys=[user_id])

    @property
    def payment_status(self) -> str:
        return (self.payment_details or {}).get("status", "pending")

    @property
    def can_be_cancelled(self) -> bool:
        return self.status in ("pending", "confirmed") and self.payment_status != "completed"
