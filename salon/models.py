from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

USER_ROLES = ("guest", "customer", "admin")


def default_preferences():
    """Preference defaults for new users"""
    return {
        "notifications": True,
        "email_notifications": True,
        "sms_notifications": False,
        "whatsapp_notifications": True,
        "language": "en",
        "timezone": "Asia/Kolkata",
        "theme": "system",
    }


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(20), nullable=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), default="customer", nullable=False)  # guest, customer, admin
    is_active = Column(Boolean, default=True, nullable=False)
    refresh_token = Column(Text, nullable=True)  # Last issued refresh token, cleared on logout
    bio = Column(String(500), nullable=True)
    profile_picture = Column(String(500), nullable=True)
    preferences = Column(JSON, default=default_preferences)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    addresses = relationship("Address", back_populates="user", cascade="all, delete-orphan")
    appointments = relationship("Appointment", back_populates="user", foreign_keys="Appointment.user_id")
    orders = relationship("Order", back_populates="user", foreign_keys="Order.user_id")
    memberships = relationship("Membership", back_populates="user")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class Address(Base):
    __tablename__ = "addresses"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    label = Column(String(50), nullable=False)
    street = Column(String(255), nullable=False)
    city = Column(String(100), nullable=False)
    state = Column(String(100), nullable=False)
    pincode = Column(String(6), nullable=False)
    country = Column(String(100), default="India", nullable=False)
    landmark = Column(String(255), nullable=True)
    address_type = Column(String(20), default="home", nullable=False)  # home, work, other
    contact_number = Column(String(20), nullable=True)
    instructions = Column(String(500), nullable=True)
    is_default = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="addresses")

    @property
    def formatted_address(self) -> str:
        parts = [self.street, self.landmark, self.city, self.state, self.pincode, self.country]
        return ", ".join(p for p in parts if p)


class Enquiry(Base):
    __tablename__ = "enquiries"

    id = Column(Integer, primary_key=True, index=True)
    enquiry_number = Column(String(30), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(20), nullable=True)
    subject = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    # general, booking, product, membership, complaint, feedback
    enquiry_type = Column(String(20), default="general", nullable=False)
    priority = Column(String(10), default="medium", nullable=False)  # low, medium, high, urgent
    source = Column(String(20), default="website", nullable=False)
    tags = Column(JSON, default=list)
    status = Column(String(20), default="new", nullable=False)  # new, in_progress, resolved, closed
    admin_notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
