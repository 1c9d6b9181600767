from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.sql import func

from .database import Base
from .shared.validators import WEEKDAYS

SERVICE_CATEGORIES = ("hair", "nails", "skincare", "massage", "makeup", "other")
PRODUCT_CATEGORIES = ("hair_care", "skin_care", "nail_care", "makeup", "tools", "accessories", "other")
GALLERY_CATEGORIES = ("hair", "nails", "makeup", "skincare", "salon", "events", "other")


def default_working_hours():
    return {"start": "09:00", "end": "18:00"}


def default_working_days():
    return list(WEEKDAYS[:6])


class Service(Base):
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(String(500), nullable=True)
    duration = Column(Integer, nullable=False)  # minutes, 15-480
    price = Column(Float, nullable=False)
    category = Column(String(20), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    available_at_home = Column(Boolean, default=False, nullable=False)
    available_at_salon = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def is_available_at(self, location: str) -> bool:
        return self.available_at_home if location == "home" else self.available_at_salon


class Stylist(Base):
    __tablename__ = "stylists"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone = Column(String(20), nullable=True)
    specialties = Column(JSON, default=list)
    experience = Column(Integer, default=0, nullable=False)  # years
    rating = Column(Float, default=0, nullable=False)
    bio = Column(String(500), nullable=True)
    working_hours = Column(JSON, default=default_working_hours)  # {"start": "HH:MM", "end": "HH:MM"}
    working_days = Column(JSON, default=default_working_days)  # lowercase weekday names
    available_for_home = Column(Boolean, default=False, nullable=False)
    available_for_salon = Column(Boolean, default=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def is_available_at(self, location: str) -> bool:
        return self.available_for_home if location == "home" else self.available_for_salon


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False, index=True)
    category = Column(String(20), nullable=False, index=True)
    price = Column(Float, nullable=False)
    stock = Column(Integer, default=0, nullable=False)
    description = Column(Text, nullable=True)
    image_urls = Column(JSON, default=list)
    brand = Column(String(100), nullable=True, index=True)
    sku = Column(String(50), unique=True, nullable=True)
    tags = Column(JSON, default=list)
    is_active = Column(Boolean, default=True, nullable=False)
    is_featured = Column(Boolean, default=False, nullable=False)
    discount = Column(Float, default=0, nullable=False)  # percent
    discount_start = Column(DateTime, nullable=True)
    discount_end = Column(DateTime, nullable=True)
    rating_average = Column(Float, default=0, nullable=False)
    rating_count = Column(Integer, default=0, nullable=False)
    reorder_level = Column(Integer, default=10, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    @property
    def is_discount_active(self) -> bool:
        if not self.discount:
            return False
        now = datetime.now()
        if self.discount_start and now < self.discount_start:
            return False
        if self.discount_end and now > self.discount_end:
            return False
        return True

    @property
    def discounted_price(self) -> float:
        if not self.is_discount_active:
            return self.price
        return round(self.price * (1 - self.discount / 100), 2)

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.reorder_level

    @property
    def stock_status(self) -> str:
        if self.stock <= 0:
            return "out_of_stock"
        if self.is_low_stock:
            return "low_stock"
        return "in_stock"


class Package(Base):
    __tablename__ = "packages"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False)
    duration = Column(Integer, nullable=False)
    duration_unit = Column(String(10), default="months", nullable=False)  # days, weeks, months, years
    benefits = Column(JSON, default=list)
    discount_percentage = Column(Float, default=0, nullable=False)
    max_appointments = Column(Integer, nullable=True)  # None = unlimited
    is_popular = Column(Boolean, default=False, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    terms_and_conditions = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    @property
    def discounted_price(self) -> float:
        return round(self.price * (1 - (self.discount_percentage or 0) / 100), 2)


class GalleryImage(Base):
    __tablename__ = "gallery_images"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    category = Column(String(20), default="other", nullable=False, index=True)
    tags = Column(JSON, default=list)
    image_url = Column(String(500), nullable=False)
    storage_key = Column(String(500), nullable=True)  # R2 object key when uploaded here
    is_featured = Column(Boolean, default=False, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    views = Column(Integer, default=0, nullable=False)
    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    target_type = Column(String(10), nullable=False)  # product, service
    target_id = Column(Integer, nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    comment = Column(String(500), nullable=False)
    is_approved = Column(Boolean, default=False, nullable=False)
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
