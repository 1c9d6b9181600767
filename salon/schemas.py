from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .shared.validators import (
    WEEKDAYS,
    to_minutes,
    validate_email,
    validate_phone,
    validate_pincode,
    validate_time_slot,
)

SERVICE_CATEGORY_PATTERN = "^(hair|nails|skincare|massage|makeup|other)$"
PRODUCT_CATEGORY_PATTERN = "^(hair_care|skin_care|nail_care|makeup|tools|accessories|other)$"
GALLERY_CATEGORY_PATTERN = "^(hair|nails|makeup|skincare|salon|events|other)$"
ROLE_PATTERN = "^(guest|customer|admin)$"


# ============================================================================
# USERS & AUTH
# ============================================================================


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: str
    password: str = Field(..., min_length=6, max_length=128)
    phone: Optional[str] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        if v:
            return validate_phone(v)
        return v

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        return v.strip()


class LoginRequest(BaseModel):
    email: str
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class ChangePasswordRequest(BaseModel):
    old_password: str
    new_password: str = Field(..., min_length=6, max_length=128)


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    role: str
    is_active: bool
    bio: Optional[str] = None
    profile_picture: Optional[str] = None
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    phone: Optional[str] = None
    bio: Optional[str] = Field(None, max_length=500)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        if v:
            return validate_phone(v)
        return v


class AdminUserUpdate(ProfileUpdate):
    email: Optional[str] = None
    role: Optional[str] = Field(None, pattern=ROLE_PATTERN)
    is_active: Optional[bool] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        if v:
            return validate_email(v)
        return v


class PreferencesUpdate(BaseModel):
    notifications: Optional[bool] = None
    email_notifications: Optional[bool] = None
    sms_notifications: Optional[bool] = None
    whatsapp_notifications: Optional[bool] = None
    language: Optional[str] = Field(None, min_length=2, max_length=10)
    timezone: Optional[str] = Field(None, max_length=50)
    theme: Optional[str] = Field(None, pattern="^(light|dark|system)$")


# ============================================================================
# SERVICES & STYLISTS
# ============================================================================


class ServiceCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    duration: int = Field(..., ge=15, le=480)
    price: float = Field(..., ge=0)
    category: str = Field(..., pattern=SERVICE_CATEGORY_PATTERN)
    is_active: bool = True
    available_at_home: bool = False
    available_at_salon: bool = True


class ServiceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    duration: Optional[int] = Field(None, ge=15, le=480)
    price: Optional[float] = Field(None, ge=0)
    category: Optional[str] = Field(None, pattern=SERVICE_CATEGORY_PATTERN)
    is_active: Optional[bool] = None
    available_at_home: Optional[bool] = None
    available_at_salon: Optional[bool] = None


class ServiceResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    duration: int
    price: float
    category: str
    is_active: bool
    available_at_home: bool
    available_at_salon: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WorkingHours(BaseModel):
    start: str = "09:00"
    end: str = "18:00"

    @field_validator("start", "end")
    @classmethod
    def check_time(cls, v):
        return validate_time_slot(v)

    @model_validator(mode="after")
    def check_order(self):
        if to_minutes(self.start) >= to_minutes(self.end):
            raise ValueError("Working hours start must be before end")
        return self


def _check_weekdays(days):
    if days is None:
        return days
    normalized = [d.strip().lower() for d in days]
    invalid = [d for d in normalized if d not in WEEKDAYS]
    if invalid:
        raise ValueError(f"Invalid working days: {', '.join(invalid)}")
    return list(dict.fromkeys(normalized))


class StylistCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: str
    phone: Optional[str] = None
    specialties: List[str] = []
    experience: int = Field(0, ge=0, le=60)
    rating: float = Field(0, ge=0, le=5)
    bio: Optional[str] = Field(None, max_length=500)
    working_hours: WorkingHours = WorkingHours()
    working_days: List[str] = list(WEEKDAYS[:6])
    available_for_home: bool = False
    available_for_salon: bool = True
    is_active: bool = True

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        if v:
            return validate_phone(v)
        return v

    @field_validator("working_days")
    @classmethod
    def check_days(cls, v):
        return _check_weekdays(v)


class StylistUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    email: Optional[str] = None
    phone: Optional[str] = None
    specialties: Optional[List[str]] = None
    experience: Optional[int] = Field(None, ge=0, le=60)
    bio: Optional[str] = Field(None, max_length=500)
    working_hours: Optional[WorkingHours] = None
    working_days: Optional[List[str]] = None
    available_for_home: Optional[bool] = None
    available_for_salon: Optional[bool] = None
    is_active: Optional[bool] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        if v:
            return validate_email(v)
        return v

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        if v:
            return validate_phone(v)
        return v

    @field_validator("working_days")
    @classmethod
    def check_days(cls, v):
        return _check_weekdays(v)


class StylistRatingUpdate(BaseModel):
    rating: float = Field(..., ge=0, le=5)


class StylistResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    specialties: List[str] = []
    experience: int
    rating: float
    bio: Optional[str] = None
    working_hours: dict
    working_days: List[str]
    available_for_home: bool
    available_for_salon: bool
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============================================================================
# PRODUCTS
# ============================================================================


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=200)
    category: str = Field(..., pattern=PRODUCT_CATEGORY_PATTERN)
    price: float = Field(..., ge=0)
    stock: int = Field(0, ge=0)
    description: Optional[str] = Field(None, max_length=2000)
    image_urls: List[str] = []
    brand: Optional[str] = Field(None, max_length=100)
    sku: Optional[str] = Field(None, max_length=50)
    tags: List[str] = []
    is_active: bool = True
    is_featured: bool = False
    discount: float = Field(0, ge=0, le=100)
    discount_start: Optional[datetime] = None
    discount_end: Optional[datetime] = None
    reorder_level: int = Field(10, ge=0)

    @field_validator("sku")
    @classmethod
    def normalize_sku(cls, v):
        return v.strip().upper() if v else None

    @model_validator(mode="after")
    def check_discount_window(self):
        if self.discount_start and self.discount_end and self.discount_start >= self.discount_end:
            raise ValueError("Discount end must be after discount start")
        return self


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=200)
    category: Optional[str] = Field(None, pattern=PRODUCT_CATEGORY_PATTERN)
    price: Optional[float] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    description: Optional[str] = Field(None, max_length=2000)
    image_urls: Optional[List[str]] = None
    brand: Optional[str] = Field(None, max_length=100)
    sku: Optional[str] = Field(None, max_length=50)
    tags: Optional[List[str]] = None
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None
    discount: Optional[float] = Field(None, ge=0, le=100)
    discount_start: Optional[datetime] = None
    discount_end: Optional[datetime] = None
    reorder_level: Optional[int] = Field(None, ge=0)

    @field_validator("sku")
    @classmethod
    def normalize_sku(cls, v):
        return v.strip().upper() if v else v


class StockUpdate(BaseModel):
    quantity: int = Field(..., ge=0)
    operation: str = Field("set", pattern="^(add|subtract|set)$")


class ProductResponse(BaseModel):
    id: int
    name: str
    category: str
    price: float
    discounted_price: float
    stock: int
    stock_status: str
    is_low_stock: bool
    description: Optional[str] = None
    image_urls: List[str] = []
    brand: Optional[str] = None
    sku: Optional[str] = None
    tags: List[str] = []
    is_active: bool
    is_featured: bool
    discount: float
    discount_start: Optional[datetime] = None
    discount_end: Optional[datetime] = None
    rating_average: float
    rating_count: int
    reorder_level: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============================================================================
# PACKAGES
# ============================================================================


class PackageCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    price: float = Field(..., ge=0)
    duration: int = Field(..., ge=1)
    duration_unit: str = Field("months", pattern="^(days|weeks|months|years)$")
    benefits: List[str] = []
    discount_percentage: float = Field(0, ge=0, le=100)
    max_appointments: Optional[int] = Field(None, ge=1)
    is_popular: bool = False
    sort_order: int = 0
    terms_and_conditions: Optional[str] = None
    is_active: bool = True


class PackageUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    price: Optional[float] = Field(None, ge=0)
    duration: Optional[int] = Field(None, ge=1)
    duration_unit: Optional[str] = Field(None, pattern="^(days|weeks|months|years)$")
    benefits: Optional[List[str]] = None
    discount_percentage: Optional[float] = Field(None, ge=0, le=100)
    max_appointments: Optional[int] = Field(None, ge=1)
    is_popular: Optional[bool] = None
    sort_order: Optional[int] = None
    terms_and_conditions: Optional[str] = None
    is_active: Optional[bool] = None


class PackageResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price: float
    discounted_price: float
    duration: int
    duration_unit: str
    benefits: List[str] = []
    discount_percentage: float
    max_appointments: Optional[int] = None
    is_popular: bool
    sort_order: int
    terms_and_conditions: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============================================================================
# GALLERY
# ============================================================================


class GalleryImageCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    category: str = Field("other", pattern=GALLERY_CATEGORY_PATTERN)
    tags: List[str] = []
    image_url: str = Field(..., pattern="^https?://")
    is_featured: bool = False
    sort_order: int = 0


class GalleryImageUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    category: Optional[str] = Field(None, pattern=GALLERY_CATEGORY_PATTERN)
    tags: Optional[List[str]] = None
    is_featured: Optional[bool] = None
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


class GallerySortOrderUpdate(BaseModel):
    sort_order: int


class GalleryBulkUpdate(BaseModel):
    image_ids: List[int] = Field(..., min_length=1)
    category: Optional[str] = Field(None, pattern=GALLERY_CATEGORY_PATTERN)
    is_featured: Optional[bool] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None


class GalleryImageResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    category: str
    tags: List[str] = []
    image_url: str
    is_featured: bool
    sort_order: int
    is_active: bool
    views: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============================================================================
# REVIEWS
# ============================================================================


class ProductReviewCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=1, max_length=500)


class ReviewCreate(ProductReviewCreate):
    target_type: str = Field(..., pattern="^(product|service)$")
    target_id: int


class ReviewUpdate(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = Field(None, min_length=1, max_length=500)


class ReviewResponse(BaseModel):
    id: int
    user_id: int
    target_type: str
    target_id: int
    rating: int
    comment: str
    is_approved: bool
    approved_at: Optional[datetime] = None
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============================================================================
# ADDRESSES
# ============================================================================


class AddressBase(BaseModel):
    label: str = Field(..., min_length=1, max_length=50)
    street: str = Field(..., min_length=3, max_length=255)
    city: str = Field(..., min_length=2, max_length=100)
    state: str = Field(..., min_length=2, max_length=100)
    pincode: str
    country: str = Field("India", max_length=100)
    landmark: Optional[str] = Field(None, max_length=255)
    address_type: str = Field("home", pattern="^(home|work|other)$")
    contact_number: Optional[str] = None
    instructions: Optional[str] = Field(None, max_length=500)

    @field_validator("pincode")
    @classmethod
    def check_pincode(cls, v):
        return validate_pincode(v)

    @field_validator("contact_number")
    @classmethod
    def check_contact(cls, v):
        if v:
            return validate_phone(v)
        return v


class AddressCreate(AddressBase):
    is_default: bool = False


class AddressUpdate(BaseModel):
    label: Optional[str] = Field(None, min_length=1, max_length=50)
    street: Optional[str] = Field(None, min_length=3, max_length=255)
    city: Optional[str] = Field(None, min_length=2, max_length=100)
    state: Optional[str] = Field(None, min_length=2, max_length=100)
    pincode: Optional[str] = None
    country: Optional[str] = Field(None, max_length=100)
    landmark: Optional[str] = Field(None, max_length=255)
    address_type: Optional[str] = Field(None, pattern="^(home|work|other)$")
    contact_number: Optional[str] = None
    instructions: Optional[str] = Field(None, max_length=500)
    is_default: Optional[bool] = None

    @field_validator("pincode")
    @classmethod
    def check_pincode(cls, v):
        if v is not None:
            return validate_pincode(v)
        return v

    @field_validator("contact_number")
    @classmethod
    def check_contact(cls, v):
        if v:
            return validate_phone(v)
        return v


class AddressBulkItem(AddressUpdate):
    id: int


class AddressBulkUpdate(BaseModel):
    addresses: List[AddressBulkItem] = Field(..., min_length=1)


class AddressResponse(BaseModel):
    id: int
    label: str
    street: str
    city: str
    state: str
    pincode: str
    country: str
    landmark: Optional[str] = None
    address_type: str
    contact_number: Optional[str] = None
    instructions: Optional[str] = None
    is_default: bool
    formatted_address: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============================================================================
# ENQUIRIES
# ============================================================================


class EnquiryCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: str
    phone: Optional[str] = None
    subject: str = Field(..., min_length=3, max_length=200)
    message: str = Field(..., min_length=10, max_length=2000)
    enquiry_type: str = Field("general", pattern="^(general|booking|product|membership|complaint|feedback)$")
    priority: str = Field("medium", pattern="^(low|medium|high|urgent)$")
    source: str = Field("website", pattern="^(website|whatsapp|phone|walk_in|social)$")
    tags: List[str] = []

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        if v:
            return validate_phone(v)
        return v


class EnquiryUpdate(BaseModel):
    status: Optional[str] = Field(None, pattern="^(new|in_progress|resolved|closed)$")
    priority: Optional[str] = Field(None, pattern="^(low|medium|high|urgent)$")
    tags: Optional[List[str]] = None
    admin_notes: Optional[str] = Field(None, max_length=2000)


class EnquiryResponse(BaseModel):
    id: int
    enquiry_number: str
    name: str
    email: str
    phone: Optional[str] = None
    subject: str
    message: str
    enquiry_type: str
    priority: str
    source: str
    tags: List[str] = []
    status: str
    admin_notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============================================================================
# WHATSAPP
# ============================================================================


class CustomMessageRequest(BaseModel):
    phone: str
    message: str = Field(..., min_length=1, max_length=4096)


class BulkMessageRequest(BaseModel):
    phones: List[str] = Field(..., min_length=1, max_length=500)
    message: str = Field(..., min_length=1, max_length=4096)


class PromotionalRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=1000)
    discount_code: Optional[str] = None
    valid_until: Optional[datetime] = None


class BulkPromotionalRequest(PromotionalRequest):
    roles: List[str] = ["customer", "guest"]


class ReminderBulkRequest(BaseModel):
    hours_before: int = Field(24, ge=1, le=168)


def dump(model: BaseModel, obj: Any) -> dict:
    """Serialize an ORM object through a response schema"""
    return model.model_validate(obj).model_dump(mode="json")
