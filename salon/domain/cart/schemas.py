"""Cart schemas - Pydantic models for cart validation"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import validate_phone

MAX_ITEM_QUANTITY = 100


class CartItemAdd(BaseModel):
    product_id: int
    quantity: int = Field(1, ge=1, le=MAX_ITEM_QUANTITY)


class CartItemUpdate(BaseModel):
    # 0 or less removes the line
    quantity: int = Field(..., le=MAX_ITEM_QUANTITY)


class DiscountApply(BaseModel):
    code: str = Field(..., min_length=1, max_length=20)


class ShippingAddress(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    street: str = Field(..., min_length=3, max_length=255)
    city: str = Field(..., min_length=2, max_length=100)
    state: str = Field(..., min_length=2, max_length=100)
    zip_code: str = Field(..., min_length=4, max_length=10)
    country: str = Field("India", max_length=100)
    phone: str

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        return validate_phone(v)
