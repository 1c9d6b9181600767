"""Cart router - FastAPI endpoints for the current user's cart"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...shared.responses import api_response
from .schemas import CartItemAdd, CartItemUpdate, DiscountApply, ShippingAddress
from .service import CartService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cart", tags=["Cart"])


def get_cart_service(db: Session = Depends(get_db)) -> CartService:
    """Dependency injection for CartService"""
    return CartService(db)


@router.get("")
async def get_cart(
    current_user: User = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    cart = service.get_cart(current_user)
    return api_response(service.serialize(cart), "Cart retrieved successfully")


@router.get("/summary")
async def get_cart_summary(
    current_user: User = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    return api_response(service.summary(current_user), "Cart summary retrieved successfully")


# ============================================================================
# ITEMS
# ============================================================================


@router.post("/items", status_code=201)
async def add_to_cart(
    data: CartItemAdd,
    current_user: User = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    cart = service.add_item(current_user, data.product_id, data.quantity)
    return api_response(service.serialize(cart), "Item added to cart")


@router.put("/items/{product_id}")
async def update_cart_item(
    product_id: int,
    data: CartItemUpdate,
    current_user: User = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    """Set a line's quantity; 0 removes the line"""
    cart = service.update_item(current_user, product_id, data.quantity)
    return api_response(service.serialize(cart), "Cart item updated")


@router.delete("/items/{product_id}")
async def remove_cart_item(
    product_id: int,
    current_user: User = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    cart = service.remove_item(current_user, product_id)
    return api_response(service.serialize(cart), "Item removed from cart")


@router.delete("")
async def clear_cart(
    current_user: User = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    cart = service.clear(current_user)
    return api_response(service.serialize(cart), "Cart cleared")


# ============================================================================
# DISCOUNTS & SHIPPING
# ============================================================================


@router.post("/discount")
async def apply_discount(
    data: DiscountApply,
    current_user: User = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    cart = service.apply_discount(current_user, data.code)
    return api_response(service.serialize(cart), "Discount applied successfully")


@router.delete("/discount")
async def remove_discount(
    current_user: User = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    cart = service.remove_discount(current_user)
    return api_response(service.serialize(cart), "Discount removed")


@router.put("/shipping-address")
async def set_shipping_address(
    data: ShippingAddress,
    current_user: User = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    cart = service.set_shipping_address(current_user, data)
    return api_response(service.serialize(cart), "Shipping address updated")
