"""Cart service - Cart lines, stock checks, totals and discount codes"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import User
from ...models_commerce import Cart
from ..orders.pricing import order_totals
from .discounts import DiscountError, calculate_discount
from .repository import CartRepository
from .schemas import MAX_ITEM_QUANTITY, ShippingAddress

logger = logging.getLogger(__name__)


def cart_totals(items: list[dict], discount: float = 0) -> dict:
    """Totals for a list of cart lines; the discount never pushes the final amount below zero"""
    total_items = sum(item["quantity"] for item in items)
    total_amount = round(sum(item["price"] * item["quantity"] for item in items), 2)
    discount = min(discount or 0, total_amount)
    return {
        "total_items": total_items,
        "total_amount": total_amount,
        "discount": discount,
        "final_amount": round(max(0, total_amount - discount), 2),
    }


def recalculate(cart: Cart) -> None:
    """Refresh cart totals; an applied code is re-evaluated against the new subtotal"""
    items = cart.items or []
    subtotal = round(sum(item["price"] * item["quantity"] for item in items), 2)
    discount = cart.discount or 0

    if cart.discount_code:
        try:
            _, discount = calculate_discount(cart.discount_code, subtotal)
        except DiscountError:
            logger.info(f"Discount {cart.discount_code} no longer applies to cart {cart.id}; removing")
            cart.discount_code = None
            discount = 0

    totals = cart_totals(items, discount)
    cart.total_items = totals["total_items"]
    cart.total_amount = totals["total_amount"]
    cart.discount = totals["discount"]
    cart.final_amount = totals["final_amount"]


class CartService:
    """Service layer for cart business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = CartRepository()

    def _products_for(self, cart: Cart) -> dict:
        return self.repo.get_products(self.db, [item["product_id"] for item in cart.items or []])

    def _set_items(self, cart: Cart, items: list[dict]) -> Cart:
        # New list so the JSON column is flagged dirty
        cart.items = [dict(item) for item in items]
        recalculate(cart)
        return self.repo.save(self.db, cart)

    def get_cart(self, user: User) -> Cart:
        """Active cart with lines for missing or deactivated products dropped"""
        cart = self.repo.get_or_create(self.db, user.id)
        products = self._products_for(cart)
        items = cart.items or []
        kept = [item for item in items if products.get(item["product_id"]) and products[item["product_id"]].is_active]
        if len(kept) != len(items):
            logger.info(f"🧹 Dropping {len(items) - len(kept)} unavailable item(s) from cart {cart.id}")
            cart = self._set_items(cart, kept)
        return cart

    def serialize(self, cart: Cart) -> dict:
        products = self._products_for(cart)
        items = []
        for item in cart.items or []:
            product = products.get(item["product_id"])
            items.append(
                {
                    **item,
                    "line_total": round(item["price"] * item["quantity"], 2),
                    "product": (
                        {
                            "id": product.id,
                            "name": product.name,
                            "image": (product.image_urls or [None])[0],
                            "brand": product.brand,
                            "category": product.category,
                            "stock": product.stock,
                            "is_active": product.is_active,
                        }
                        if product
                        else None
                    ),
                }
            )
        return {
            "id": cart.id,
            "user_id": cart.user_id,
            "items": items,
            "total_items": cart.total_items,
            "total_amount": cart.total_amount,
            "discount": cart.discount,
            "discount_code": cart.discount_code,
            "final_amount": cart.final_amount,
            "shipping_address": cart.shipping_address,
            "updated_at": cart.updated_at.isoformat() if cart.updated_at else None,
        }

    def add_item(self, user: User, product_id: int, quantity: int) -> Cart:
        product = self.repo.get_product(self.db, product_id)
        if not product:
            raise HTTPException(status_code=404, detail="Product not found")
        if not product.is_active:
            raise HTTPException(status_code=400, detail="Product is not available")

        cart = self.get_cart(user)
        items = [dict(item) for item in cart.items or []]
        existing = next((item for item in items if item["product_id"] == product_id), None)
        new_quantity = quantity + (existing["quantity"] if existing else 0)

        if new_quantity > product.stock:
            raise HTTPException(status_code=400, detail=f"Insufficient stock. Only {product.stock} available")
        if new_quantity > MAX_ITEM_QUANTITY:
            raise HTTPException(status_code=400, detail=f"Maximum quantity per item is {MAX_ITEM_QUANTITY}")

        if existing:
            existing["quantity"] = new_quantity
            existing["price"] = product.discounted_price
        else:
            items.append(
                {
                    "product_id": product_id,
                    "quantity": quantity,
                    "price": product.discounted_price,
                    "added_at": datetime.now().isoformat(),
                }
            )

        logger.info(f"🛒 User {user.id} added product {product_id} x{quantity}")
        return self._set_items(cart, items)

    def update_item(self, user: User, product_id: int, quantity: int) -> Cart:
        cart = self.get_cart(user)
        items = [dict(item) for item in cart.items or []]
        existing = next((item for item in items if item["product_id"] == product_id), None)
        if not existing:
            raise HTTPException(status_code=404, detail="Item not found in cart")

        if quantity <= 0:
            items = [item for item in items if item["product_id"] != product_id]
            return self._set_items(cart, items)

        if quantity > existing["quantity"]:
            product = self.repo.get_product(self.db, product_id)
            if not product or quantity > product.stock:
                available = product.stock if product else 0
                raise HTTPException(status_code=400, detail=f"Insufficient stock. Only {available} available")

        existing["quantity"] = quantity
        return self._set_items(cart, items)

    def remove_item(self, user: User, product_id: int) -> Cart:
        cart = self.get_cart(user)
        items = [item for item in cart.items or [] if item["product_id"] != product_id]
        if len(items) == len(cart.items or []):
            raise HTTPException(status_code=404, detail="Item not found in cart")
        return self._set_items(cart, items)

    def clear(self, user: User) -> Cart:
        cart = self.repo.get_or_create(self.db, user.id)
        cart.discount = 0
        cart.discount_code = None
        return self._set_items(cart, [])

    def apply_discount(self, user: User, code: str) -> Cart:
        cart = self.get_cart(user)
        if not cart.items:
            raise HTTPException(status_code=400, detail="Cart is empty")

        try:
            normalized, amount = calculate_discount(code, cart.total_amount)
        except DiscountError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        cart.discount_code = normalized
        cart.discount = amount
        recalculate(cart)
        logger.info(f"🏷️ Discount {normalized} applied to cart {cart.id}: -{amount}")
        return self.repo.save(self.db, cart)

    def remove_discount(self, user: User) -> Cart:
        cart = self.get_cart(user)
        cart.discount = 0
        cart.discount_code = None
        recalculate(cart)
        return self.repo.save(self.db, cart)

    def set_shipping_address(self, user: User, address: ShippingAddress) -> Cart:
        cart = self.get_cart(user)
        cart.shipping_address = address.model_dump()
        return self.repo.save(self.db, cart)

    def summary(self, user: User, cart: Optional[Cart] = None) -> dict:
        cart = cart or self.get_cart(user)
        totals = order_totals(cart.total_amount, cart.discount)
        return {
            "total_items": cart.total_items,
            "unique_items": len(cart.items or []),
            "total_amount": cart.total_amount,
            "discount": cart.discount,
            "discount_code": cart.discount_code,
            "final_amount": cart.final_amount,
            "shipping_charges": totals["shipping_charges"],
            "tax": totals["tax"],
            "estimated_total": totals["total_amount"],
            "has_shipping_address": bool(cart.shipping_address),
        }
