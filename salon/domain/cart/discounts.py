"""Discount codes accepted at checkout"""

from dataclasses import dataclass
from typing import Optional

from ...shared.money import round_rupees


@dataclass(frozen=True)
class DiscountCode:
    code: str
    min_amount: float
    percentage: Optional[float] = None
    flat_amount: Optional[float] = None
    description: str = ""

    def amount_for(self, subtotal: float) -> float:
        if self.percentage:
            return round_rupees(subtotal * self.percentage / 100)
        if self.flat_amount:
            return self.flat_amount
        return 0


DISCOUNT_CODES = {
    "WELCOME10": DiscountCode("WELCOME10", min_amount=100, percentage=10, description="10% off your order"),
    "SAVE50": DiscountCode("SAVE50", min_amount=500, flat_amount=50, description="₹50 off orders above ₹500"),
    "FLAT20": DiscountCode("FLAT20", min_amount=300, percentage=20, description="20% off orders above ₹300"),
    # Shipping-only code: no item discount, so it is rejected at the cart level
    "FREESHIP": DiscountCode("FREESHIP", min_amount=200, description="Free shipping"),
}


class DiscountError(ValueError):
    pass


def calculate_discount(code: str, subtotal: float) -> tuple[str, float]:
    """
    Resolve a discount code against a cart subtotal

    Returns:
        Tuple of (normalized code, discount amount capped at the subtotal)

    Raises:
        DiscountError: unknown code, minimum not met, or nothing to discount
    """
    normalized = (code or "").strip().upper()
    discount = DISCOUNT_CODES.get(normalized)
    if not discount:
        raise DiscountError("Invalid discount code")

    if subtotal < discount.min_amount:
        raise DiscountError(f"Minimum order amount of {discount.min_amount:g} required")

    amount = discount.amount_for(subtotal)
    if amount <= 0:
        raise DiscountError("Invalid discount code")

    return normalized, min(amount, subtotal)
