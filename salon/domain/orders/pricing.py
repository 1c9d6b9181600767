"""Checkout arithmetic shared by the cart summary and order creation"""

import random
import time

from ...config import FREE_SHIPPING_THRESHOLD, SHIPPING_CHARGE, TAX_RATE
from ...shared.money import round_rupees


def calculate_shipping(amount: float) -> float:
    """Free shipping at or above the threshold, flat charge below it"""
    return 0 if amount >= FREE_SHIPPING_THRESHOLD else SHIPPING_CHARGE


def calculate_tax(amount: float, rate: float = TAX_RATE) -> float:
    return round_rupees(amount * rate)


def order_totals(subtotal: float, discount: float) -> dict:
    taxable = max(0, subtotal - discount)
    shipping = calculate_shipping(taxable)
    tax = calculate_tax(taxable)
    return {
        "subtotal": subtotal,
        "discount": discount,
        "shipping_charges": shipping,
        "tax": tax,
        "total_amount": round(taxable + shipping + tax, 2),
    }


def generate_order_number() -> str:
    """ORD + last 8 digits of the millisecond clock + 3 random digits"""
    millis = str(int(time.time() * 1000))[-8:]
    return f"ORD{millis}{random.randint(0, 999):03d}"
