"""Rupee rounding for checkout amounts"""

from decimal import ROUND_HALF_UP, Decimal


def round_rupees(amount: float) -> int:
    """Round to whole rupees with halves going up (10.5 -> 11), unlike round()"""
    return int(Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
