"""Order status transitions"""

from datetime import datetime
from typing import Optional

from fastapi import HTTPException

from ...models_commerce import Order

TRANSITIONS: dict[str, tuple[str, ...]] = {
    "pending": ("confirmed", "cancelled"),
    "confirmed": ("processing", "cancelled"),
    "processing": ("shipped", "cancelled"),
    "shipped": ("delivered", "cancelled"),
    "delivered": ("returned",),
    "cancelled": (),
    "returned": (),
}


def can_transition(current: str, new: str) -> bool:
    return new in TRANSITIONS.get(current, ())


def apply_transition(order: Order, new_status: str, note: Optional[str] = None, actor_id: Optional[int] = None) -> None:
    """Move an order to new_status, recording it in status_history"""
    if not can_transition(order.status, new_status):
        raise HTTPException(status_code=400, detail=f"Invalid status transition from {order.status} to {new_status}")

    now = datetime.now()
    order.status = new_status
    order.status_history = list(order.status_history or []) + [
        {"status": new_status, "timestamp": now.isoformat(), "note": note}
    ]

    if new_status == "delivered":
        order.delivered_at = now
    elif new_status == "cancelled":
        order.cancelled_at = now
        order.cancelled_by = actor_id
