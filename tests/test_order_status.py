import pytest
from fastapi import HTTPException

from salon.domain.orders.status import TRANSITIONS, apply_transition, can_transition
from salon.models_commerce import Order


def make_order(status="pending", **fields):
    return Order(status=status, status_history=[{"status": status, "timestamp": "2026-01-01T10:00:00", "note": None}], **fields)


def test_forward_transitions():
    assert can_transition("pending", "confirmed")
    assert can_transition("confirmed", "processing")
    assert can_transition("processing", "shipped")
    assert can_transition("shipped", "delivered")
    assert can_transition("delivered", "returned")


def test_no_skipping_or_going_back():
    assert not can_transition("pending", "shipped")
    assert not can_transition("shipped", "processing")
    assert not can_transition("delivered", "cancelled")


@pytest.mark.parametrize("terminal", ["cancelled", "returned"])
def test_terminal_states(terminal):
    assert TRANSITIONS[terminal] == ()
    assert not any(can_transition(terminal, status) for status in TRANSITIONS)


def test_unknown_status_has_no_transitions():
    assert not can_transition("lost", "pending")


def test_apply_transition_appends_history():
    order = make_order()

    apply_transition(order, "confirmed", note="Payment received")

    assert order.status == "confirmed"
    assert len(order.status_history) == 2
    assert order.status_history[-1]["status"] == "confirmed"
    assert order.status_history[-1]["note"] == "Payment received"


def test_apply_transition_stamps_cancellation():
    order = make_order("confirmed")

    apply_transition(order, "cancelled", actor_id=7)

    assert order.cancelled_at is not None
    assert order.cancelled_by == 7


def test_apply_transition_stamps_delivery():
    order = make_order("shipped")

    apply_transition(order, "delivered")

    assert order.delivered_at is not None


def test_invalid_transition_raises():
    order = make_order("pending")

    with pytest.raises(HTTPException) as exc_info:
        apply_transition(order, "delivered")

    assert exc_info.value.status_code == 400
    assert exc_info.value.detail == "Invalid status transition from pending to delivered"
    assert order.status == "pending"
