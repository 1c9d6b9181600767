"""Slot arithmetic for stylist availability and the cancellation window"""

from datetime import datetime, timedelta
from typing import Iterable, Optional

from ...shared.validators import to_minutes, weekday_name

SLOT_MINUTES = 30


def generate_time_slots(start: str, end: str, step_minutes: int = SLOT_MINUTES) -> list[str]:
    """All HH:MM slot starts from start (inclusive) to end (exclusive)"""
    slots = []
    current = to_minutes(start)
    end_minutes = to_minutes(end)
    while current < end_minutes:
        slots.append(f"{current // 60:02d}:{current % 60:02d}")
        current += step_minutes
    return slots


def is_within_working_hours(time_slot: str, working_hours: Optional[dict]) -> bool:
    hours = working_hours or {"start": "09:00", "end": "18:00"}
    slot = to_minutes(time_slot)
    return to_minutes(hours["start"]) <= slot < to_minutes(hours["end"])


def works_on(working_days: Optional[Iterable[str]], day) -> bool:
    return weekday_name(day) in {d.lower() for d in (working_days or [])}


def available_slots(working_hours: Optional[dict], booked: Iterable[str]) -> list[str]:
    hours = working_hours or {"start": "09:00", "end": "18:00"}
    taken = set(booked)
    return [slot for slot in generate_time_slots(hours["start"], hours["end"]) if slot not in taken]


def within_cancellation_window(scheduled_at: datetime, now: datetime, window_hours: int) -> bool:
    """True when it is too late for a customer to cancel"""
    return now > scheduled_at - timedelta(hours=window_hours)
