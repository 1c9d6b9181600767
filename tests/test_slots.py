from datetime import date, datetime

from salon.domain.appointments.slots import (
    available_slots,
    generate_time_slots,
    is_within_working_hours,
    within_cancellation_window,
    works_on,
)


def test_generate_time_slots_half_hour_steps():
    assert generate_time_slots("09:00", "11:00") == ["09:00", "09:30", "10:00", "10:30"]


def test_generate_time_slots_excludes_end():
    slots = generate_time_slots("09:00", "18:00")

    assert slots[0] == "09:00"
    assert slots[-1] == "17:30"
    assert len(slots) == 18


def test_available_slots_skip_booked():
    free = available_slots({"start": "09:00", "end": "11:00"}, ["09:30", "10:30"])

    assert free == ["09:00", "10:00"]


def test_available_slots_default_hours():
    assert len(available_slots(None, [])) == 18


def test_working_hours_boundaries():
    hours = {"start": "10:00", "end": "14:00"}

    assert is_within_working_hours("10:00", hours)
    assert is_within_working_hours("13:30", hours)
    assert not is_within_working_hours("14:00", hours)
    assert not is_within_working_hours("09:30", hours)


def test_works_on_is_case_insensitive():
    monday = date(2026, 10, 19)

    assert works_on(["Monday", "Tuesday"], monday)
    assert not works_on(["tuesday"], monday)
    assert not works_on(None, monday)


def test_cancellation_window():
    scheduled = datetime(2026, 10, 20, 15, 0)

    assert within_cancellation_window(scheduled, datetime(2026, 10, 20, 13, 30), 2)
    assert not within_cancellation_window(scheduled, datetime(2026, 10, 20, 12, 0), 2)
    assert not within_cancellation_window(scheduled, datetime(2026, 10, 20, 13, 0), 2)
