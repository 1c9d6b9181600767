from datetime import datetime, timedelta

import pytest

from conftest import auth_headers, next_sunday, next_working_day
from salon.models_booking import Appointment


@pytest.fixture
def catalog(make_service, make_stylist):
    return make_service(), make_stylist()


def book(client, headers, service, stylist, day, time_slot="10:00", **extra):
    payload = {
        "service_id": service.id,
        "stylist_id": stylist.id if stylist else None,
        "date": day.isoformat(),
        "time_slot": time_slot,
        **extra,
    }
    return client.post("/appointments", json=payload, headers=headers)


def test_book_appointment(client, customer_headers, catalog):
    service, stylist = catalog
    response = book(client, customer_headers, service, stylist, next_working_day())

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["status"] == "pending"
    assert data["time_slot"] == "10:00"
    assert data["total_price"] == 800.0
    assert data["service"]["name"] == "Haircut & Styling"
    assert data["stylist"]["name"] == "Meera Kapoor"


def test_book_rejects_past_slot(client, customer_headers, catalog):
    service, stylist = catalog
    yesterday = datetime.now().date() - timedelta(days=1)
    response = book(client, customer_headers, service, stylist, yesterday)

    assert response.status_code == 400
    assert response.json()["message"] == "Appointment date must be in the future"


def test_stylist_double_booking_is_rejected(client, customer_headers, other_customer, catalog):
    service, stylist = catalog
    day = next_working_day()
    assert book(client, customer_headers, service, stylist, day).status_code == 201

    response = book(client, auth_headers(other_customer), service, stylist, day)

    assert response.status_code == 409
    assert response.json()["message"] == "Stylist is already booked at this time"


def test_customer_cannot_hold_two_appointments_in_one_slot(client, customer_headers, catalog, make_stylist):
    service, stylist = catalog
    second_stylist = make_stylist(name="Ravi Verma", email="ravi@salon.example.com")
    day = next_working_day()
    assert book(client, customer_headers, service, stylist, day).status_code == 201

    response = book(client, customer_headers, service, second_stylist, day)

    assert response.status_code == 409
    assert response.json()["message"] == "You already have an appointment at this time"


def test_cancelled_appointment_frees_the_slot(client, customer_headers, other_customer, catalog):
    service, stylist = catalog
    day = next_working_day()
    booked = book(client, customer_headers, service, stylist, day).json()["data"]

    cancelled = client.patch(f"/appointments/{booked['id']}/cancel", json={"reason": "Travelling"}, headers=customer_headers)
    assert cancelled.status_code == 200
    assert cancelled.json()["data"]["status"] == "cancelled"
    assert cancelled.json()["data"]["cancellation_reason"] == "Travelling"

    assert book(client, auth_headers(other_customer), service, stylist, day).status_code == 201


def test_booking_outside_working_hours(client, customer_headers, catalog):
    service, stylist = catalog
    response = book(client, customer_headers, service, stylist, next_working_day(), time_slot="19:00")

    assert response.status_code == 400


def test_booking_on_day_off(client, customer_headers, catalog):
    service, stylist = catalog
    response = book(client, customer_headers, service, stylist, next_sunday())

    assert response.status_code == 400
    assert response.json()["message"] == "Stylist is not available on sunday"


def test_home_booking_requires_address(client, customer_headers, catalog):
    service, stylist = catalog
    response = book(client, customer_headers, service, stylist, next_working_day(), location="home")

    assert response.status_code == 400
    assert response.json()["message"] == "Address is required for home appointments"


def test_available_slots_exclude_booked(client, customer_headers, catalog):
    service, stylist = catalog
    day = next_working_day()
    book(client, customer_headers, service, stylist, day)

    response = client.get(
        "/appointments/available-slots",
        params={"stylist_id": stylist.id, "date": day.isoformat()},
        headers=customer_headers,
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["stylist_id"] == stylist.id
    assert data["date"] == day.isoformat()
    assert "10:00" not in data["available_slots"]
    assert data["available_slots"][0] == "09:00"
    assert data["available_slots"][-1] == "17:30"
    assert len(data["available_slots"]) == 17


def test_available_slots_empty_on_day_off(client, customer_headers, catalog):
    _, stylist = catalog
    response = client.get(
        "/appointments/available-slots",
        params={"stylist_id": stylist.id, "date": next_sunday().isoformat()},
        headers=customer_headers,
    )

    assert response.status_code == 200
    assert response.json()["data"]["available_slots"] == []


def test_customers_only_see_their_own_appointments(client, customer_headers, other_customer, catalog, admin_headers):
    service, stylist = catalog
    appointment = book(client, customer_headers, service, stylist, next_working_day()).json()["data"]

    other = client.get(f"/appointments/{appointment['id']}", headers=auth_headers(other_customer))
    assert other.status_code == 403

    listed = client.get("/appointments", headers=auth_headers(other_customer))
    assert listed.json()["data"]["appointments"] == []

    admin_view = client.get("/appointments", headers=admin_headers)
    assert [a["id"] for a in admin_view.json()["data"]["appointments"]] == [appointment["id"]]


def test_status_change_requires_admin(client, customer_headers, admin_headers, catalog):
    service, stylist = catalog
    appointment = book(client, customer_headers, service, stylist, next_working_day()).json()["data"]

    denied = client.patch(f"/appointments/{appointment['id']}/status", json={"status": "confirmed"}, headers=customer_headers)
    assert denied.status_code == 403

    confirmed = client.patch(f"/appointments/{appointment['id']}/status", json={"status": "confirmed"}, headers=admin_headers)
    assert confirmed.status_code == 200
    assert confirmed.json()["data"]["status"] == "confirmed"


@pytest.fixture
def imminent_appointment(db_session, customer, catalog):
    service, stylist = catalog
    starts = (datetime.now() + timedelta(hours=1)).replace(second=0, microsecond=0)
    appointment = Appointment(
        user_id=customer.id,
        service_id=service.id,
        stylist_id=stylist.id,
        date=starts.date(),
        time_slot=starts.strftime("%H:%M"),
        location="salon",
        status="confirmed",
        total_price=service.price,
    )
    db_session.add(appointment)
    db_session.commit()
    db_session.refresh(appointment)
    return appointment


def test_customer_cannot_cancel_close_to_start(client, customer_headers, imminent_appointment):
    response = client.patch(f"/appointments/{imminent_appointment.id}/cancel", headers=customer_headers)

    assert response.status_code == 400
    assert "2 hours" in response.json()["message"]


def test_admin_can_cancel_close_to_start(client, admin_headers, imminent_appointment):
    response = client.patch(f"/appointments/{imminent_appointment.id}/cancel", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "cancelled"


def test_reopening_cancelled_appointment_checks_the_slot(client, customer_headers, other_customer, admin_headers, catalog):
    service, stylist = catalog
    day = next_working_day()
    first = book(client, customer_headers, service, stylist, day).json()["data"]
    client.patch(f"/appointments/{first['id']}/cancel", headers=customer_headers)
    assert book(client, auth_headers(other_customer), service, stylist, day).status_code == 201

    response = client.patch(f"/appointments/{first['id']}/status", json={"status": "confirmed"}, headers=admin_headers)

    assert response.status_code == 409
    assert response.json()["message"] == "Stylist is already booked at this time"
    assert client.get(f"/appointments/{first['id']}", headers=admin_headers).json()["data"]["status"] == "cancelled"


def test_reopening_cancelled_appointment_with_free_slot(client, customer_headers, admin_headers, catalog):
    service, stylist = catalog
    appointment = book(client, customer_headers, service, stylist, next_working_day()).json()["data"]
    client.patch(f"/appointments/{appointment['id']}/cancel", headers=customer_headers)

    response = client.patch(f"/appointments/{appointment['id']}/status", json={"status": "pending"}, headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "pending"
    assert response.json()["data"]["cancelled_at"] is None
    assert response.json()["data"]["cancellation_reason"] is None


# ============================================================================
# RESCHEDULING
# ============================================================================


def test_reschedule_moves_the_booking(client, customer_headers, other_customer, catalog):
    service, stylist = catalog
    day = next_working_day()
    appointment = book(client, customer_headers, service, stylist, day).json()["data"]

    response = client.put(f"/appointments/{appointment['id']}", json={"time_slot": "14:30"}, headers=customer_headers)

    assert response.status_code == 200
    assert response.json()["data"]["time_slot"] == "14:30"
    # The old slot is free again
    assert book(client, auth_headers(other_customer), service, stylist, day, time_slot="10:00").status_code == 201


def test_reschedule_ignores_its_own_slot(client, customer_headers, catalog, make_stylist):
    service, stylist = catalog
    second_stylist = make_stylist(name="Ravi Verma", email="ravi@salon.example.com")
    appointment = book(client, customer_headers, service, stylist, next_working_day()).json()["data"]

    response = client.put(
        f"/appointments/{appointment['id']}", json={"stylist_id": second_stylist.id}, headers=customer_headers
    )

    assert response.status_code == 200
    assert response.json()["data"]["stylist"]["name"] == "Ravi Verma"


def test_reschedule_into_booked_slot_is_rejected(client, customer_headers, other_customer, catalog):
    service, stylist = catalog
    day = next_working_day()
    book(client, auth_headers(other_customer), service, stylist, day, time_slot="11:00")
    appointment = book(client, customer_headers, service, stylist, day).json()["data"]

    response = client.put(f"/appointments/{appointment['id']}", json={"time_slot": "11:00"}, headers=customer_headers)

    assert response.status_code == 409
    assert response.json()["message"] == "Stylist is already booked at this time"


def test_reschedule_onto_day_off_is_rejected(client, customer_headers, catalog):
    service, stylist = catalog
    appointment = book(client, customer_headers, service, stylist, next_working_day()).json()["data"]

    response = client.put(
        f"/appointments/{appointment['id']}", json={"date": next_sunday().isoformat()}, headers=customer_headers
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Stylist is not available on sunday"


@pytest.mark.parametrize("closed_status", ["completed", "cancelled"])
def test_closed_appointment_cannot_be_updated(client, customer_headers, admin_headers, catalog, closed_status):
    service, stylist = catalog
    appointment = book(client, customer_headers, service, stylist, next_working_day()).json()["data"]
    client.patch(f"/appointments/{appointment['id']}/status", json={"status": closed_status}, headers=admin_headers)

    response = client.put(f"/appointments/{appointment['id']}", json={"time_slot": "15:00"}, headers=customer_headers)

    assert response.status_code == 400
    assert response.json()["message"] == f"Cannot update a {closed_status} appointment"


# ============================================================================
# STATS
# ============================================================================


def test_stats_revenue_covers_every_status(client, customer_headers, admin_headers, catalog):
    service, stylist = catalog
    day = next_working_day()
    cancelled = book(client, customer_headers, service, stylist, day).json()["data"]
    client.patch(f"/appointments/{cancelled['id']}/cancel", headers=customer_headers)
    book(client, customer_headers, service, stylist, day, time_slot="12:00")

    stats = client.get("/appointments/stats", headers=admin_headers).json()["data"]

    assert stats["by_status"] == {
        "cancelled": {"count": 1, "revenue": 800.0},
        "pending": {"count": 1, "revenue": 800.0},
    }
    assert stats["total_appointments"] == 2
    assert stats["total_revenue"] == 1600.0


def test_stats_date_range(client, customer_headers, admin_headers, catalog):
    service, stylist = catalog
    day = next_working_day()
    book(client, customer_headers, service, stylist, day)

    inside = client.get(
        "/appointments/stats", params={"date_from": day.isoformat(), "date_to": day.isoformat()}, headers=admin_headers
    ).json()["data"]
    after = client.get(
        "/appointments/stats", params={"date_from": (day + timedelta(days=1)).isoformat()}, headers=admin_headers
    ).json()["data"]

    assert inside["total_appointments"] == 1
    assert after == {"by_status": {}, "total_appointments": 0, "total_revenue": 0.0}


def test_stats_require_admin(client, customer_headers):
    assert client.get("/appointments/stats", headers=customer_headers).status_code == 403
