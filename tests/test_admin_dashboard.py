from datetime import date

from conftest import next_working_day
from salon.models_booking import Appointment


def test_dashboard_requires_admin(client, customer_headers):
    assert client.get("/admin/dashboard/overview").status_code == 401
    assert client.get("/admin/dashboard/overview", headers=customer_headers).status_code == 403


def test_overview_counts(client, admin_headers, customer_headers, make_service, make_stylist, make_product):
    service, stylist = make_service(), make_stylist()
    make_product(stock=2, reorder_level=5)
    client.post(
        "/appointments",
        json={
            "service_id": service.id,
            "stylist_id": stylist.id,
            "date": next_working_day().isoformat(),
            "time_slot": "10:00",
        },
        headers=customer_headers,
    )
    client.post("/enquiries", json={
        "name": "Walk In",
        "email": "walkin@example.com",
        "subject": "Opening hours",
        "message": "Are you open on public holidays?",
    })

    overview = client.get("/admin/dashboard/overview", headers=admin_headers).json()["data"]

    stats = overview["stats"]
    assert stats["users"]["by_role"] == {"customer": 1, "admin": 1}
    assert stats["appointments"]["total"] == 1
    assert stats["appointments"]["upcoming"] == 1
    assert stats["products"]["low_stock"] == 1
    assert stats["enquiries"]["new"] == 1
    assert len(overview["recent_bookings"]) == 1
    assert overview["upcoming_appointments"][0]["time_slot"] == "10:00"


def test_weekly_revenue_series(client, admin_headers, customer, make_service, db_session):
    service = make_service()
    db_session.add(
        Appointment(
            user_id=customer.id,
            service_id=service.id,
            date=date.today(),
            time_slot="09:00",
            location="salon",
            status="completed",
            total_price=service.price,
        )
    )
    db_session.commit()

    response = client.get("/admin/dashboard/revenue-analytics", params={"period": "week"}, headers=admin_headers)

    data = response.json()["data"]
    assert len(data["series"]) == 7
    assert data["series"][-1]["period"] == date.today().isoformat()
    assert data["series"][-1]["appointments"] == service.price
    assert data["totals"]["total"] == service.price


def test_yearly_revenue_has_twelve_months(client, admin_headers):
    data = client.get(
        "/admin/dashboard/revenue-analytics", params={"period": "year"}, headers=admin_headers
    ).json()["data"]

    assert len(data["series"]) == 12
    assert data["series"][-1]["period"] == date.today().strftime("%Y-%m")


def test_invalid_period(client, admin_headers):
    response = client.get("/admin/dashboard/revenue-analytics", params={"period": "decade"}, headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "period"
