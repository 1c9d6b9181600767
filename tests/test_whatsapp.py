import pytest

from conftest import next_working_day
from salon.models_booking import Appointment
from salon.services.whatsapp_service import (
    WhatsAppService,
    build_order_status_update,
    format_time,
    normalize_whatsapp_number,
    whatsapp_service,
)


@pytest.fixture
def outbox(monkeypatch):
    """Configure the WhatsApp client and capture outgoing messages instead of calling Meta"""
    sent = []

    async def send_text_message(to_phone, body):
        sent.append({"to": to_phone, "body": body})
        return True, f"wamid.{len(sent)}"

    monkeypatch.setattr(whatsapp_service, "access_token", "test-access-token")
    monkeypatch.setattr(whatsapp_service, "phone_number_id", "1234567890123")
    monkeypatch.setattr(whatsapp_service, "send_text_message", send_text_message)
    return sent


def test_number_normalization():
    assert normalize_whatsapp_number("98765 43210") == "919876543210"
    assert normalize_whatsapp_number("+44 20 7946 0958") == "442079460958"
    assert normalize_whatsapp_number(None) is None


def test_time_formatting():
    assert format_time("14:30") == "2:30 PM"
    assert format_time("09:00") == "9:00 AM"


def test_order_status_message_mentions_tracking():
    body = build_order_status_update("Priya", "ORD12345678001", "shipped", tracking_number="TRK123")

    assert "ORD12345678001" in body
    assert "TRK123" in body
    assert "shipped" in body


def test_parse_webhook_text_message():
    body = {
        "entry": [
            {
                "changes": [
                    {
                        "value": {
                            "contacts": [{"profile": {"name": "Priya"}, "wa_id": "919876543210"}],
                            "messages": [
                                {
                                    "id": "wamid.abc",
                                    "from": "919876543210",
                                    "timestamp": "1760000000",
                                    "type": "text",
                                    "text": {"body": "Is Saturday free?"},
                                }
                            ],
                        }
                    }
                ]
            }
        ]
    }

    message = WhatsAppService.parse_webhook(body)

    assert message["from"] == "919876543210"
    assert message["text"] == "Is Saturday free?"
    assert message["contact"]["name"] == "Priya"


def test_parse_webhook_status_only_notification():
    assert WhatsAppService.parse_webhook({"entry": [{"changes": [{"value": {"statuses": []}}]}]}) is None
    assert WhatsAppService.parse_webhook({}) is None


def test_status_reports_unconfigured(client, admin_headers):
    response = client.get("/whatsapp/status", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["data"]["configured"] is False


def test_status_requires_admin(client, customer_headers):
    assert client.get("/whatsapp/status", headers=customer_headers).status_code == 403


def test_triggers_unavailable_when_not_configured(client, admin_headers):
    response = client.post("/whatsapp/send/custom", json={"phone": "9876543210", "message": "Hello"}, headers=admin_headers)

    assert response.status_code == 503
    assert response.json()["message"] == "WhatsApp service is not configured"


def test_custom_message(client, admin_headers, outbox):
    response = client.post(
        "/whatsapp/send/custom", json={"phone": "9876543210", "message": "Your stylist is on the way"}, headers=admin_headers
    )

    assert response.status_code == 200
    assert response.json()["data"]["message_id"] == "wamid.1"
    assert outbox == [{"to": "9876543210", "body": "Your stylist is on the way"}]


def test_bulk_message_counts(client, admin_headers, outbox):
    response = client.post(
        "/whatsapp/send/bulk",
        json={"phones": ["9876543210", "9123456780"], "message": "Diwali offers are live"},
        headers=admin_headers,
    )

    data = response.json()["data"]
    assert data["total"] == 2
    assert data["sent"] == 2
    assert data["failed"] == 0


def test_appointment_confirmation_trigger(client, admin_headers, customer_headers, make_service, make_stylist, outbox):
    service, stylist = make_service(), make_stylist()
    appointment = client.post(
        "/appointments",
        json={
            "service_id": service.id,
            "stylist_id": stylist.id,
            "date": next_working_day().isoformat(),
            "time_slot": "11:00",
        },
        headers=customer_headers,
    ).json()["data"]
    outbox.clear()

    response = client.post(f"/whatsapp/appointment/{appointment['id']}/confirm", headers=admin_headers)

    assert response.status_code == 200
    assert len(outbox) == 1
    assert outbox[0]["to"] == "+919876543210"
    assert "Haircut & Styling" in outbox[0]["body"]
    assert "11:00 AM" in outbox[0]["body"]


def test_notification_respects_opt_out(client, admin_headers, make_user, make_service, db_session, outbox):
    quiet = make_user(phone="+919000000001", preferences={"notifications": True, "whatsapp_notifications": False})
    service = make_service()
    appointment = Appointment(
        user_id=quiet.id,
        service_id=service.id,
        date=next_working_day(),
        time_slot="12:00",
        location="salon",
        status="confirmed",
        total_price=service.price,
    )
    db_session.add(appointment)
    db_session.commit()

    response = client.post(f"/whatsapp/appointment/{appointment.id}/confirm", headers=admin_headers)

    assert response.status_code == 400
    assert outbox == []


def test_missing_appointment(client, admin_headers, outbox):
    response = client.post("/whatsapp/appointment/999/confirm", headers=admin_headers)

    assert response.status_code == 404


def test_webhook_verification(client, monkeypatch):
    monkeypatch.setattr(whatsapp_service, "verify_token", "salon-verify")

    response = client.get(
        "/whatsapp/webhook",
        params={"hub.mode": "subscribe", "hub.verify_token": "salon-verify", "hub.challenge": "12345"},
    )

    assert response.status_code == 200
    assert response.text == "12345"


def test_webhook_verification_rejects_wrong_token(client, monkeypatch):
    monkeypatch.setattr(whatsapp_service, "verify_token", "salon-verify")

    response = client.get(
        "/whatsapp/webhook",
        params={"hub.mode": "subscribe", "hub.verify_token": "guess", "hub.challenge": "12345"},
    )

    assert response.status_code == 403


def test_webhook_always_acknowledges(client):
    received = client.post("/whatsapp/webhook", json={"entry": []})
    assert received.status_code == 200
    assert received.json() == {"status": "received"}

    garbage = client.post("/whatsapp/webhook", content=b"not json", headers={"Content-Type": "application/json"})
    assert garbage.status_code == 200
    assert garbage.json() == {"status": "ignored"}
