"""
WhatsApp Routes
Admin-triggered notifications plus the public Meta webhook
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session, joinedload

from ..auth import require_admin
from ..database import get_db
from ..models import User
from ..models_booking import Appointment
from ..models_commerce import Order
from ..schemas import (
    BulkMessageRequest,
    BulkPromotionalRequest,
    CustomMessageRequest,
    PromotionalRequest,
    ReminderBulkRequest,
)
from ..services import notification_service
from ..services.whatsapp_service import WhatsAppService, build_promotional_message, whatsapp_service
from ..shared.responses import api_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/whatsapp", tags=["WhatsApp"])


def require_whatsapp() -> WhatsAppService:
    if not whatsapp_service.is_configured():
        raise HTTPException(status_code=503, detail="WhatsApp service is not configured")
    return whatsapp_service


def _appointment_or_404(db: Session, appointment_id: int) -> Appointment:
    appointment = (
        db.query(Appointment)
        .options(joinedload(Appointment.user), joinedload(Appointment.service), joinedload(Appointment.stylist))
        .filter(Appointment.id == appointment_id)
        .first()
    )
    if not appointment:
        raise HTTPException(status_code=404, detail="Appointment not found")
    return appointment


def _order_or_404(db: Session, order_id: int) -> Order:
    order = db.query(Order).options(joinedload(Order.user)).filter(Order.id == order_id).first()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


def _sent_or_400(result: dict, message: str) -> dict:
    if not result["sent"]:
        raise HTTPException(status_code=400, detail=f"Failed to send WhatsApp message: {result['error']}")
    return api_response(result, message)


@router.get("/status")
async def get_whatsapp_status(admin: User = Depends(require_admin)):
    return api_response(whatsapp_service.get_status(), "WhatsApp service status retrieved")


# ============================================================================
# APPOINTMENTS
# ============================================================================


@router.post("/appointment/{appointment_id}/confirm")
async def send_appointment_confirmation(
    appointment_id: int,
    admin: User = Depends(require_admin),
    _: WhatsAppService = Depends(require_whatsapp),
    db: Session = Depends(get_db),
):
    appointment = _appointment_or_404(db, appointment_id)
    result = await notification_service.notify_appointment_confirmed(appointment)
    return _sent_or_400(result, "Appointment confirmation sent successfully")


@router.post("/appointment/{appointment_id}/cancel")
async def send_appointment_cancellation(
    appointment_id: int,
    admin: User = Depends(require_admin),
    _: WhatsAppService = Depends(require_whatsapp),
    db: Session = Depends(get_db),
):
    appointment = _appointment_or_404(db, appointment_id)
    result = await notification_service.notify_appointment_cancelled(appointment)
    return _sent_or_400(result, "Appointment cancellation sent successfully")


@router.post("/appointment/reminders/bulk")
async def send_bulk_reminders(
    data: Optional[ReminderBulkRequest] = None,
    admin: User = Depends(require_admin),
    _: WhatsAppService = Depends(require_whatsapp),
    db: Session = Depends(get_db),
):
    hours_before = data.hours_before if data else 24
    now = datetime.now()
    cutoff = now + timedelta(hours=hours_before)

    candidates = (
        db.query(Appointment)
        .options(joinedload(Appointment.user), joinedload(Appointment.service))
        .filter(
            Appointment.status == "confirmed",
            Appointment.date >= now.date(),
            Appointment.date <= cutoff.date(),
        )
        .all()
    )
    due = [a for a in candidates if now < a.scheduled_at <= cutoff]

    results = []
    for appointment in due:
        result = await notification_service.notify_appointment_reminder(appointment)
        results.append({"appointment_id": appointment.id, **result})

    sent = sum(1 for r in results if r["sent"])
    logger.info(f"⏰ Sent {sent}/{len(due)} appointment reminders ({hours_before}h window)")
    return api_response(
        {"total": len(due), "sent": sent, "failed": len(due) - sent, "results": results},
        f"Reminders sent to {sent} of {len(due)} appointment(s)",
    )


# ============================================================================
# ORDERS
# ============================================================================


@router.post("/order/{order_id}/confirm")
async def send_order_confirmation(
    order_id: int,
    admin: User = Depends(require_admin),
    _: WhatsAppService = Depends(require_whatsapp),
    db: Session = Depends(get_db),
):
    order = _order_or_404(db, order_id)
    result = await notification_service.notify_order_confirmed(order)
    return _sent_or_400(result, "Order confirmation sent successfully")


@router.post("/order/{order_id}/status")
async def send_order_status_update(
    order_id: int,
    admin: User = Depends(require_admin),
    _: WhatsAppService = Depends(require_whatsapp),
    db: Session = Depends(get_db),
):
    order = _order_or_404(db, order_id)
    result = await notification_service.notify_order_status(order)
    return _sent_or_400(result, "Order status update sent successfully")


# ============================================================================
# PROMOTIONS & CUSTOM MESSAGES
# ============================================================================


@router.post("/promotional/bulk")
async def send_bulk_promotional(
    data: BulkPromotionalRequest,
    admin: User = Depends(require_admin),
    _: WhatsAppService = Depends(require_whatsapp),
    db: Session = Depends(get_db),
):
    customers = (
        db.query(User)
        .filter(User.role.in_(data.roles), User.is_active.is_(True), User.phone.isnot(None))
        .all()
    )

    results = []
    for customer in customers:
        result = await notification_service.notify_promotion(
            customer, data.title, data.description, data.discount_code, data.valid_until
        )
        results.append({"user_id": customer.id, **result})

    sent = sum(1 for r in results if r["sent"])
    logger.info(f"🎁 Promotional campaign '{data.title}' sent to {sent}/{len(customers)} customers")
    return api_response(
        {"total": len(customers), "sent": sent, "failed": len(customers) - sent, "results": results},
        f"Promotional message sent to {sent} of {len(customers)} customer(s)",
    )


@router.post("/promotional/{customer_id}")
async def send_promotional_message(
    customer_id: int,
    data: PromotionalRequest,
    admin: User = Depends(require_admin),
    _: WhatsAppService = Depends(require_whatsapp),
    db: Session = Depends(get_db),
):
    customer = db.query(User).filter(User.id == customer_id).first()
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")
    if not customer.phone:
        raise HTTPException(status_code=400, detail="Customer has no phone number")

    # An explicit admin send goes out even when the customer muted automatic notifications
    body = build_promotional_message(customer.name, data.title, data.description, data.discount_code, data.valid_until)
    sent, detail = await whatsapp_service.send_text_message(customer.phone, body)
    result = {"sent": sent, "message_id": detail if sent else None, "error": None if sent else detail}
    return _sent_or_400(result, "Promotional message sent successfully")


@router.post("/send/custom")
async def send_custom_message(
    data: CustomMessageRequest,
    admin: User = Depends(require_admin),
    service: WhatsAppService = Depends(require_whatsapp),
):
    sent, detail = await service.send_text_message(data.phone, data.message)
    result = {"sent": sent, "message_id": detail if sent else None, "error": None if sent else detail}
    return _sent_or_400(result, "Message sent successfully")


@router.post("/send/bulk")
async def send_bulk_message(
    data: BulkMessageRequest,
    admin: User = Depends(require_admin),
    service: WhatsAppService = Depends(require_whatsapp),
):
    results = []
    for phone in data.phones:
        sent, detail = await service.send_text_message(phone, data.message)
        results.append({"phone": phone, "sent": sent, "message_id": detail if sent else None, "error": None if sent else detail})

    sent_count = sum(1 for r in results if r["sent"])
    logger.info(f"📱 Bulk WhatsApp: {sent_count}/{len(results)} delivered")
    return api_response(
        {"total": len(results), "sent": sent_count, "failed": len(results) - sent_count, "results": results},
        f"Message sent to {sent_count} of {len(results)} recipient(s)",
    )


# ============================================================================
# WEBHOOK (public)
# ============================================================================


@router.get("/webhook")
async def verify_webhook(
    mode: Optional[str] = Query(None, alias="hub.mode"),
    token: Optional[str] = Query(None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(None, alias="hub.challenge"),
):
    verified = whatsapp_service.verify_webhook(mode, token, challenge)
    if verified is None:
        logger.warning("⚠️ WhatsApp webhook verification failed")
        raise HTTPException(status_code=403, detail="Webhook verification failed")
    logger.info("✅ WhatsApp webhook verified")
    return PlainTextResponse(content=verified or "")


@router.post("/webhook")
async def receive_webhook(request: Request):
    try:
        body = await request.json()
    except ValueError:
        logger.warning("⚠️ WhatsApp webhook received a non-JSON body")
        return {"status": "ignored"}

    message = WhatsAppService.parse_webhook(body)
    if message:
        logger.info(
            f"📨 WhatsApp message from {message['from']} ({message['type']}): {message.get('text') or ''}"
        )
    return {"status": "received"}
