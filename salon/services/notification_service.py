"""
Notification Service
Best-effort WhatsApp notifications triggered by booking, order and membership events.
A failed notification never fails the operation that triggered it.
"""

import logging
from typing import Optional

from ..models import User
from ..models_booking import Appointment, Membership
from ..models_commerce import Order
from . import whatsapp_service as wa

logger = logging.getLogger(__name__)


def _wants_whatsapp(user: Optional[User]) -> bool:
    if not user or not user.phone:
        return False
    preferences = user.preferences or {}
    return preferences.get("whatsapp_notifications", True) and preferences.get("notifications", True)


async def _deliver(user: Optional[User], body: str, notification_type: str) -> dict:
    result = {"sent": False, "message_id": None, "error": None}

    if not wa.whatsapp_service.is_configured():
        logger.debug(f"WhatsApp not configured, skipping {notification_type}")
        result["error"] = "WhatsApp service not configured"
        return result

    if not _wants_whatsapp(user):
        logger.debug(f"⚠️ No phone/opt-in for {notification_type} notification")
        result["error"] = "Recipient has no phone number or opted out"
        return result

    try:
        sent, detail = await wa.whatsapp_service.send_text_message(user.phone, body)
        result["sent"] = sent
        result["message_id" if sent else "error"] = detail
        if not sent:
            logger.warning(f"⚠️ {notification_type} WhatsApp to user {user.id} not delivered: {detail}")
    except Exception as e:
        result["error"] = str(e)
        logger.warning(f"❌ Failed to send {notification_type} WhatsApp to user {user.id}: {e}")

    return result


async def notify_appointment_confirmed(appointment: Appointment) -> dict:
    body = wa.build_appointment_confirmation(
        customer_name=appointment.user.name,
        service_name=appointment.service.name if appointment.service else "Salon service",
        stylist_name=appointment.stylist.name if appointment.stylist else None,
        appointment_date=appointment.date,
        time_slot=appointment.time_slot,
        location="Home visit" if appointment.location == "home" else "Salon",
        appointment_id=appointment.id,
    )
    return await _deliver(appointment.user, body, "appointment_confirmation")


async def notify_appointment_reminder(appointment: Appointment) -> dict:
    body = wa.build_appointment_reminder(
        customer_name=appointment.user.name,
        service_name=appointment.service.name if appointment.service else "Salon service",
        appointment_date=appointment.date,
        time_slot=appointment.time_slot,
        location="Home visit" if appointment.location == "home" else "Salon",
    )
    return await _deliver(appointment.user, body, "appointment_reminder")


async def notify_appointment_cancelled(appointment: Appointment) -> dict:
    body = wa.build_appointment_cancellation(
        customer_name=appointment.user.name,
        service_name=appointment.service.name if appointment.service else "Salon service",
        appointment_date=appointment.date,
        time_slot=appointment.time_slot,
        reason=appointment.cancellation_reason,
    )
    return await _deliver(appointment.user, body, "appointment_cancellation")


async def notify_order_confirmed(order: Order) -> dict:
    address = order.shipping_address or {}
    delivery = ", ".join(
        str(address[k]) for k in ("street", "city", "state", "zip_code") if address.get(k)
    )
    body = wa.build_order_confirmation(
        customer_name=order.user.name,
        order_number=order.order_number,
        total_amount=order.total_amount,
        items=order.items or [],
        delivery_address=delivery,
    )
    return await _deliver(order.user, body, "order_confirmation")


async def notify_order_status(order: Order) -> dict:
    body = wa.build_order_status_update(
        customer_name=order.user.name,
        order_number=order.order_number,
        status=order.status,
        tracking_number=order.tracking_number,
        estimated_delivery=order.estimated_delivery,
    )
    return await _deliver(order.user, body, "order_status_update")


async def notify_membership_confirmed(membership: Membership) -> dict:
    body = wa.build_membership_confirmation(
        customer_name=membership.user.name,
        package_name=membership.package_name,
        expiry_date=membership.expiry_date,
        benefits=membership.benefits or [],
    )
    return await _deliver(membership.user, body, "membership_confirmation")


async def notify_promotion(user: User, title: str, description: str, discount_code=None, valid_until=None) -> dict:
    body = wa.build_promotional_message(user.name, title, description, discount_code, valid_until)
    return await _deliver(user, body, "promotional")
