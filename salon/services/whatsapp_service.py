"""
WhatsApp Cloud API Service
Sends text notifications for appointments, orders, memberships and promotions
"""

import logging
import re
from datetime import date, datetime
from typing import Any, Optional

import httpx

from .. import config

logger = logging.getLogger(__name__)

SALON_SIGNATURE = "Thank you for choosing our salon! 💅✨"

ORDER_STATUS_MESSAGES = {
    "confirmed": "✅ Your order has been confirmed",
    "processing": "🔄 Your order is being processed",
    "shipped": "🚚 Your order has been shipped",
    "delivered": "✅ Your order has been delivered",
    "cancelled": "❌ Your order has been cancelled",
    "returned": "↩️ Your return has been processed",
}


def normalize_whatsapp_number(phone: Optional[str]) -> Optional[str]:
    """WhatsApp wants bare digits with country code; 10-digit numbers are Indian mobiles"""
    if not phone:
        return None
    digits = re.sub(r"\D", "", phone)
    if len(digits) == 10:
        digits = f"91{digits}"
    return digits or None


def format_date(value: Any) -> str:
    if isinstance(value, (date, datetime)):
        return value.strftime("%B %d, %Y")
    return str(value or "")


def format_time(value: Optional[str]) -> str:
    """'14:30' -> '2:30 PM'"""
    if not value:
        return ""
    return datetime.strptime(value, "%H:%M").strftime("%I:%M %p").lstrip("0")


# ============================================================================
# MESSAGE BUILDERS
# ============================================================================


def build_appointment_confirmation(
    customer_name: str,
    service_name: str,
    stylist_name: Optional[str],
    appointment_date: Any,
    time_slot: str,
    location: str,
    appointment_id: int,
) -> str:
    return (
        "🎉 *Appointment Confirmed!*\n\n"
        f"Hello {customer_name}! Your appointment has been booked.\n\n"
        f"📅 *Date:* {format_date(appointment_date)}\n"
        f"🕐 *Time:* {format_time(time_slot)}\n"
        f"💇 *Service:* {service_name}\n"
        f"👤 *Stylist:* {stylist_name or 'Any available stylist'}\n"
        f"📍 *Location:* {location}\n\n"
        f"Your appointment ID is: {appointment_id}\n\n"
        "Please arrive 10 minutes before your scheduled time.\n\n"
        f"{SALON_SIGNATURE}"
    )


def build_appointment_reminder(
    customer_name: str, service_name: str, appointment_date: Any, time_slot: str, location: str
) -> str:
    return (
        "⏰ *Appointment Reminder*\n\n"
        f"Hello {customer_name}! This is a reminder of your upcoming appointment.\n\n"
        f"📅 *Date:* {format_date(appointment_date)}\n"
        f"🕐 *Time:* {format_time(time_slot)}\n"
        f"💇 *Service:* {service_name}\n"
        f"📍 *Location:* {location}\n\n"
        "We look forward to seeing you!\n\n"
        f"{SALON_SIGNATURE}"
    )


def build_appointment_cancellation(
    customer_name: str, service_name: str, appointment_date: Any, time_slot: str, reason: Optional[str]
) -> str:
    lines = [
        "❌ *Appointment Cancelled*\n",
        f"Hello {customer_name}, your appointment has been cancelled.\n",
        f"📅 *Date:* {format_date(appointment_date)}",
        f"🕐 *Time:* {format_time(time_slot)}",
        f"💇 *Service:* {service_name}",
    ]
    if reason:
        lines.append(f"📝 *Reason:* {reason}")
    lines.append("\nWe hope to see you again soon. Book anytime from our website.")
    return "\n".join(lines)


def build_order_confirmation(
    customer_name: str, order_number: str, total_amount: float, items: list[dict], delivery_address: str = ""
) -> str:
    item_lines = "\n".join(
        f"• {item.get('product_name')} x{item.get('quantity')} - ₹{item.get('price')}" for item in items
    )
    message = (
        "🛍️ *Order Confirmed!*\n\n"
        f"Hello {customer_name}! Thank you for your order.\n\n"
        f"🆔 *Order ID:* {order_number}\n"
        f"💰 *Total Amount:* ₹{total_amount}\n\n"
        f"📦 *Items:*\n{item_lines}\n"
    )
    if delivery_address:
        message += f"\n📍 *Delivery Address:* {delivery_address}\n"
    return message + f"\n{SALON_SIGNATURE}"


def build_order_status_update(
    customer_name: str,
    order_number: str,
    status: str,
    tracking_number: Optional[str] = None,
    estimated_delivery: Any = None,
) -> str:
    lines = [
        "📦 *Order Update*\n",
        f"Hello {customer_name}!\n",
        ORDER_STATUS_MESSAGES.get(status, f"📦 Your order status: {status}"),
        "",
        f"🆔 *Order ID:* {order_number}",
    ]
    if tracking_number:
        lines.append(f"📋 *Tracking Number:* {tracking_number}")
    if estimated_delivery:
        lines.append(f"📅 *Estimated Delivery:* {format_date(estimated_delivery)}")
    lines.append(f"\n{SALON_SIGNATURE}")
    return "\n".join(lines)


def build_membership_confirmation(
    customer_name: str, package_name: str, expiry_date: Any, benefits: list[str]
) -> str:
    benefit_lines = "\n".join(f"• {b}" for b in benefits or [])
    message = (
        "👑 *Membership Activated!*\n\n"
        f"Hello {customer_name}! Welcome to *{package_name}*.\n\n"
        f"📅 *Valid Until:* {format_date(expiry_date)}\n"
    )
    if benefit_lines:
        message += f"\n🎁 *Your Benefits:*\n{benefit_lines}\n"
    return message + f"\n{SALON_SIGNATURE}"


def build_promotional_message(
    customer_name: str, title: str, description: str, discount_code: Optional[str] = None, valid_until: Any = None
) -> str:
    lines = [f"🎁 *{title}*\n", f"Hello {customer_name}!\n", description]
    if discount_code:
        lines.append(f"\n🏷️ *Use code:* {discount_code}")
    if valid_until:
        lines.append(f"⏳ *Valid until:* {format_date(valid_until)}")
    lines.append(f"\n{SALON_SIGNATURE}")
    return "\n".join(lines)


# ============================================================================
# CLOUD API CLIENT
# ============================================================================


class WhatsAppService:
    """Thin client for the WhatsApp Cloud API messages endpoint"""

    def __init__(self):
        self.api_url = config.WHATSAPP_API_URL
        self.access_token = config.WHATSAPP_ACCESS_TOKEN
        self.phone_number_id = config.WHATSAPP_PHONE_NUMBER_ID
        self.verify_token = config.WHATSAPP_VERIFY_TOKEN

        if not self.is_configured():
            logger.warning("WhatsApp credentials not configured; notifications will be skipped")

    def is_configured(self) -> bool:
        return bool(self.access_token and self.phone_number_id)

    def get_status(self) -> dict:
        phone_id = self.phone_number_id or ""
        masked = f"{phone_id[:4]}****{phone_id[-4:]}" if len(phone_id) > 8 else ("****" if phone_id else None)
        return {
            "configured": self.is_configured(),
            "api_url": self.api_url,
            "phone_number_id": masked,
            "webhook_verification": bool(self.verify_token),
        }

    async def send_text_message(self, to_phone: Optional[str], body: str) -> tuple[bool, Optional[str]]:
        """
        Send a text message

        Returns:
            Tuple of (success, message_id or error message)
        """
        if not self.is_configured():
            logger.debug("WhatsApp service not configured, skipping message")
            return False, "WhatsApp service not configured"

        recipient = normalize_whatsapp_number(to_phone)
        if not recipient:
            return False, "No phone number provided"

        payload = {
            "messaging_product": "whatsapp",
            "to": recipient,
            "type": "text",
            "text": {"body": body},
        }

        try:
            logger.info(f"📱 Sending WhatsApp message to {recipient}")
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    f"{self.api_url}/{self.phone_number_id}/messages",
                    json=payload,
                    headers={"Authorization": f"Bearer {self.access_token}"},
                    timeout=10.0,
                )

            if response.status_code in (200, 201):
                messages = response.json().get("messages") or [{}]
                message_id = messages[0].get("id")
                logger.info(f"✅ WhatsApp message sent to {recipient} (id: {message_id})")
                return True, message_id

            error_message = response.json().get("error", {}).get("message", "Unknown error")
            logger.error(f"❌ WhatsApp API error [{response.status_code}]: {error_message}")
            return False, error_message

        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"❌ WhatsApp request failed: {e}")
            return False, str(e)

    def verify_webhook(self, mode: Optional[str], token: Optional[str], challenge: Optional[str]) -> Optional[str]:
        """Return the challenge when Meta's subscription handshake matches our verify token"""
        if mode == "subscribe" and self.verify_token and token == self.verify_token:
            return challenge
        return None

    @staticmethod
    def parse_webhook(body: dict) -> Optional[dict]:
        """Extract the first inbound message from a webhook notification"""
        try:
            value = body["entry"][0]["changes"][0]["value"]
        except (KeyError, IndexError, TypeError):
            return None

        messages = value.get("messages") or []
        if not messages:
            return None

        message = messages[0]
        contacts = value.get("contacts") or []
        contact = contacts[0] if contacts else None
        return {
            "message_id": message.get("id"),
            "from": message.get("from"),
            "timestamp": message.get("timestamp"),
            "type": message.get("type"),
            "text": (message.get("text") or {}).get("body"),
            "contact": (
                {"name": (contact.get("profile") or {}).get("name"), "phone": contact.get("wa_id")}
                if contact
                else None
            ),
        }


whatsapp_service = WhatsAppService()
