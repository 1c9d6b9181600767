"""Razorpay service - Orders, refunds and payment signature checks against the Razorpay REST API"""

import hashlib
import hmac
import logging
from typing import Optional

import httpx

from .. import config

logger = logging.getLogger(__name__)


class PaymentGatewayError(Exception):
    """Raised when Razorpay is unavailable or rejects a request"""


def to_paise(amount: float) -> int:
    return int(round(amount * 100))


def compute_signature(secret: str, order_id: str, payment_id: str) -> str:
    """HMAC-SHA256 of "<order_id>|<payment_id>" keyed with the API secret, hex encoded"""
    payload = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


class RazorpayService:
    """Service for Razorpay API operations"""

    def __init__(self):
        self.key_id = config.RAZORPAY_KEY_ID
        self.key_secret = config.RAZORPAY_KEY_SECRET
        self.api_url = config.RAZORPAY_API_URL

        if not self.is_available():
            logger.warning("RAZORPAY_KEY_ID/RAZORPAY_KEY_SECRET not set; online payments will fail until configured")

    def is_available(self) -> bool:
        """Check if Razorpay credentials are configured"""
        return bool(self.key_id and self.key_secret)

    async def _post(self, path: str, payload: dict) -> dict:
        if not self.is_available():
            raise PaymentGatewayError("Payment gateway not configured")

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    f"{self.api_url}{path}",
                    json=payload,
                    auth=(self.key_id, self.key_secret),
                    timeout=10.0,
                )
        except httpx.HTTPError as e:
            logger.error(f"❌ Razorpay request to {path} failed: {e}")
            raise PaymentGatewayError(f"Payment gateway unreachable: {e}") from e

        if response.status_code not in (200, 201):
            try:
                description = response.json().get("error", {}).get("description", "Unknown error")
            except ValueError:
                description = response.text[:200]
            logger.error(f"❌ Razorpay API error [{response.status_code}] on {path}: {description}")
            raise PaymentGatewayError(description)

        return response.json()

    async def create_order(self, amount: float, currency: str = "INR", receipt: Optional[str] = None) -> dict:
        """Create a Razorpay order; amount is in rupees and sent in paise"""
        payload = {"amount": to_paise(amount), "currency": currency, "receipt": receipt, "payment_capture": 1}
        order = await self._post("/orders", payload)
        logger.info(f"💳 Razorpay order created: {order.get('id')} for receipt {receipt}")
        return order

    async def refund_payment(self, payment_id: str, amount: float, notes: Optional[dict] = None) -> dict:
        """Refund a captured payment (full or partial)"""
        refund = await self._post(
            f"/payments/{payment_id}/refund", {"amount": to_paise(amount), "notes": notes or {}}
        )
        logger.info(f"↩️ Razorpay refund {refund.get('id')} issued for payment {payment_id}")
        return refund

    def verify_payment_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """Verify the checkout signature returned to the client after payment"""
        if not self.key_secret or not signature:
            return False
        expected = compute_signature(self.key_secret, order_id, payment_id)
        return hmac.compare_digest(expected, signature)


razorpay_service = RazorpayService()
