"""Order service - Checkout, payment verification, cancellation, returns and fulfilment"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ... import config
from ...models import User
from ...models_commerce import Order
from ...security_utils import sanitize_text
from ...services.notification_service import notify_order_confirmed, notify_order_status
from ...services.razorpay_service import PaymentGatewayError, razorpay_service
from ...shared.responses import paginate
from ..cart.service import CartService
from .pricing import generate_order_number, order_totals
from .repository import OrderRepository
from .schemas import OrderCreate, OrderStatusUpdate, PaymentVerification
from .status import apply_transition, can_transition

logger = logging.getLogger(__name__)

# Payment methods settled outside the gateway; stock is taken when the order is placed
OFFLINE_METHODS = ("cod", "wallet", "card")


class OrderService:
    """Service layer for order business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = OrderRepository()

    def _get_accessible(self, order_id: int, user: User) -> Order:
        order = self.repo.get_by_id(self.db, order_id)
        if not order or (not user.is_admin and order.user_id != user.id):
            raise HTTPException(status_code=404, detail="Order not found")
        return order

    def _unique_order_number(self) -> str:
        number = generate_order_number()
        while self.repo.number_exists(self.db, number):
            number = generate_order_number()
        return number

    def _update_payment(self, order: Order, **fields) -> None:
        details = dict(order.payment_details or {})
        details.update(fields)
        order.payment_details = details

    def _restore_stock(self, order: Order) -> None:
        if order.stock_reserved:
            self.repo.adjust_stock(self.db, order.items, direction=1)
            order.stock_reserved = False
            logger.info(f"📦 Stock restored for order {order.order_number}")

    async def _refund(self, order: Order, reason: str) -> None:
        """Refund a captured payment; gateway payments go back through Razorpay"""
        if order.payment_status != "completed":
            return

        details = order.payment_details or {}
        refund_id = None
        if details.get("method") == "razorpay" and details.get("razorpay_payment_id"):
            try:
                refund = await razorpay_service.refund_payment(
                    details["razorpay_payment_id"], order.total_amount, notes={"order_number": order.order_number}
                )
            except PaymentGatewayError as e:
                raise HTTPException(status_code=502, detail=f"Refund failed: {e}") from e
            refund_id = refund.get("id")

        self._update_payment(
            order,
            status="refunded",
            refund_id=refund_id,
            refund_amount=order.total_amount,
            refund_reason=reason,
            refunded_at=datetime.now().isoformat(),
        )
        logger.info(f"↩️ Order {order.order_number} refunded: {order.total_amount}")

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    async def create_order(self, data: OrderCreate, user: User) -> tuple[Order, Optional[dict]]:
        cart_service = CartService(self.db)
        cart = cart_service.get_cart(user)
        if not cart.items:
            raise HTTPException(status_code=400, detail="Cart is empty")

        shipping_address = data.shipping_address.model_dump() if data.shipping_address else cart.shipping_address
        if not shipping_address:
            raise HTTPException(status_code=400, detail="Shipping address is required")

        products = self.repo.get_products(self.db, [item["product_id"] for item in cart.items])
        lines = []
        for item in cart.items:
            product = products.get(item["product_id"])
            if not product or not product.is_active:
                raise HTTPException(status_code=400, detail=f"Product {item['product_id']} is no longer available")
            if product.stock < item["quantity"]:
                raise HTTPException(
                    status_code=400,
                    detail=f"Insufficient stock for {product.name}. Only {product.stock} available",
                )
            lines.append(
                {
                    "product_id": product.id,
                    "product_name": product.name,
                    "product_image": (product.image_urls or [None])[0],
                    "quantity": item["quantity"],
                    "price": item["price"],
                    "total_price": round(item["price"] * item["quantity"], 2),
                }
            )

        totals = order_totals(cart.total_amount, cart.discount)
        order_number = self._unique_order_number()
        payment_details = {
            "method": data.payment_method,
            "status": "pending",
            "amount": totals["total_amount"],
            "currency": "INR",
        }

        gateway_order = None
        if data.payment_method == "razorpay":
            try:
                gateway_order = await razorpay_service.create_order(
                    totals["total_amount"], currency="INR", receipt=order_number
                )
            except PaymentGatewayError as e:
                raise HTTPException(status_code=502, detail=f"Payment initialization failed: {e}") from e
            payment_details["razorpay_order_id"] = gateway_order["id"]

        order = Order(
            order_number=order_number,
            user_id=user.id,
            items=lines,
            total_items=cart.total_items,
            subtotal=totals["subtotal"],
            discount=totals["discount"],
            discount_code=cart.discount_code,
            shipping_charges=totals["shipping_charges"],
            tax=totals["tax"],
            total_amount=totals["total_amount"],
            status="pending",
            status_history=[{"status": "pending", "timestamp": datetime.now().isoformat(), "note": "Order placed"}],
            shipping_address=shipping_address,
            payment_details=payment_details,
            notes=sanitize_text(data.notes) if data.notes else None,
            stock_reserved=False,
        )

        if data.payment_method in OFFLINE_METHODS:
            self.repo.adjust_stock(self.db, lines, direction=-1)
            order.stock_reserved = True

        order = self.repo.create(self.db, order)
        cart_service.clear(user)
        logger.info(f"🛍️ Order {order.order_number} created for user {user.id}: {order.total_amount} via {data.payment_method}")

        await notify_order_confirmed(order)

        checkout = None
        if gateway_order:
            checkout = {
                "id": gateway_order["id"],
                "amount": gateway_order.get("amount"),
                "currency": gateway_order.get("currency", "INR"),
                "key_id": config.RAZORPAY_KEY_ID,
            }
        return order, checkout

    def verify_payment(self, data: PaymentVerification, user: User) -> tuple[Order, dict]:
        order = self.repo.get_by_gateway_order(
            self.db, data.razorpay_order_id, user_id=None if user.is_admin else user.id
        )
        if not order:
            raise HTTPException(status_code=404, detail="Order not found")
        if order.payment_status == "completed":
            raise HTTPException(status_code=400, detail="Payment already verified for this order")
        if not can_transition(order.status, "confirmed"):
            raise HTTPException(status_code=400, detail=f"Cannot verify payment for a {order.status} order")

        if not razorpay_service.verify_payment_signature(
            data.razorpay_order_id, data.razorpay_payment_id, data.razorpay_signature
        ):
            logger.warning(f"⚠️ Invalid payment signature for order {order.order_number}")
            self._update_payment(order, status="failed")
            self.repo.save(self.db, order)
            raise HTTPException(status_code=400, detail="Invalid payment signature")

        paid_at = datetime.now()
        self._update_payment(
            order,
            status="completed",
            razorpay_payment_id=data.razorpay_payment_id,
            razorpay_signature=data.razorpay_signature,
            paid_at=paid_at.isoformat(),
        )
        apply_transition(order, "confirmed", note="Payment verified", actor_id=user.id)
        if not order.stock_reserved:
            shortfalls = self.repo.adjust_stock(self.db, order.items, direction=-1)
            order.stock_reserved = True
            if shortfalls:
                # Payment is already captured; flag the oversell for fulfilment instead of rejecting
                logger.warning(f"⚠️ Order {order.order_number} paid with insufficient stock: {shortfalls}")
                self._update_payment(order, stock_shortfall=shortfalls)

        order = self.repo.save(self.db, order)
        logger.info(f"✅ Payment verified for order {order.order_number}")

        receipt = {
            "order_number": order.order_number,
            "payment_id": data.razorpay_payment_id,
            "amount": order.total_amount,
            "currency": (order.payment_details or {}).get("currency", "INR"),
            "method": (order.payment_details or {}).get("method"),
            "paid_at": paid_at.isoformat(),
        }
        return order, receipt

    # ------------------------------------------------------------------
    # Customer operations
    # ------------------------------------------------------------------

    def list_user_orders(self, user: User, status: Optional[str] = None, page: int = 1, limit: int = 10):
        return paginate(self.repo.list_query(self.db, user_id=user.id, status=status), page, limit)

    def get_order(self, order_id: int, user: User) -> Order:
        return self._get_accessible(order_id, user)

    async def cancel_order(self, order_id: int, user: User, reason: Optional[str] = None) -> Order:
        order = self._get_accessible(order_id, user)
        if not order.can_be_cancelled:
            raise HTTPException(status_code=400, detail="Order cannot be cancelled")

        apply_transition(order, "cancelled", note=reason or "Cancelled by customer", actor_id=user.id)
        order.cancellation_reason = sanitize_text(reason) if reason else "Cancelled by customer"
        self._restore_stock(order)
        self._update_payment(order, status="cancelled")

        order = self.repo.save(self.db, order)
        logger.info(f"🚫 Order {order.order_number} cancelled by user {user.id}")
        await notify_order_status(order)
        return order

    def request_return(self, order_id: int, user: User, reason: str) -> Order:
        order = self._get_accessible(order_id, user)
        if order.status != "delivered":
            raise HTTPException(status_code=400, detail="Only delivered orders can be returned")
        if order.return_status != "none":
            raise HTTPException(status_code=400, detail="A return has already been requested for this order")
        if not order.delivered_at or datetime.now() - order.delivered_at > timedelta(days=config.RETURN_WINDOW_DAYS):
            raise HTTPException(
                status_code=400, detail=f"Returns are only accepted within {config.RETURN_WINDOW_DAYS} days of delivery"
            )

        order.return_status = "requested"
        order.return_reason = sanitize_text(reason)
        order.return_requested_at = datetime.now()
        logger.info(f"📮 Return requested for order {order.order_number}")
        return self.repo.save(self.db, order)

    def get_tracking(self, order_id: int, user: User) -> Order:
        return self._get_accessible(order_id, user)

    # ------------------------------------------------------------------
    # Admin operations
    # ------------------------------------------------------------------

    def list_all_orders(self, page: int = 1, limit: int = 10, **filters):
        return paginate(self.repo.list_query(self.db, **filters), page, limit)

    async def update_status(self, order_id: int, data: OrderStatusUpdate, admin: User) -> Order:
        order = self._get_accessible(order_id, admin)
        if not can_transition(order.status, data.status):
            raise HTTPException(status_code=400, detail=f"Invalid status transition from {order.status} to {data.status}")

        if data.status in ("cancelled", "returned"):
            await self._refund(order, data.note or f"Order {data.status}")
            self._restore_stock(order)
            if data.status == "cancelled" and order.payment_status != "refunded":
                self._update_payment(order, status="cancelled")

        apply_transition(order, data.status, note=data.note, actor_id=admin.id)

        if data.status == "cancelled":
            order.cancellation_reason = data.note or "Cancelled by admin"
        if data.status == "returned":
            order.return_status = "completed"
        if data.status == "delivered" and order.payment_status != "completed":
            if (order.payment_details or {}).get("method") == "cod":
                self._update_payment(order, status="completed", paid_at=datetime.now().isoformat())

        if data.tracking_number is not None:
            order.tracking_number = data.tracking_number
        if data.estimated_delivery is not None:
            order.estimated_delivery = data.estimated_delivery

        order = self.repo.save(self.db, order)
        logger.info(f"🔄 Order {order.order_number} status -> {order.status} by admin {admin.id}")
        await notify_order_status(order)
        return order

    async def process_return(self, order_id: int, action: str, admin: User, notes: Optional[str] = None) -> Order:
        order = self._get_accessible(order_id, admin)
        if order.return_status != "requested":
            raise HTTPException(status_code=400, detail="No return request found for this order")

        if action == "approve":
            await self._refund(order, order.return_reason or "Return approved")
            self._restore_stock(order)
            apply_transition(order, "returned", note=notes or "Return approved", actor_id=admin.id)
            order.return_status = "completed"
        else:
            order.return_status = "rejected"
            order.status_history = list(order.status_history or []) + [
                {"status": order.status, "timestamp": datetime.now().isoformat(), "note": notes or "Return rejected"}
            ]

        order = self.repo.save(self.db, order)
        logger.info(f"📮 Return {action}d for order {order.order_number} by admin {admin.id}")
        return order

    def get_stats(self) -> dict:
        by_status = {}
        total_orders = 0
        for row in self.repo.status_breakdown(self.db):
            by_status[row.status] = {"count": row.count, "amount": float(row.amount or 0)}
            total_orders += row.count

        paid_count, revenue = self.repo.paid_totals(self.db)
        return {
            "overview": {
                "total_orders": total_orders,
                "total_revenue": revenue,
                "average_order_value": round(revenue / paid_count, 2) if paid_count else 0,
            },
            "by_status": by_status,
        }
