"""Order router - FastAPI endpoints for checkout, order history and fulfilment"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_admin
from ...database import get_db
from ...models import User
from ...schemas import dump
from ...shared.responses import api_response
from .schemas import (
    ORDER_STATUS_PATTERN,
    PAYMENT_STATUS_PATTERN,
    OrderCancel,
    OrderCreate,
    OrderResponse,
    OrderStatusUpdate,
    OrderTracking,
    PaymentVerification,
    ReturnProcess,
    ReturnRequest,
)
from .service import OrderService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["Orders"])


def get_order_service(db: Session = Depends(get_db)) -> OrderService:
    """Dependency injection for OrderService"""
    return OrderService(db)


# ============================================================================
# CHECKOUT
# ============================================================================


@router.post("", status_code=201)
async def create_order(
    data: OrderCreate,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """Place an order from the current cart"""
    order, checkout = await service.create_order(data, current_user)
    return api_response(
        {"order": dump(OrderResponse, order), "razorpay_order": checkout},
        "Order created successfully",
    )


@router.post("/verify-payment")
async def verify_payment(
    data: PaymentVerification,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    order, receipt = service.verify_payment(data, current_user)
    return api_response({"order": dump(OrderResponse, order), "receipt": receipt}, "Payment verified successfully")


@router.get("/my-orders")
async def get_my_orders(
    status: Optional[str] = Query(None, pattern=ORDER_STATUS_PATTERN),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    orders, pagination = service.list_user_orders(current_user, status=status, page=page, limit=limit)
    return api_response(
        {"orders": [dump(OrderResponse, o) for o in orders], "pagination": pagination},
        "Orders retrieved successfully",
    )


# ============================================================================
# ADMIN
# ============================================================================


@router.get("/admin/all")
async def get_all_orders(
    status: Optional[str] = Query(None, pattern=ORDER_STATUS_PATTERN),
    payment_status: Optional[str] = Query(None, pattern=PAYMENT_STATUS_PATTERN),
    user_id: Optional[int] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    admin: User = Depends(require_admin),
    service: OrderService = Depends(get_order_service),
):
    orders, pagination = service.list_all_orders(
        page=page,
        limit=limit,
        status=status,
        payment_status=payment_status,
        user_id=user_id,
        date_from=start_date,
        date_to=end_date,
    )
    return api_response(
        {"orders": [dump(OrderResponse, o) for o in orders], "pagination": pagination},
        "Orders retrieved successfully",
    )


@router.get("/admin/stats")
async def get_order_stats(
    admin: User = Depends(require_admin),
    service: OrderService = Depends(get_order_service),
):
    return api_response(service.get_stats(), "Order statistics retrieved successfully")


@router.patch("/admin/{order_id}/status")
async def update_order_status(
    order_id: int,
    data: OrderStatusUpdate,
    admin: User = Depends(require_admin),
    service: OrderService = Depends(get_order_service),
):
    order = await service.update_status(order_id, data, admin)
    return api_response(dump(OrderResponse, order), "Order status updated successfully")


@router.patch("/admin/{order_id}/return")
async def process_return(
    order_id: int,
    data: ReturnProcess,
    admin: User = Depends(require_admin),
    service: OrderService = Depends(get_order_service),
):
    order = await service.process_return(order_id, data.action, admin, data.notes)
    return api_response(dump(OrderResponse, order), f"Return {data.action}d successfully")


# ============================================================================
# SINGLE ORDER
# ============================================================================


@router.get("/{order_id}")
async def get_order(
    order_id: int,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    order = service.get_order(order_id, current_user)
    return api_response(dump(OrderResponse, order), "Order retrieved successfully")


@router.patch("/{order_id}/cancel")
async def cancel_order(
    order_id: int,
    data: Optional[OrderCancel] = Body(None),
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    order = await service.cancel_order(order_id, current_user, data.reason if data else None)
    return api_response(dump(OrderResponse, order), "Order cancelled successfully")


@router.post("/{order_id}/return")
async def request_return(
    order_id: int,
    data: ReturnRequest,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    order = service.request_return(order_id, current_user, data.reason)
    return api_response(dump(OrderResponse, order), "Return request submitted successfully")


@router.get("/{order_id}/tracking")
async def get_order_tracking(
    order_id: int,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    order = service.get_tracking(order_id, current_user)
    return api_response(dump(OrderTracking, order), "Order tracking information retrieved successfully")
