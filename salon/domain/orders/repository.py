"""Order repository - Database operations for orders and stock"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from ...models_catalog import Product
from ...models_commerce import Order

logger = logging.getLogger(__name__)


class OrderRepository:
    """Repository for order database operations"""

    @staticmethod
    def get_by_id(db: Session, order_id: int) -> Optional[Order]:
        return db.query(Order).filter(Order.id == order_id).first()

    @staticmethod
    def get_by_gateway_order(db: Session, razorpay_order_id: str, user_id: Optional[int] = None) -> Optional[Order]:
        query = db.query(Order).filter(Order.payment_details["razorpay_order_id"].as_string() == razorpay_order_id)
        if user_id is not None:
            query = query.filter(Order.user_id == user_id)
        return query.first()

    @staticmethod
    def number_exists(db: Session, order_number: str) -> bool:
        return db.query(Order.id).filter(Order.order_number == order_number).first() is not None

    @staticmethod
    def list_query(
        db: Session,
        user_id: Optional[int] = None,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> Query:
        query = db.query(Order)
        if user_id is not None:
            query = query.filter(Order.user_id == user_id)
        if status:
            query = query.filter(Order.status == status)
        if payment_status:
            query = query.filter(Order.payment_details["status"].as_string() == payment_status)
        if date_from:
            query = query.filter(Order.created_at >= date_from)
        if date_to:
            query = query.filter(Order.created_at <= date_to)
        return query.order_by(Order.created_at.desc(), Order.id.desc())

    @staticmethod
    def get_products(db: Session, product_ids: list[int]) -> dict[int, Product]:
        if not product_ids:
            return {}
        return {p.id: p for p in db.query(Product).filter(Product.id.in_(set(product_ids))).all()}

    @staticmethod
    def adjust_stock(db: Session, items: list[dict], direction: int) -> list[dict]:
        """
        Add (direction=1) or remove (direction=-1) each line's quantity from product stock

        Stock never goes below zero. Returns the lines that could not be fully
        taken from stock as {product_id, requested, available}.
        """
        shortfalls = []
        products = OrderRepository.get_products(db, [item["product_id"] for item in items])
        for item in items:
            product = products.get(item["product_id"])
            if not product:
                continue
            new_stock = product.stock + direction * item["quantity"]
            if new_stock < 0:
                logger.warning(
                    f"⚠️ Stock shortfall for product {product.id}: needed {item['quantity']}, had {product.stock}"
                )
                shortfalls.append({"product_id": product.id, "requested": item["quantity"], "available": product.stock})
                new_stock = 0
            product.stock = new_stock
        return shortfalls

    @staticmethod
    def create(db: Session, order: Order) -> Order:
        db.add(order)
        db.commit()
        db.refresh(order)
        return order

    @staticmethod
    def save(db: Session, order: Order) -> Order:
        db.commit()
        db.refresh(order)
        return order

    @staticmethod
    def status_breakdown(db: Session) -> list:
        return (
            db.query(
                Order.status,
                func.count(Order.id).label("count"),
                func.coalesce(func.sum(Order.total_amount), 0).label("amount"),
            )
            .group_by(Order.status)
            .all()
        )

    @staticmethod
    def paid_totals(db: Session) -> tuple[int, float]:
        """(count, revenue) over orders with a completed payment"""
        count, total = (
            db.query(func.count(Order.id), func.coalesce(func.sum(Order.total_amount), 0))
            .filter(Order.payment_details["status"].as_string() == "completed")
            .one()
        )
        return count, float(total or 0)
