"""
Review Service
Shared review rules for /reviews and /products/{id}/reviews.
"""

import logging

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models import User
from ..models_catalog import Product, Review, Service
from ..security_utils import sanitize_text
from ..shared.responses import paginate

logger = logging.getLogger(__name__)

TARGET_MODELS = {"product": Product, "service": Service}


def ensure_target_exists(db: Session, target_type: str, target_id: int) -> None:
    model = TARGET_MODELS.get(target_type)
    if model is None:
        raise HTTPException(status_code=400, detail="Invalid review target type")
    target = db.query(model).filter(model.id == target_id).first()
    if not target or not target.is_active:
        raise HTTPException(status_code=404, detail=f"{target_type.capitalize()} not found")


def submit_review(db: Session, user: User, target_type: str, target_id: int, rating: int, comment: str) -> Review:
    ensure_target_exists(db, target_type, target_id)

    existing = (
        db.query(Review.id)
        .filter(
            Review.user_id == user.id,
            Review.target_type == target_type,
            Review.target_id == target_id,
            Review.is_active.is_(True),
        )
        .first()
    )
    if existing:
        raise HTTPException(status_code=409, detail=f"You have already reviewed this {target_type}")

    comment = sanitize_text(comment)
    if not comment:
        raise HTTPException(status_code=400, detail="Review comment cannot be empty")

    review = Review(
        user_id=user.id,
        target_type=target_type,
        target_id=target_id,
        rating=rating,
        comment=comment,
        is_approved=False,
        is_active=True,
    )
    db.add(review)
    db.commit()
    db.refresh(review)
    logger.info(f"⭐ Review {review.id} submitted by user {user.id} for {target_type} {target_id}")
    return review


def approved_reviews(db: Session, target_type: str, target_id: int, page: int = 1, limit: int = 10):
    """Approved reviews for a target plus its rating summary"""
    base = db.query(Review).filter(
        Review.target_type == target_type,
        Review.target_id == target_id,
        Review.is_approved.is_(True),
        Review.is_active.is_(True),
    )
    average, count = (
        base.with_entities(func.avg(Review.rating), func.count(Review.id)).one()
    )
    reviews, pagination = paginate(base.order_by(Review.created_at.desc(), Review.id.desc()), page, limit)
    summary = {"average_rating": round(float(average), 1) if average is not None else 0, "total_reviews": count}
    return reviews, pagination, summary


def refresh_product_rating(db: Session, product_id: int) -> None:
    """Recompute a product's rating aggregate from its approved, active reviews"""
    average, count = (
        db.query(func.avg(Review.rating), func.count(Review.id))
        .filter(
            Review.target_type == "product",
            Review.target_id == product_id,
            Review.is_approved.is_(True),
            Review.is_active.is_(True),
        )
        .one()
    )
    product = db.query(Product).filter(Product.id == product_id).first()
    if product:
        product.rating_average = round(float(average), 1) if average is not None else 0
        product.rating_count = count
