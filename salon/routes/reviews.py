import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..auth import get_current_user, require_admin
from ..database import get_db
from ..models import User
from ..models_catalog import Review
from ..schemas import ReviewCreate, ReviewResponse, ReviewUpdate, dump
from ..security_utils import sanitize_text
from ..services import review_service
from ..shared.responses import api_response, paginate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reviews", tags=["Reviews"])


def _get_review_or_404(db: Session, review_id: int) -> Review:
    review = db.query(Review).filter(Review.id == review_id, Review.is_active.is_(True)).first()
    if not review:
        raise HTTPException(status_code=404, detail="Review not found")
    return review


def _soft_delete(db: Session, review: Review) -> None:
    review.is_active = False
    db.flush()
    if review.target_type == "product":
        review_service.refresh_product_rating(db, review.target_id)
    db.commit()


@router.get("/target/{target_type}/{target_id}")
async def get_target_reviews(
    target_type: str = Path(..., pattern="^(product|service)$"),
    target_id: int = Path(...),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    reviews, pagination, summary = review_service.approved_reviews(db, target_type, target_id, page, limit)
    return api_response(
        {"reviews": [dump(ReviewResponse, r) for r in reviews], "pagination": pagination, **summary},
        "Reviews retrieved successfully",
    )


@router.post("/submit", status_code=201)
async def submit_review(
    data: ReviewCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    review = review_service.submit_review(
        db, current_user, data.target_type, data.target_id, data.rating, data.comment
    )
    return api_response(dump(ReviewResponse, review), "Review submitted successfully and is pending approval")


@router.get("/my-reviews")
async def get_my_reviews(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    query = (
        db.query(Review)
        .filter(Review.user_id == current_user.id, Review.is_active.is_(True))
        .order_by(Review.created_at.desc(), Review.id.desc())
    )
    reviews, pagination = paginate(query, page, limit)
    return api_response(
        {"reviews": [dump(ReviewResponse, r) for r in reviews], "pagination": pagination},
        "Reviews retrieved successfully",
    )


# ============================================================================
# ADMIN
# ============================================================================


@router.get("/admin/all")
async def get_all_reviews(
    is_approved: Optional[bool] = None,
    target_type: Optional[str] = Query(None, pattern="^(product|service)$"),
    target_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    query = db.query(Review).filter(Review.is_active.is_(True))
    if is_approved is not None:
        query = query.filter(Review.is_approved.is_(is_approved))
    if target_type:
        query = query.filter(Review.target_type == target_type)
    if target_id is not None:
        query = query.filter(Review.target_id == target_id)

    reviews, pagination = paginate(query.order_by(Review.created_at.desc(), Review.id.desc()), page, limit)
    return api_response(
        {"reviews": [dump(ReviewResponse, r) for r in reviews], "pagination": pagination},
        "Reviews retrieved successfully",
    )


@router.get("/admin/stats")
async def get_review_stats(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    active = db.query(Review).filter(Review.is_active.is_(True))
    total = active.count()
    approved = active.filter(Review.is_approved.is_(True)).count()
    average = active.with_entities(func.avg(Review.rating)).scalar()

    distribution = {str(star): 0 for star in range(1, 6)}
    for rating, count in (
        db.query(Review.rating, func.count(Review.id))
        .filter(Review.is_active.is_(True))
        .group_by(Review.rating)
        .all()
    ):
        distribution[str(rating)] = count

    by_target = dict(
        db.query(Review.target_type, func.count(Review.id))
        .filter(Review.is_active.is_(True))
        .group_by(Review.target_type)
        .all()
    )

    return api_response(
        {
            "total_reviews": total,
            "approved_reviews": approved,
            "pending_reviews": total - approved,
            "average_rating": round(float(average), 2) if average is not None else 0,
            "rating_distribution": distribution,
            "by_target_type": by_target,
        },
        "Review statistics retrieved successfully",
    )


@router.patch("/admin/{review_id}/approve")
async def approve_review(
    review_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    review = _get_review_or_404(db, review_id)
    if review.is_approved:
        raise HTTPException(status_code=400, detail="Review is already approved")

    review.is_approved = True
    review.approved_by = admin.id
    review.approved_at = datetime.now()
    db.flush()
    if review.target_type == "product":
        review_service.refresh_product_rating(db, review.target_id)
    db.commit()
    db.refresh(review)
    logger.info(f"✅ Review {review.id} approved by admin {admin.id}")
    return api_response(dump(ReviewResponse, review), "Review approved successfully")


@router.delete("/admin/{review_id}")
async def admin_delete_review(
    review_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    review = _get_review_or_404(db, review_id)
    _soft_delete(db, review)
    logger.info(f"🗑️ Review {review_id} removed by admin {admin.id}")
    return api_response({}, "Review deleted successfully")


# ============================================================================
# OWN REVIEWS
# ============================================================================


@router.put("/{review_id}")
async def update_review(
    review_id: int,
    data: ReviewUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    review = _get_review_or_404(db, review_id)
    if review.user_id != current_user.id:
        raise HTTPException(status_code=403, detail="You can only update your own reviews")
    if review.is_approved:
        raise HTTPException(status_code=400, detail="Approved reviews cannot be edited")

    updates = data.model_dump(exclude_unset=True, exclude_none=True)
    if "comment" in updates:
        updates["comment"] = sanitize_text(updates["comment"])
        if not updates["comment"]:
            raise HTTPException(status_code=400, detail="Review comment cannot be empty")
    for field, value in updates.items():
        setattr(review, field, value)
    db.commit()
    db.refresh(review)
    return api_response(dump(ReviewResponse, review), "Review updated successfully")


@router.delete("/{review_id}")
async def delete_review(
    review_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    review = _get_review_or_404(db, review_id)
    if review.user_id != current_user.id and not current_user.is_admin:
        raise HTTPException(status_code=403, detail="You can only delete your own reviews")
    _soft_delete(db, review)
    return api_response({}, "Review deleted successfully")
