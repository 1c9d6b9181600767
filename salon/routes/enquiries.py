import logging
import random
import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..auth import require_admin
from ..database import get_db
from ..models import Enquiry, User
from ..rate_limiter import create_rate_limiter
from ..schemas import EnquiryCreate, EnquiryResponse, EnquiryUpdate, dump
from ..security_utils import sanitize_text
from ..shared.responses import api_response, paginate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/enquiries", tags=["Enquiries"])

rate_limit_enquiry = create_rate_limiter(limit=5, window_seconds=3600, key_prefix="enquiry")


def generate_enquiry_number() -> str:
    """ENQ + millisecond timestamp + 3 random digits"""
    return f"ENQ{int(time.time() * 1000)}{random.randint(0, 999):03d}"


def _get_enquiry_or_404(db: Session, enquiry_id: int) -> Enquiry:
    enquiry = db.query(Enquiry).filter(Enquiry.id == enquiry_id).first()
    if not enquiry:
        raise HTTPException(status_code=404, detail="Enquiry not found")
    return enquiry


@router.post("", status_code=201)
async def create_enquiry(
    data: EnquiryCreate,
    _: None = Depends(rate_limit_enquiry),
    db: Session = Depends(get_db),
):
    message = sanitize_text(data.message)
    subject = sanitize_text(data.subject)
    if not message or not subject:
        raise HTTPException(status_code=400, detail="Subject and message cannot be empty")

    enquiry_number = generate_enquiry_number()
    while db.query(Enquiry.id).filter(Enquiry.enquiry_number == enquiry_number).first():
        enquiry_number = generate_enquiry_number()

    enquiry = Enquiry(
        **data.model_dump(exclude={"message", "subject", "name"}),
        name=sanitize_text(data.name),
        subject=subject,
        message=message,
        enquiry_number=enquiry_number,
    )
    db.add(enquiry)
    db.commit()
    db.refresh(enquiry)
    logger.info(f"📩 New enquiry {enquiry.enquiry_number} ({enquiry.enquiry_type}) from {enquiry.email}")
    return api_response(
        {"enquiry_number": enquiry.enquiry_number, "id": enquiry.id},
        "Enquiry submitted successfully. We will get back to you soon.",
    )


# ============================================================================
# ADMIN
# ============================================================================


@router.get("")
async def list_enquiries(
    status: Optional[str] = Query(None, pattern="^(new|in_progress|resolved|closed)$"),
    enquiry_type: Optional[str] = Query(None, pattern="^(general|booking|product|membership|complaint|feedback)$"),
    priority: Optional[str] = Query(None, pattern="^(low|medium|high|urgent)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    query = db.query(Enquiry)
    if status:
        query = query.filter(Enquiry.status == status)
    if enquiry_type:
        query = query.filter(Enquiry.enquiry_type == enquiry_type)
    if priority:
        query = query.filter(Enquiry.priority == priority)

    enquiries, pagination = paginate(query.order_by(Enquiry.created_at.desc(), Enquiry.id.desc()), page, limit)
    return api_response(
        {"enquiries": [dump(EnquiryResponse, e) for e in enquiries], "pagination": pagination},
        "Enquiries retrieved successfully",
    )


@router.get("/search")
async def search_enquiries(
    q: str = Query(..., min_length=2),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    pattern = f"%{q.strip()}%"
    query = db.query(Enquiry).filter(
        or_(
            Enquiry.name.ilike(pattern),
            Enquiry.email.ilike(pattern),
            Enquiry.subject.ilike(pattern),
            Enquiry.message.ilike(pattern),
            Enquiry.enquiry_number.ilike(pattern),
        )
    )
    enquiries, pagination = paginate(query.order_by(Enquiry.created_at.desc(), Enquiry.id.desc()), page, limit)
    return api_response(
        {"enquiries": [dump(EnquiryResponse, e) for e in enquiries], "pagination": pagination, "query": q},
        "Search results retrieved successfully",
    )


@router.get("/stats")
async def get_enquiry_stats(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    def grouped(column):
        return dict(db.query(column, func.count(Enquiry.id)).group_by(column).all())

    return api_response(
        {
            "total_enquiries": db.query(func.count(Enquiry.id)).scalar() or 0,
            "by_status": grouped(Enquiry.status),
            "by_type": grouped(Enquiry.enquiry_type),
            "by_priority": grouped(Enquiry.priority),
        },
        "Enquiry statistics retrieved successfully",
    )


@router.get("/{enquiry_id}")
async def get_enquiry(
    enquiry_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    enquiry = _get_enquiry_or_404(db, enquiry_id)
    return api_response(dump(EnquiryResponse, enquiry), "Enquiry retrieved successfully")


@router.put("/{enquiry_id}")
async def update_enquiry(
    enquiry_id: int,
    data: EnquiryUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    enquiry = _get_enquiry_or_404(db, enquiry_id)
    updates = data.model_dump(exclude_unset=True, exclude_none=True)
    if "admin_notes" in updates:
        updates["admin_notes"] = sanitize_text(updates["admin_notes"])

    for field, value in updates.items():
        setattr(enquiry, field, value)
    db.commit()
    db.refresh(enquiry)
    logger.info(f"✏️ Enquiry {enquiry.enquiry_number} updated by admin {admin.id}: {list(updates)}")
    return api_response(dump(EnquiryResponse, enquiry), "Enquiry updated successfully")
