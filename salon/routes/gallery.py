import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Path, Query, UploadFile
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..auth import require_admin
from ..database import get_db
from ..models import User
from ..models_catalog import GALLERY_CATEGORIES, GalleryImage
from ..schemas import (
    GALLERY_CATEGORY_PATTERN,
    GalleryBulkUpdate,
    GalleryImageCreate,
    GalleryImageResponse,
    GalleryImageUpdate,
    GallerySortOrderUpdate,
    dump,
)
from ..security_utils import sanitize_text
from ..services import storage_service
from ..shared.responses import api_response, paginate, pagination_meta

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/gallery", tags=["Gallery"])


def _get_image_or_404(db: Session, image_id: int, include_inactive: bool = True) -> GalleryImage:
    query = db.query(GalleryImage).filter(GalleryImage.id == image_id)
    if not include_inactive:
        query = query.filter(GalleryImage.is_active.is_(True))
    image = query.first()
    if not image:
        raise HTTPException(status_code=404, detail="Gallery image not found")
    return image


def _ordered(query):
    return query.order_by(GalleryImage.sort_order.asc(), GalleryImage.created_at.desc(), GalleryImage.id.desc())


def _parse_tags(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [t.strip().lower() for t in raw.split(",") if t.strip()]


def _images_payload(images, pagination) -> dict:
    return {"images": [dump(GalleryImageResponse, i) for i in images], "pagination": pagination}


# ============================================================================
# PUBLIC
# ============================================================================


@router.get("")
async def list_gallery_images(
    category: Optional[str] = Query(None, pattern=GALLERY_CATEGORY_PATTERN),
    tags: Optional[str] = Query(None, description="Comma separated tags"),
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    db: Session = Depends(get_db),
):
    query = db.query(GalleryImage).filter(GalleryImage.is_active.is_(True))
    if category:
        query = query.filter(GalleryImage.category == category)

    wanted = _parse_tags(tags)
    if not wanted:
        images, pagination = paginate(_ordered(query), page, limit)
        return api_response(_images_payload(images, pagination), "Gallery images retrieved successfully")

    # tags is a JSON list, so the tag match runs after the SQL filters
    matching = [
        image
        for image in _ordered(query).all()
        if any(tag.lower() in wanted for tag in image.tags or [])
    ]
    start = (page - 1) * limit
    return api_response(
        _images_payload(matching[start:start + limit], pagination_meta(page, limit, len(matching))),
        "Gallery images retrieved successfully",
    )


@router.get("/category/{category}")
async def get_images_by_category(
    category: str = Path(..., pattern=GALLERY_CATEGORY_PATTERN),
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    db: Session = Depends(get_db),
):
    query = db.query(GalleryImage).filter(GalleryImage.is_active.is_(True), GalleryImage.category == category)
    images, pagination = paginate(_ordered(query), page, limit)
    return api_response(_images_payload(images, pagination), f"Images in category {category} retrieved successfully")


@router.get("/featured/images")
async def get_featured_images(
    limit: int = Query(8, ge=1, le=50),
    db: Session = Depends(get_db),
):
    images = (
        _ordered(db.query(GalleryImage).filter(GalleryImage.is_active.is_(True), GalleryImage.is_featured.is_(True)))
        .limit(limit)
        .all()
    )
    return api_response(
        {"images": [dump(GalleryImageResponse, i) for i in images]},
        "Featured images retrieved successfully",
    )


@router.get("/search/images")
async def search_images(
    q: str = Query(..., min_length=1),
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    db: Session = Depends(get_db),
):
    pattern = f"%{q.strip()}%"
    query = db.query(GalleryImage).filter(
        GalleryImage.is_active.is_(True),
        or_(GalleryImage.title.ilike(pattern), GalleryImage.description.ilike(pattern)),
    )
    images, pagination = paginate(_ordered(query), page, limit)
    payload = _images_payload(images, pagination)
    payload["query"] = q
    return api_response(payload, "Search results retrieved successfully")


@router.get("/stats/overview")
async def get_gallery_overview(db: Session = Depends(get_db)):
    active = db.query(GalleryImage).filter(GalleryImage.is_active.is_(True))
    counts = dict(
        db.query(GalleryImage.category, func.count(GalleryImage.id))
        .filter(GalleryImage.is_active.is_(True))
        .group_by(GalleryImage.category)
        .all()
    )
    return api_response(
        {
            "total_images": active.count(),
            "featured_images": active.filter(GalleryImage.is_featured.is_(True)).count(),
            "categories": [{"category": c, "count": counts.get(c, 0)} for c in GALLERY_CATEGORIES],
        },
        "Gallery overview retrieved successfully",
    )


# ============================================================================
# ADMIN
# ============================================================================


@router.post("/upload/single", status_code=201)
async def upload_gallery_image(
    file: UploadFile = File(...),
    title: str = Form(..., min_length=1, max_length=100),
    description: Optional[str] = Form(None, max_length=500),
    category: str = Form("other", pattern=GALLERY_CATEGORY_PATTERN),
    tags: Optional[str] = Form(None),
    is_featured: bool = Form(False),
    sort_order: int = Form(0),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    key, url = await storage_service.upload_image(file, "gallery")

    image = GalleryImage(
        title=sanitize_text(title),
        description=sanitize_text(description) if description else None,
        category=category,
        tags=_parse_tags(tags),
        image_url=url,
        storage_key=key,
        is_featured=is_featured,
        sort_order=sort_order,
        uploaded_by=admin.id,
    )
    db.add(image)
    db.commit()
    db.refresh(image)
    logger.info(f"🖼️ Gallery image {image.id} uploaded by admin {admin.id}: {key}")
    return api_response(dump(GalleryImageResponse, image), "Image uploaded successfully")


@router.post("", status_code=201)
async def create_gallery_image(
    data: GalleryImageCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    values = data.model_dump()
    values["title"] = sanitize_text(values["title"])
    if values.get("description"):
        values["description"] = sanitize_text(values["description"])
    values["tags"] = [t.strip().lower() for t in values["tags"] if t.strip()]

    image = GalleryImage(**values, uploaded_by=admin.id)
    db.add(image)
    db.commit()
    db.refresh(image)
    logger.info(f"🖼️ Gallery image {image.id} added from URL by admin {admin.id}")
    return api_response(dump(GalleryImageResponse, image), "Gallery image created successfully")


@router.put("/bulk/update")
async def bulk_update_images(
    data: GalleryBulkUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    updates = data.model_dump(exclude={"image_ids"}, exclude_none=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields provided to update")

    images = db.query(GalleryImage).filter(GalleryImage.id.in_(data.image_ids)).all()
    found = {image.id for image in images}
    missing = [image_id for image_id in data.image_ids if image_id not in found]

    for image in images:
        for field, value in updates.items():
            setattr(image, field, value)
    db.commit()

    logger.info(f"🖼️ Bulk updated {len(images)} gallery images by admin {admin.id}: {list(updates)}")
    return api_response(
        {"updated_count": len(images), "not_found": missing},
        f"{len(images)} image(s) updated successfully",
    )


@router.get("/admin/all")
async def get_all_images_admin(
    category: Optional[str] = Query(None, pattern=GALLERY_CATEGORY_PATTERN),
    is_active: Optional[bool] = None,
    is_featured: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    query = db.query(GalleryImage)
    if category:
        query = query.filter(GalleryImage.category == category)
    if is_active is not None:
        query = query.filter(GalleryImage.is_active.is_(is_active))
    if is_featured is not None:
        query = query.filter(GalleryImage.is_featured.is_(is_featured))

    images, pagination = paginate(_ordered(query), page, limit)
    return api_response(_images_payload(images, pagination), "Gallery images retrieved successfully")


@router.get("/admin/dashboard/stats")
async def get_gallery_dashboard_stats(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    total = db.query(func.count(GalleryImage.id)).scalar() or 0
    active = db.query(func.count(GalleryImage.id)).filter(GalleryImage.is_active.is_(True)).scalar() or 0
    total_views = db.query(func.coalesce(func.sum(GalleryImage.views), 0)).scalar()
    by_category = {
        category: {"count": count, "views": int(views or 0)}
        for category, count, views in db.query(
            GalleryImage.category, func.count(GalleryImage.id), func.sum(GalleryImage.views)
        )
        .group_by(GalleryImage.category)
        .all()
    }
    most_viewed = (
        db.query(GalleryImage)
        .filter(GalleryImage.is_active.is_(True))
        .order_by(GalleryImage.views.desc(), GalleryImage.id)
        .limit(5)
        .all()
    )

    return api_response(
        {
            "total_images": total,
            "active_images": active,
            "inactive_images": total - active,
            "featured_images": (
                db.query(func.count(GalleryImage.id)).filter(GalleryImage.is_featured.is_(True)).scalar() or 0
            ),
            "uploaded_images": (
                db.query(func.count(GalleryImage.id)).filter(GalleryImage.storage_key.isnot(None)).scalar() or 0
            ),
            "total_views": int(total_views or 0),
            "by_category": by_category,
            "most_viewed": [dump(GalleryImageResponse, i) for i in most_viewed],
        },
        "Gallery statistics retrieved successfully",
    )


@router.get("/admin/{image_id}/analytics")
async def get_image_analytics(
    image_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    image = _get_image_or_404(db, image_id)
    category_views = (
        db.query(func.avg(GalleryImage.views))
        .filter(GalleryImage.category == image.category, GalleryImage.is_active.is_(True))
        .scalar()
    )
    rank = (
        db.query(func.count(GalleryImage.id))
        .filter(GalleryImage.is_active.is_(True), GalleryImage.views > image.views)
        .scalar()
        or 0
    ) + 1

    return api_response(
        {
            "image": dump(GalleryImageResponse, image),
            "views": image.views,
            "category_average_views": round(float(category_views or 0), 2),
            "views_rank": rank,
            "uploaded_by": image.uploaded_by,
            "is_uploaded": image.storage_key is not None,
        },
        "Image analytics retrieved successfully",
    )


# ============================================================================
# SINGLE IMAGE
# ============================================================================


@router.get("/{image_id}")
async def get_gallery_image(
    image_id: int,
    db: Session = Depends(get_db),
):
    image = _get_image_or_404(db, image_id, include_inactive=False)
    image.views = (image.views or 0) + 1
    db.commit()
    db.refresh(image)
    return api_response(dump(GalleryImageResponse, image), "Gallery image retrieved successfully")


@router.put("/{image_id}")
async def update_gallery_image(
    image_id: int,
    data: GalleryImageUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    image = _get_image_or_404(db, image_id)
    updates = data.model_dump(exclude_unset=True)
    if updates.get("title"):
        updates["title"] = sanitize_text(updates["title"])
    if updates.get("description"):
        updates["description"] = sanitize_text(updates["description"])
    if updates.get("tags") is not None:
        updates["tags"] = [t.strip().lower() for t in updates["tags"] if t.strip()]

    for field, value in updates.items():
        setattr(image, field, value)
    db.commit()
    db.refresh(image)
    return api_response(dump(GalleryImageResponse, image), "Gallery image updated successfully")


@router.patch("/{image_id}/toggle-featured")
async def toggle_featured(
    image_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    image = _get_image_or_404(db, image_id)
    image.is_featured = not image.is_featured
    db.commit()
    db.refresh(image)
    state = "featured" if image.is_featured else "unfeatured"
    return api_response(dump(GalleryImageResponse, image), f"Image {state} successfully")


@router.patch("/{image_id}/sort-order")
async def update_sort_order(
    image_id: int,
    data: GallerySortOrderUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    image = _get_image_or_404(db, image_id)
    image.sort_order = data.sort_order
    db.commit()
    db.refresh(image)
    return api_response(dump(GalleryImageResponse, image), "Sort order updated successfully")


@router.delete("/{image_id}")
async def delete_gallery_image(
    image_id: int,
    permanent: bool = False,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    image = _get_image_or_404(db, image_id)

    if not permanent:
        image.is_active = False
        db.commit()
        logger.info(f"🗑️ Gallery image {image_id} deactivated by admin {admin.id}")
        return api_response({}, "Gallery image deleted successfully")

    storage_key = image.storage_key
    db.delete(image)
    db.commit()
    if storage_key:
        storage_service.delete_image(storage_key)
    logger.info(f"🗑️ Gallery image {image_id} permanently deleted by admin {admin.id}")
    return api_response({}, "Gallery image permanently deleted")
