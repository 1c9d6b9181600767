import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..auth import get_current_user, get_optional_user, require_admin
from ..database import get_db
from ..models import User
from ..models_catalog import PRODUCT_CATEGORIES, Product
from ..schemas import (
    PRODUCT_CATEGORY_PATTERN,
    ProductCreate,
    ProductResponse,
    ProductReviewCreate,
    ProductUpdate,
    ReviewResponse,
    StockUpdate,
    dump,
)
from ..services import review_service
from ..shared.responses import api_response, paginate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["Products"])

SORTABLE_FIELDS = {
    "created_at": Product.created_at,
    "price": Product.price,
    "name": Product.name,
    "rating": Product.rating_average,
    "stock": Product.stock,
}


def _get_product_or_404(db: Session, product_id: int, include_inactive: bool = True) -> Product:
    query = db.query(Product).filter(Product.id == product_id)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    product = query.first()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


def _ensure_unique_sku(db: Session, sku: Optional[str], exclude_id: Optional[int] = None) -> None:
    if not sku:
        return
    query = db.query(Product.id).filter(Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=409, detail="Product with this SKU already exists")


@router.get("")
async def list_products(
    category: Optional[str] = Query(None, pattern=PRODUCT_CATEGORY_PATTERN),
    brand: Optional[str] = None,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    in_stock: Optional[bool] = None,
    featured: Optional[bool] = None,
    search: Optional[str] = None,
    sort_by: str = Query("created_at", pattern="^(created_at|price|name|rating|stock)$"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    query = db.query(Product).filter(Product.is_active.is_(True))
    if category:
        query = query.filter(Product.category == category)
    if brand:
        query = query.filter(Product.brand.ilike(f"%{brand}%"))
    if min_price is not None:
        query = query.filter(Product.price >= min_price)
    if max_price is not None:
        query = query.filter(Product.price <= max_price)
    if in_stock is True:
        query = query.filter(Product.stock > 0)
    elif in_stock is False:
        query = query.filter(Product.stock <= 0)
    if featured is not None:
        query = query.filter(Product.is_featured.is_(featured))
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            or_(Product.name.ilike(pattern), Product.description.ilike(pattern), Product.brand.ilike(pattern))
        )

    column = SORTABLE_FIELDS[sort_by]
    query = query.order_by(column.asc() if sort_order == "asc" else column.desc(), Product.id)

    products, pagination = paginate(query, page, limit)
    return api_response(
        {"products": [dump(ProductResponse, p) for p in products], "pagination": pagination},
        "Products retrieved successfully",
    )


@router.get("/search")
async def search_products(
    q: str = Query(..., min_length=1),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    pattern = f"%{q.strip()}%"
    query = (
        db.query(Product)
        .filter(
            Product.is_active.is_(True),
            or_(
                Product.name.ilike(pattern),
                Product.description.ilike(pattern),
                Product.brand.ilike(pattern),
                Product.category.ilike(pattern),
            ),
        )
        .order_by(Product.rating_average.desc(), Product.name)
    )
    products, pagination = paginate(query, page, limit)
    return api_response(
        {"products": [dump(ProductResponse, p) for p in products], "pagination": pagination, "query": q},
        "Search results retrieved successfully",
    )


@router.get("/featured")
async def get_featured_products(
    limit: int = Query(8, ge=1, le=50),
    db: Session = Depends(get_db),
):
    products = (
        db.query(Product)
        .filter(Product.is_active.is_(True), Product.is_featured.is_(True))
        .order_by(Product.rating_average.desc(), Product.created_at.desc())
        .limit(limit)
        .all()
    )
    return api_response({"products": [dump(ProductResponse, p) for p in products]}, "Featured products retrieved")


@router.get("/categories")
async def get_product_categories(db: Session = Depends(get_db)):
    counts = dict(
        db.query(Product.category, func.count(Product.id))
        .filter(Product.is_active.is_(True))
        .group_by(Product.category)
        .all()
    )
    categories = [{"category": c, "count": counts.get(c, 0)} for c in PRODUCT_CATEGORIES]
    return api_response({"categories": categories}, "Product categories retrieved successfully")


# ============================================================================
# ADMIN COLLECTION ROUTES
# ============================================================================


@router.get("/admin/low-stock")
async def get_low_stock_products(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    products = (
        db.query(Product)
        .filter(Product.is_active.is_(True), Product.stock <= Product.reorder_level)
        .order_by(Product.stock.asc(), Product.name)
        .all()
    )
    return api_response(
        {"products": [dump(ProductResponse, p) for p in products], "total": len(products)},
        "Low stock products retrieved successfully",
    )


@router.get("/admin/stats")
async def get_product_stats(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    total = db.query(func.count(Product.id)).scalar() or 0
    active = db.query(func.count(Product.id)).filter(Product.is_active.is_(True)).scalar() or 0
    out_of_stock = db.query(func.count(Product.id)).filter(Product.stock <= 0).scalar() or 0
    low_stock = (
        db.query(func.count(Product.id))
        .filter(Product.stock > 0, Product.stock <= Product.reorder_level)
        .scalar()
        or 0
    )
    inventory_value = db.query(func.coalesce(func.sum(Product.price * Product.stock), 0)).scalar()
    by_category = {
        category: {"count": count, "stock": int(stock or 0)}
        for category, count, stock in db.query(Product.category, func.count(Product.id), func.sum(Product.stock))
        .group_by(Product.category)
        .all()
    }

    return api_response(
        {
            "total_products": total,
            "active_products": active,
            "inactive_products": total - active,
            "featured_products": db.query(func.count(Product.id)).filter(Product.is_featured.is_(True)).scalar() or 0,
            "out_of_stock": out_of_stock,
            "low_stock": low_stock,
            "inventory_value": round(float(inventory_value or 0), 2),
            "by_category": by_category,
        },
        "Product statistics retrieved successfully",
    )


@router.post("", status_code=201)
async def create_product(
    data: ProductCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    _ensure_unique_sku(db, data.sku)
    product = Product(**data.model_dump())
    db.add(product)
    db.commit()
    db.refresh(product)
    logger.info(f"✅ Product created: {product.name} (id={product.id}) by admin {admin.id}")
    return api_response(dump(ProductResponse, product), "Product created successfully")


# ============================================================================
# SINGLE PRODUCT
# ============================================================================


@router.get("/{product_id}")
async def get_product(
    product_id: int,
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    is_admin = bool(current_user and current_user.is_admin)
    product = _get_product_or_404(db, product_id, include_inactive=is_admin)
    return api_response(dump(ProductResponse, product), "Product retrieved successfully")


@router.get("/{product_id}/reviews")
async def get_product_reviews(
    product_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    _get_product_or_404(db, product_id, include_inactive=False)
    reviews, pagination, summary = review_service.approved_reviews(db, "product", product_id, page, limit)
    return api_response(
        {"reviews": [dump(ReviewResponse, r) for r in reviews], "pagination": pagination, **summary},
        "Product reviews retrieved successfully",
    )


@router.post("/{product_id}/reviews", status_code=201)
async def add_product_review(
    product_id: int,
    data: ProductReviewCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    review = review_service.submit_review(db, current_user, "product", product_id, data.rating, data.comment)
    return api_response(dump(ReviewResponse, review), "Review submitted successfully and is pending approval")


@router.put("/{product_id}")
async def update_product(
    product_id: int,
    data: ProductUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    product = _get_product_or_404(db, product_id)
    updates = data.model_dump(exclude_unset=True)
    if updates.get("sku"):
        _ensure_unique_sku(db, updates["sku"], exclude_id=product.id)

    for field, value in updates.items():
        setattr(product, field, value)
    if product.discount_start and product.discount_end and product.discount_start >= product.discount_end:
        raise HTTPException(status_code=400, detail="Discount end must be after discount start")

    db.commit()
    db.refresh(product)
    logger.info(f"✏️ Product {product.id} updated by admin {admin.id}: {list(updates)}")
    return api_response(dump(ProductResponse, product), "Product updated successfully")


@router.delete("/{product_id}")
async def delete_product(
    product_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    product = _get_product_or_404(db, product_id)
    db.delete(product)
    db.commit()
    logger.info(f"🗑️ Product {product_id} deleted by admin {admin.id}")
    return api_response({}, "Product deleted successfully")


@router.patch("/{product_id}/deactivate")
async def deactivate_product(
    product_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    product = _get_product_or_404(db, product_id)
    product.is_active = False
    db.commit()
    db.refresh(product)
    return api_response(dump(ProductResponse, product), "Product deactivated successfully")


@router.patch("/{product_id}/reactivate")
async def reactivate_product(
    product_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    product = _get_product_or_404(db, product_id)
    product.is_active = True
    db.commit()
    db.refresh(product)
    return api_response(dump(ProductResponse, product), "Product reactivated successfully")


@router.patch("/{product_id}/stock")
async def update_product_stock(
    product_id: int,
    data: StockUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    product = _get_product_or_404(db, product_id)
    previous = product.stock

    if data.operation == "add":
        product.stock = previous + data.quantity
    elif data.operation == "subtract":
        if data.quantity > previous:
            raise HTTPException(status_code=400, detail=f"Insufficient stock. Current stock is {previous}")
        product.stock = previous - data.quantity
    else:
        product.stock = data.quantity

    db.commit()
    db.refresh(product)
    logger.info(f"📦 Stock for product {product.id}: {previous} -> {product.stock} ({data.operation} {data.quantity})")
    return api_response(dump(ProductResponse, product), "Stock updated successfully")
