"""Cart repository - Database operations for carts"""

from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ...models_catalog import Product
from ...models_commerce import Cart


class CartRepository:
    """Repository for cart database operations"""

    @staticmethod
    def get_by_user(db: Session, user_id: int) -> Optional[Cart]:
        return db.query(Cart).filter(Cart.user_id == user_id).first()

    @staticmethod
    def get_or_create(db: Session, user_id: int) -> Cart:
        cart = db.query(Cart).filter(Cart.user_id == user_id).first()
        if cart:
            return cart
        cart = Cart(user_id=user_id, items=[], total_items=0, total_amount=0, discount=0, final_amount=0)
        db.add(cart)
        db.commit()
        db.refresh(cart)
        return cart

    @staticmethod
    def get_product(db: Session, product_id: int) -> Optional[Product]:
        return db.query(Product).filter(Product.id == product_id).first()

    @staticmethod
    def get_products(db: Session, product_ids: Iterable[int]) -> dict[int, Product]:
        ids = list(set(product_ids))
        if not ids:
            return {}
        return {p.id: p for p in db.query(Product).filter(Product.id.in_(ids)).all()}

    @staticmethod
    def save(db: Session, cart: Cart) -> Cart:
        db.commit()
        db.refresh(cart)
        return cart
