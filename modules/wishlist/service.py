"""
Wishlist Module - Service Layer
================================
"""

from typing import Any, Dict, List

from sqlalchemy.orm import Session

from common.exceptions import NotFoundError, DuplicateError
from common.helpers import money, iso
from modules.catalog.models import Product
from modules.catalog.service import compare_price_of
from modules.wishlist.models import Wishlist, WishlistItem


class WishlistService:

    def get_or_create(self, db: Session, user_id: int) -> Wishlist:
        wishlist = db.query(Wishlist).filter(Wishlist.user_id == user_id).first()
        if not wishlist:
            wishlist = Wishlist(user_id=user_id)
            db.add(wishlist)
            db.flush()
        return wishlist

    def list_items(self, db: Session, user_id: int) -> List[WishlistItem]:
        wishlist = self.get_or_create(db, user_id)
        return (
            db.query(WishlistItem)
            .filter(WishlistItem.wishlist_id == wishlist.id)
            .order_by(WishlistItem.added_at.desc(), WishlistItem.id.desc())
            .all()
        )

    def add(self, db: Session, user_id: int, product_id: int) -> WishlistItem:
        if not db.query(Product.id).filter(Product.id == product_id).first():
            raise NotFoundError("Product not found")

        wishlist = self.get_or_create(db, user_id)
        exists = db.query(WishlistItem.id).filter(
            WishlistItem.wishlist_id == wishlist.id,
            WishlistItem.product_id == product_id,
        ).first()
        if exists:
            raise DuplicateError("Product already in wishlist")

        item = WishlistItem(wishlist_id=wishlist.id, product_id=product_id)
        db.add(item)
        db.flush()
        return item

    def remove(self, db: Session, user_id: int, item_id: int):
        item = (
            db.query(WishlistItem)
            .join(Wishlist, WishlistItem.wishlist_id == Wishlist.id)
            .filter(WishlistItem.id == item_id, Wishlist.user_id == user_id)
            .first()
        )
        if not item:
            raise NotFoundError("Wishlist item not found")
        db.delete(item)
        db.flush()

    @staticmethod
    def item_dict(item: WishlistItem) -> Dict[str, Any]:
        p = item.product
        image = p.primary_image
        return {
            "id": item.id,
            "addedAt": iso(item.added_at),
            "product": {
                "id": p.id,
                "name": p.name,
                "slug": p.slug,
                "price": money(p.price),
                "comparePrice": compare_price_of(p),
                "stock": p.stock,
                "inStock": p.stock > 0 and p.is_active,
                "images": [{"url": image.url, "alt": image.alt}] if image else [],
                "category": {"name": p.category.name, "slug": p.category.slug} if p.category else None,
            },
        }


# Singleton
wishlist_service = WishlistService()
