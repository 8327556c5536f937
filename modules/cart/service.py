"""
Cart Module - Service Layer
==============================
Cart management: get/create, add/update/remove items, totals, and the
validation report that gates checkout.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from common.exceptions import NotFoundError, ValidationError, InsufficientInventoryError
from common.helpers import money, safe_int
from modules.cart.models import Cart, CartItem
from modules.catalog.models import Product

logger = logging.getLogger("saakie.cart")


# ==========================================
# Validation report
# ==========================================

@dataclass
class StockShortfall:
    product_id: int
    requested: int
    available: int

    def to_dict(self) -> Dict[str, int]:
        return {"productId": self.product_id, "requested": self.requested, "available": self.available}


@dataclass
class CartValidationResult:
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    unavailable_items: List[str] = field(default_factory=list)
    insufficient_stock_items: List[StockShortfall] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "errors": list(self.errors),
            "unavailableItems": list(self.unavailable_items),
            "insufficientStockItems": [s.to_dict() for s in self.insufficient_stock_items],
        }


def parse_quantity(value, default: Optional[int] = None) -> int:
    """Quantities must be integers >= 1."""
    if value is None and default is not None:
        return default
    qty = safe_int(value)
    if qty is None or qty < 1 or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError("Quantity must be a positive integer")
    return qty


class CartService:

    def get_cart(self, db: Session, user_id: int) -> Optional[Cart]:
        return db.query(Cart).filter(Cart.user_id == user_id).first()

    def get_or_create_cart(self, db: Session, user_id: int) -> Cart:
        """Get existing cart or create new one for user."""
        cart = self.get_cart(db, user_id)
        if not cart:
            cart = Cart(user_id=user_id)
            db.add(cart)
            db.flush()
        return cart

    # ==========================================
    # Mutations
    # ==========================================

    def add_item(self, db: Session, user_id: int, product_id: int, quantity: int = 1) -> CartItem:
        """
        Add `quantity` of a product. An existing line for the same product is
        merged (quantities summed) and the merged total is checked against stock.
        """
        product = db.query(Product).filter(Product.id == product_id).first()
        if not product:
            raise NotFoundError("Product not found")
        if not product.is_active:
            raise ValidationError("Product is not available")

        cart = self.get_or_create_cart(db, user_id)
        item = db.query(CartItem).filter(
            CartItem.cart_id == cart.id,
            CartItem.product_id == product_id,
        ).first()

        new_qty = (item.quantity if item else 0) + quantity
        if new_qty > product.stock:
            raise InsufficientInventoryError(product.stock)

        if item:
            item.quantity = new_qty
            item.price = product.price
        else:
            item = CartItem(cart_id=cart.id, product_id=product.id, quantity=new_qty, price=product.price)
            db.add(item)
        db.flush()
        return item

    def update_quantity(self, db: Session, user_id: int, item_id: int, quantity: int) -> CartItem:
        """Set a line's quantity. Nothing is written unless every check passes."""
        item = self._owned_item(db, user_id, item_id)
        product = item.product
        if not product or not product.is_active:
            raise ValidationError("Product is no longer available")
        if quantity > product.stock:
            raise InsufficientInventoryError(product.stock)

        item.quantity = quantity
        item.price = product.price
        db.flush()
        return item

    def remove_item(self, db: Session, user_id: int, item_id: int):
        item = self._owned_item(db, user_id, item_id)
        db.delete(item)
        db.flush()

    def clear_cart(self, db: Session, user_id: int) -> int:
        """Remove all items from user's cart. Returns number of lines removed."""
        cart = self.get_cart(db, user_id)
        if not cart:
            return 0
        removed = db.query(CartItem).filter(CartItem.cart_id == cart.id).delete(synchronize_session=False)
        db.flush()
        db.expire(cart, ["items"])
        return removed

    def refresh_prices(self, db: Session, user_id: int) -> int:
        """Re-stamp every line with the current product price. Returns lines changed."""
        cart = self.get_cart(db, user_id)
        if not cart:
            return 0
        changed = 0
        for item in cart.items:
            if item.product and item.price != item.product.price:
                item.price = item.product.price
                changed += 1
        db.flush()
        return changed

    def prune_unavailable_items(self, db: Session) -> Tuple[int, int]:
        """
        Background job: drop lines whose product is inactive or out of stock,
        and clamp the rest to available stock. Returns (removed, clamped).
        """
        removed = clamped = 0
        rows = (
            db.query(CartItem, Product)
            .join(Product, CartItem.product_id == Product.id)
            .filter((Product.is_active == False) | (Product.stock < CartItem.quantity))
            .all()
        )
        for item, product in rows:
            if not product.is_active or product.stock < 1:
                db.delete(item)
                removed += 1
            else:
                item.quantity = product.stock
                clamped += 1
        db.flush()
        return removed, clamped

    # ==========================================
    # Totals & Validation
    # ==========================================

    def summary(self, db: Session, cart_id: Optional[int]) -> Tuple[Decimal, int]:
        """(subtotal, item_count) recomputed from the stored lines."""
        if not cart_id:
            return Decimal("0"), 0
        subtotal, count = db.query(
            func.coalesce(func.sum(CartItem.price * CartItem.quantity), 0),
            func.coalesce(func.sum(CartItem.quantity), 0),
        ).filter(CartItem.cart_id == cart_id).one()
        return Decimal(str(subtotal)), int(count)

    def validate_cart(self, db: Session, user_id: int) -> CartValidationResult:
        """
        Reconcile cart lines with live product state. Read-only, and never
        raises: a database failure comes back as an invalid report.
        """
        try:
            cart = self.get_cart(db, user_id)
            if not cart or not cart.items:
                return CartValidationResult(is_valid=False, errors=["Cart is empty"])

            result = CartValidationResult(is_valid=True)
            for item in cart.items:
                product = item.product
                if not product or not product.is_active:
                    name = product.name if product else f"Product #{item.product_id}"
                    result.unavailable_items.append(name)
                    result.errors.append(f"{name} is no longer available")
                    continue
                if product.stock < item.quantity:
                    result.insufficient_stock_items.append(
                        StockShortfall(product.id, item.quantity, product.stock)
                    )
                    result.errors.append(
                        f"Only {product.stock} of {product.name} available (requested {item.quantity})"
                    )

            result.is_valid = not result.errors
            return result
        except SQLAlchemyError as e:
            logger.error(f"Cart validation failed for user #{user_id}: {e}")
            return CartValidationResult(is_valid=False, errors=["Failed to validate cart"])

    # ==========================================
    # Serialization
    # ==========================================

    def cart_payload(self, db: Session, user_id: int) -> Dict[str, Any]:
        cart = self.get_or_create_cart(db, user_id)
        subtotal, count = self.summary(db, cart.id)
        return {
            "id": cart.id,
            "items": [self.item_dict(it) for it in cart.items],
            "subtotal": money(subtotal),
            "itemCount": count,
        }

    @staticmethod
    def item_dict(item: CartItem) -> Dict[str, Any]:
        product = item.product
        image = product.primary_image if product else None
        return {
            "id": item.id,
            "productId": item.product_id,
            "quantity": item.quantity,
            "price": money(item.price),
            "product": {
                "name": product.name,
                "slug": product.slug,
                "image": image.url if image else None,
                "stock": product.stock,
                "isActive": product.is_active,
            } if product else None,
        }

    # ==========================================
    # Private helpers
    # ==========================================

    def _owned_item(self, db: Session, user_id: int, item_id: int) -> CartItem:
        """Cart line that belongs to this user's cart, else 404."""
        item = (
            db.query(CartItem)
            .join(Cart, CartItem.cart_id == Cart.id)
            .filter(CartItem.id == item_id, Cart.user_id == user_id)
            .first()
        )
        if not item:
            raise NotFoundError("Cart item not found")
        return item


# Singleton
cart_service = CartService()
