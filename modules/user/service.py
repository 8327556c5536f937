"""
User Module - Service Layer
============================
Account lookup, role changes and the cascading delete shared by the admin
panel and identity-provider sync.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from common.exceptions import NotFoundError, ValidationError
from modules.user.models import User, UserRole
from modules.cart.models import Cart, CartItem
from modules.wishlist.models import Wishlist, WishlistItem
from modules.catalog.models import Review
from modules.order.models import Order
from modules.customer.address_models import Address

logger = logging.getLogger("saakie.user")


class UserService:

    def get(self, db: Session, user_id: int) -> User:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("User not found")
        return user

    def list_users(self, db: Session, page: int = 1, per_page: int = 20,
                   search: str = "", role: str = "") -> Tuple[List[User], int]:
        q = db.query(User)
        if search:
            like = f"%{search}%"
            q = q.filter((User.email.ilike(like)) | (User.name.ilike(like)))
        if role:
            q = q.filter(User.role == role)
        total = q.count()
        users = q.order_by(User.created_at.desc(), User.id.desc()).offset((page - 1) * per_page).limit(per_page).all()
        return users, total

    def set_role(self, db: Session, user_id: int, role: str) -> User:
        if role not in {r.value for r in UserRole}:
            raise ValidationError("Invalid role")
        user = self.get(db, user_id)
        user.role = role
        db.flush()
        logger.info(f"User #{user.id} role set to {role}")
        return user

    def ensure_cart_and_wishlist(self, db: Session, user: User):
        if not db.query(Cart.id).filter(Cart.user_id == user.id).first():
            db.add(Cart(user_id=user.id))
        if not db.query(Wishlist.id).filter(Wishlist.user_id == user.id).first():
            db.add(Wishlist(user_id=user.id))
        db.flush()

    def delete_user(self, db: Session, user: User):
        """
        Remove a user and everything they own, in dependency order.
        Runs inside the caller's transaction; the caller commits.
        """
        cart_ids = [c.id for c in db.query(Cart.id).filter(Cart.user_id == user.id)]
        if cart_ids:
            db.query(CartItem).filter(CartItem.cart_id.in_(cart_ids)).delete(synchronize_session=False)
            db.query(Cart).filter(Cart.id.in_(cart_ids)).delete(synchronize_session=False)

        wishlist_ids = [w.id for w in db.query(Wishlist.id).filter(Wishlist.user_id == user.id)]
        if wishlist_ids:
            db.query(WishlistItem).filter(WishlistItem.wishlist_id.in_(wishlist_ids)).delete(synchronize_session=False)
            db.query(Wishlist).filter(Wishlist.id.in_(wishlist_ids)).delete(synchronize_session=False)

        db.query(Review).filter(Review.user_id == user.id).delete(synchronize_session=False)

        for order in db.query(Order).filter(Order.user_id == user.id).all():
            db.delete(order)
        db.flush()

        db.query(Address).filter(Address.user_id == user.id).delete(synchronize_session=False)
        db.delete(user)
        db.flush()
        logger.info(f"Deleted user #{user.id} ({user.email}) with owned records")

    def find_by_clerk_id(self, db: Session, clerk_id: str) -> Optional[User]:
        return db.query(User).filter(User.clerk_id == clerk_id).first()


# Singleton
user_service = UserService()
