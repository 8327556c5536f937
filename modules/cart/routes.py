"""
Cart Routes
=============
Per-user cart: view, add, update quantity, remove, clear, validate.
Every mutation answers with the recomputed subtotal and item count.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from config.database import get_db
from common.exceptions import ValidationError
from common.helpers import safe_int
from modules.auth.deps import require_login
from modules.cart.service import cart_service, parse_quantity

router = APIRouter(prefix="/api/cart", tags=["cart"])


# ==========================================
# 🛒 View / Add / Clear
# ==========================================

@router.get("")
async def view_cart(db: Session = Depends(get_db), me=Depends(require_login)):
    payload = cart_service.cart_payload(db, me.id)
    db.commit()
    return payload


@router.post("")
async def add_to_cart(data: Dict[str, Any], db: Session = Depends(get_db), me=Depends(require_login)):
    product_id = safe_int(data.get("productId"))
    if product_id is None:
        raise ValidationError("productId is required")
    quantity = parse_quantity(data.get("quantity"), default=1)

    item = cart_service.add_item(db, me.id, product_id, quantity)
    db.commit()

    payload = cart_service.cart_payload(db, me.id)
    payload["item"] = cart_service.item_dict(item)
    return payload


@router.delete("")
async def clear_cart(db: Session = Depends(get_db), me=Depends(require_login)):
    cart_service.clear_cart(db, me.id)
    db.commit()
    return cart_service.cart_payload(db, me.id)


@router.get("/validate")
async def validate_cart(db: Session = Depends(get_db), me=Depends(require_login)):
    return cart_service.validate_cart(db, me.id).to_dict()


# ==========================================
# ➕➖ Line Items
# ==========================================

@router.patch("/items/{item_id}")
async def update_item(
    item_id: int,
    data: Dict[str, Any],
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    quantity = parse_quantity(data.get("quantity"))
    item = cart_service.update_quantity(db, me.id, item_id, quantity)
    db.commit()

    payload = cart_service.cart_payload(db, me.id)
    payload["item"] = cart_service.item_dict(item)
    return payload


@router.delete("/items/{item_id}")
async def remove_item(item_id: int, db: Session = Depends(get_db), me=Depends(require_login)):
    cart_service.remove_item(db, me.id, item_id)
    db.commit()
    return cart_service.cart_payload(db, me.id)
