"""
Wishlist Routes
================
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from config.database import get_db
from common.exceptions import ValidationError
from common.helpers import safe_int
from modules.auth.deps import require_login
from modules.wishlist.service import wishlist_service

router = APIRouter(prefix="/api/wishlist", tags=["wishlist"])


@router.get("")
async def list_wishlist(db: Session = Depends(get_db), me=Depends(require_login)):
    items = wishlist_service.list_items(db, me.id)
    db.commit()
    return {"items": [wishlist_service.item_dict(it) for it in items]}


@router.post("")
async def add_to_wishlist(data: Dict[str, Any], db: Session = Depends(get_db), me=Depends(require_login)):
    product_id = safe_int(data.get("productId"))
    if product_id is None:
        raise ValidationError("productId is required")

    item = wishlist_service.add(db, me.id, product_id)
    db.commit()
    db.refresh(item)
    return JSONResponse(wishlist_service.item_dict(item), status_code=201)


@router.delete("/{item_id}")
async def remove_from_wishlist(item_id: int, db: Session = Depends(get_db), me=Depends(require_login)):
    wishlist_service.remove(db, me.id, item_id)
    db.commit()
    return {"success": True}
