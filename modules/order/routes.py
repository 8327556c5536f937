"""
Order Module - Routes
======================
Cash-on-delivery order creation (guests allowed), the caller's order
history, order detail, and admin status updates by id.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from config.database import get_db
from modules.auth.deps import get_optional_user, require_login, require_admin
from modules.order.lifecycle import allowed_targets
from modules.order.service import order_service

router = APIRouter(prefix="/api/orders", tags=["order"])


@router.post("")
async def create_order(data: Dict[str, Any], db: Session = Depends(get_db), me=Depends(get_optional_user)):
    order = order_service.create_cod_order(db, me, data)
    db.commit()
    db.refresh(order)
    return JSONResponse({"success": True, "order": order.to_dict()}, status_code=201)


@router.get("")
async def list_orders(
    status: Optional[str] = None,
    paymentStatus: Optional[str] = None,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    orders = order_service.get_user_orders(db, me.id, status=status or "", payment_status=paymentStatus or "")
    return [o.to_dict() for o in orders]


@router.get("/{order_id}")
async def get_order(order_id: int, db: Session = Depends(get_db), me=Depends(require_login)):
    order = order_service.get_order_for(db, me, order_id)
    data = order.to_dict()
    data["allowedTransitions"] = allowed_targets(order) if me.is_admin else []
    return data


@router.patch("/{order_id}")
async def update_order(
    order_id: int, data: Dict[str, Any],
    db: Session = Depends(get_db), admin=Depends(require_admin),
):
    order = order_service.admin_update(db, order_id, data, admin)
    db.commit()
    db.refresh(order)
    return order.to_dict()
