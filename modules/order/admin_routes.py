"""
Order Module - Admin Routes
==============================
Order management for admin: list with status filter, status changes
through the lifecycle machine, and the per-order audit trail.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from config.database import get_db
from common.exceptions import NotFoundError
from common.helpers import iso
from modules.auth.deps import require_admin
from modules.order.lifecycle import allowed_targets
from modules.order.models import Order
from modules.order.service import order_service

router = APIRouter(prefix="/api/admin/orders", tags=["order-admin"])


@router.get("")
async def admin_orders(
    status: Optional[str] = Query(None),
    page: int = 1,
    limit: int = 20,
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    page, limit = max(page, 1), min(max(limit, 1), 100)
    orders, total = order_service.get_all_orders(db, status=status or "", page=page, per_page=limit)
    return {
        "orders": [
            {**o.to_dict(), "user": {"name": o.user.name, "email": o.user.email} if o.user else None}
            for o in orders
        ],
        "pagination": {"page": page, "limit": limit, "totalCount": total, "totalPages": (total + limit - 1) // limit},
    }


@router.get("/{order_id}")
async def admin_order_detail(order_id: int, db: Session = Depends(get_db), user=Depends(require_admin)):
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise NotFoundError("Order not found")
    data = order.to_dict()
    data["allowedTransitions"] = allowed_targets(order)
    data["statusLog"] = [
        {
            "from": log.old_status,
            "to": log.new_status,
            "by": log.changed_by,
            "note": log.note,
            "at": iso(log.created_at),
        }
        for log in order.status_logs
    ]
    return data


@router.patch("/{order_id}")
async def admin_update_order(
    order_id: int, data: Dict[str, Any],
    db: Session = Depends(get_db), user=Depends(require_admin),
):
    order = order_service.admin_update(db, order_id, data, user)
    db.commit()
    db.refresh(order)
    return order.to_dict()
