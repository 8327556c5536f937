"""
Payment Routes
================
Checkout intent creation and client-side payment confirmation.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from config.database import get_db
from common.exceptions import ConflictError
from modules.auth.deps import require_login
from modules.order.service import SettlementOutcome
from modules.payment.service import payment_service

router = APIRouter(prefix="/api/payments", tags=["payment"])


@router.post("/create-intent")
async def create_intent(data: Dict[str, Any], db: Session = Depends(get_db), me=Depends(require_login)):
    result = payment_service.create_payment_intent(db, me, data)
    db.commit()
    return result


@router.post("/confirm")
async def confirm_payment(data: Dict[str, Any], db: Session = Depends(get_db), me=Depends(require_login)):
    outcome, order = payment_service.confirm_payment(db, me, data)
    db.commit()

    if outcome in (SettlementOutcome.STOCK_CONFLICT, SettlementOutcome.CAPTURED_AFTER_CANCEL):
        # Order stays cancelled and is flagged for refund (committed above)
        message = (
            "Some items went out of stock before payment completed; a refund will be issued"
            if outcome == SettlementOutcome.STOCK_CONFLICT
            else "Order was cancelled before payment completed; a refund will be issued"
        )
        raise ConflictError(message, details={"orderId": order.id})
    return {"success": True, "order": order.to_dict()}
