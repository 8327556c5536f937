"""
Payment Webhook Routes
=======================
Gateway callbacks. The signature over the raw body is verified before the
database is touched; every processed delivery is appended to the webhook log.
"""

import json
import logging

from fastapi import APIRouter, Request, Depends
from sqlalchemy.orm import Session

from config.database import get_db
from modules.payment.service import payment_service
from modules.webhook_log.service import WebhookLogEntry, WebhookLogStore, get_webhook_log_store

logger = logging.getLogger("saakie.webhook")

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


async def _handle(gateway_name: str, request: Request, db: Session, log_store: WebhookLogStore):
    body = await request.body()
    event = payment_service.verify_webhook(gateway_name, body, request.headers)

    outcome, handled = payment_service.process_webhook(db, gateway_name, event)
    log_store.append(WebhookLogEntry(
        source=gateway_name,
        event_type=event.event_type,
        success=handled,
        message=outcome,
        payload=json.dumps(event.raw),
    ))
    db.commit()
    logger.info(f"{gateway_name} webhook {event.event_type}: {outcome}")
    return {"received": True}


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
    log_store: WebhookLogStore = Depends(get_webhook_log_store),
):
    return await _handle("stripe", request, db, log_store)


@router.post("/razorpay")
async def razorpay_webhook(
    request: Request,
    db: Session = Depends(get_db),
    log_store: WebhookLogStore = Depends(get_webhook_log_store),
):
    return await _handle("razorpay", request, db, log_store)
