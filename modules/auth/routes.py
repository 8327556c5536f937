"""
Auth Module - Routes
=====================
Role check for the signed-in user, and the identity-provider webhook
that mirrors accounts into the local users table.
"""

import json
import logging

from fastapi import APIRouter, Request, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from svix.webhooks import Webhook, WebhookVerificationError

from config import settings
from config.database import get_db
from common.exceptions import ServiceUnavailableError, WebhookSignatureError
from modules.auth.deps import get_session_subject
from modules.auth.service import auth_service
from modules.user.service import user_service
from modules.webhook_log.service import WebhookLogEntry, WebhookLogStore, get_webhook_log_store

logger = logging.getLogger("saakie.auth")

router = APIRouter(tags=["auth"])


@router.get("/api/auth/check-role")
async def check_role(request: Request, db: Session = Depends(get_db)):
    clerk_id = get_session_subject(request)
    if not clerk_id:
        return JSONResponse({"role": None, "error": "Not authenticated"}, status_code=401)

    user = user_service.find_by_clerk_id(db, clerk_id)
    if not user:
        return JSONResponse({"role": None, "error": "User not found"}, status_code=404)

    return {"role": user.role, "email": user.email, "name": user.name}


@router.post("/api/webhooks/clerk")
async def clerk_webhook(
    request: Request,
    db: Session = Depends(get_db),
    log_store: WebhookLogStore = Depends(get_webhook_log_store),
):
    if not settings.CLERK_WEBHOOK_SECRET:
        raise ServiceUnavailableError("Identity webhook not configured")

    body = await request.body()
    headers = {
        "svix-id": request.headers.get("svix-id", ""),
        "svix-timestamp": request.headers.get("svix-timestamp", ""),
        "svix-signature": request.headers.get("svix-signature", ""),
    }
    try:
        Webhook(settings.CLERK_WEBHOOK_SECRET).verify(body, headers)
    except WebhookVerificationError:
        logger.warning("Identity webhook signature rejected")
        raise WebhookSignatureError()

    try:
        event = json.loads(body)
    except ValueError:
        raise WebhookSignatureError("Invalid payload")
    event_type = event.get("type", "")
    outcome = auth_service.handle_event(db, event_type, event.get("data") or {})
    log_store.append(WebhookLogEntry(source="clerk", event_type=event_type, message=outcome))
    db.commit()
    logger.info(f"Identity webhook {event_type}: {outcome}")
    return {"received": True}
