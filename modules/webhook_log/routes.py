"""
Webhook Log Routes
===================
Admin view of recent webhook deliveries, plus manual append.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from config.database import get_db
from common.exceptions import ValidationError
from modules.auth.deps import require_admin
from modules.webhook_log.service import WebhookLogEntry, WebhookLogStore, get_webhook_log_store

router = APIRouter(prefix="/api/webhook-logs", tags=["webhook-logs"])

RECENT_LIMIT = 20


@router.get("")
async def recent_logs(
    log_store: WebhookLogStore = Depends(get_webhook_log_store),
    user=Depends(require_admin),
):
    return {"logs": [log.to_dict() for log in log_store.recent(RECENT_LIMIT)]}


@router.post("")
async def append_log(
    data: Dict[str, Any],
    db: Session = Depends(get_db),
    log_store: WebhookLogStore = Depends(get_webhook_log_store),
    user=Depends(require_admin),
):
    event_type = (data.get("type") or "").strip()
    if not event_type:
        raise ValidationError("type is required")

    log_store.append(WebhookLogEntry(
        source=(data.get("source") or "manual")[:30],
        event_type=event_type,
        success=bool(data.get("success", True)),
        message=data.get("message"),
        payload=data.get("data"),
    ))
    db.commit()
    return JSONResponse({"success": True}, status_code=201)
