"""
Webhook Log Module - Store
===========================
WebhookLogStore is the interface handlers write to; SqlWebhookLogStore is the
durable implementation injected per request via get_webhook_log_store().
"""

import json
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, List, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from config.database import get_db
from common.helpers import now_utc
from modules.webhook_log.models import WebhookLog

logger = logging.getLogger("saakie.webhook_log")

MAX_PAYLOAD_CHARS = 4000


@dataclass
class WebhookLogEntry:
    source: str
    event_type: str
    success: bool = True
    message: Optional[str] = None
    payload: Any = None


class WebhookLogStore:
    """Append-only log of webhook deliveries."""

    def append(self, entry: WebhookLogEntry) -> None:
        raise NotImplementedError

    def recent(self, n: int = 20) -> List[WebhookLog]:
        raise NotImplementedError


class SqlWebhookLogStore(WebhookLogStore):

    def __init__(self, db: Session):
        self.db = db

    def append(self, entry: WebhookLogEntry) -> None:
        payload = entry.payload
        if payload is not None and not isinstance(payload, str):
            payload = json.dumps(payload, default=str)
        self.db.add(WebhookLog(
            source=entry.source,
            event_type=entry.event_type,
            success=entry.success,
            message=entry.message,
            payload=payload[:MAX_PAYLOAD_CHARS] if payload else None,
        ))
        self.db.flush()

    def recent(self, n: int = 20) -> List[WebhookLog]:
        return (
            self.db.query(WebhookLog)
            .order_by(WebhookLog.created_at.desc(), WebhookLog.id.desc())
            .limit(n)
            .all()
        )


def get_webhook_log_store(db: Session = Depends(get_db)) -> WebhookLogStore:
    """FastAPI dependency: SQL-backed store bound to the request session."""
    return SqlWebhookLogStore(db)


def prune_webhook_logs(db: Session, retention_days: int) -> int:
    """Delete log rows older than the retention window. Returns count deleted."""
    cutoff = now_utc() - timedelta(days=retention_days)
    deleted = db.query(WebhookLog).filter(WebhookLog.created_at < cutoff).delete()
    db.flush()
    return deleted
