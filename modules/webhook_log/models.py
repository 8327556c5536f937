"""
Webhook Log Module - Models
============================
Durable, append-only record of processed gateway/identity webhooks.
"""

from sqlalchemy import Column, Integer, String, Boolean, Text, DateTime
from sqlalchemy.sql import func
from config.database import Base
from common.helpers import iso


class WebhookLog(Base):
    __tablename__ = "webhook_logs"

    id = Column(Integer, primary_key=True)
    source = Column(String(30), nullable=False, index=True)       # stripe / razorpay / clerk / manual
    event_type = Column(String, nullable=False)
    success = Column(Boolean, default=True, nullable=False)
    message = Column(Text, nullable=True)
    payload = Column(Text, nullable=True)                         # truncated raw body
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "source": self.source,
            "type": self.event_type,
            "success": self.success,
            "message": self.message,
            "data": self.payload,
            "timestamp": iso(self.created_at),
        }
