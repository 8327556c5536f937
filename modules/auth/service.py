"""
Auth Module - Service Layer
=============================
Keeps the local users table in sync with identity-provider events
(user.created / user.updated / user.deleted).
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from modules.user.models import User, UserRole
from modules.user.service import user_service

logger = logging.getLogger("saakie.auth")


def _primary_email(data: Dict[str, Any]) -> Optional[str]:
    emails = data.get("email_addresses") or []
    primary_id = data.get("primary_email_address_id")
    for e in emails:
        if e.get("id") == primary_id:
            return e.get("email_address")
    return emails[0].get("email_address") if emails else None


def _primary_phone(data: Dict[str, Any]) -> Optional[str]:
    phones = data.get("phone_numbers") or []
    primary_id = data.get("primary_phone_number_id")
    for p in phones:
        if p.get("id") == primary_id:
            return p.get("phone_number")
    return phones[0].get("phone_number") if phones else None


def _full_name(data: Dict[str, Any]) -> Optional[str]:
    name = " ".join(n for n in (data.get("first_name"), data.get("last_name")) if n).strip()
    return name or None


class AuthService:
    """Applies identity-provider user events to the local users table."""

    def handle_event(self, db: Session, event_type: str, data: Dict[str, Any]) -> str:
        """Returns a short outcome string for the webhook log."""
        clerk_id = data.get("id")
        if not clerk_id:
            return "ignored: missing user id"

        if event_type == "user.created":
            return self._upsert(db, clerk_id, data, created=True)
        if event_type == "user.updated":
            return self._upsert(db, clerk_id, data, created=False)
        if event_type == "user.deleted":
            user = user_service.find_by_clerk_id(db, clerk_id)
            if not user:
                return "ignored: unknown user"
            user_service.delete_user(db, user)
            return f"deleted user #{user.id}"
        return f"ignored: {event_type}"

    def _upsert(self, db: Session, clerk_id: str, data: Dict[str, Any], created: bool) -> str:
        email = _primary_email(data)
        user = user_service.find_by_clerk_id(db, clerk_id)

        if not user:
            if not email:
                return "ignored: no email address"
            user = User(clerk_id=clerk_id, email=email, role=UserRole.USER.value)
            db.add(user)
        elif email:
            user.email = email

        user.name = _full_name(data) or user.name
        user.phone = _primary_phone(data) or user.phone
        user.image_url = data.get("image_url") or user.image_url
        db.flush()

        if created:
            user_service.ensure_cart_and_wishlist(db, user)
        logger.info(f"Synced user #{user.id} from identity provider ({'created' if created else 'updated'})")
        return f"synced user #{user.id}"


# Singleton
auth_service = AuthService()
