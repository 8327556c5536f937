"""
Auth Module - Dependencies
===========================
FastAPI dependencies for user authentication and authorization.
These are injected into route handlers via Depends().

The session token comes from the identity provider, either as a Bearer
Authorization header or the __session cookie; its "sub" claim is the clerk_id.
"""

from typing import Optional

from fastapi import Request, Depends
from sqlalchemy.orm import Session

from config import settings
from config.database import get_db
from common.exceptions import AuthenticationError, AuthorizationError, NotFoundError
from common.security import decode_session_token
from modules.user.models import User, UserRole


def get_session_subject(request: Request) -> Optional[str]:
    """Return the verified clerk_id of the caller, or None."""
    token = None
    auth_header = request.headers.get("Authorization", "")
    if auth_header.lower().startswith("bearer "):
        token = auth_header[7:].strip()
    if not token:
        token = request.cookies.get(settings.SESSION_COOKIE)
    if not token:
        return None

    payload = decode_session_token(token)
    if not payload:
        return None
    return payload.get("sub")


def get_optional_user(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    """Current user if a valid session exists, else None (guest)."""
    clerk_id = get_session_subject(request)
    if not clerk_id:
        return None
    return db.query(User).filter(User.clerk_id == clerk_id).first()


def require_login(request: Request, db: Session = Depends(get_db)) -> User:
    """Require a session (401) that maps to a known user (404)."""
    clerk_id = get_session_subject(request)
    if not clerk_id:
        raise AuthenticationError()

    user = db.query(User).filter(User.clerk_id == clerk_id).first()
    if not user:
        raise NotFoundError("User not found")
    return user


def require_role(*roles: str):
    """
    Factory: returns a dependency that admits only users holding one of `roles`.
    Every admin route goes through this single check.

    Usage:
      user=Depends(require_role("ADMIN", "SUPER_ADMIN"))
      user=Depends(require_role("SUPER_ADMIN"))
    """
    allowed = {r.value if isinstance(r, UserRole) else r for r in roles}

    def dependency(user: User = Depends(require_login)) -> User:
        if user.role not in allowed:
            raise AuthorizationError(f"Requires role: {', '.join(sorted(allowed))}")
        return user

    return dependency


require_admin = require_role(UserRole.ADMIN, UserRole.SUPER_ADMIN)
require_super_admin = require_role(UserRole.SUPER_ADMIN)
