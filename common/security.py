"""
Saakie - Security Utilities
============================
Session token decoding for the hosted identity provider.

NOTE: Sessions are issued by the hosted identity provider; this service only
verifies them, it never mints tokens.
"""

import logging
from typing import Optional

from jose import jwt, JWTError

from config import settings

logger = logging.getLogger("saakie.security")


# ==========================================
# Session Tokens (identity provider JWT)
# ==========================================

def decode_session_token(token: str) -> Optional[dict]:
    """Verify and decode a session JWT. Returns payload or None."""
    if not token or not settings.AUTH_JWT_KEY:
        return None
    options = {"verify_aud": False}
    kwargs = {}
    if settings.AUTH_JWT_ISSUER:
        kwargs["issuer"] = settings.AUTH_JWT_ISSUER
    try:
        return jwt.decode(
            token,
            settings.AUTH_JWT_KEY,
            algorithms=[settings.AUTH_JWT_ALGORITHM],
            options=options,
            **kwargs,
        )
    except JWTError as e:
        logger.debug(f"Session token rejected: {e}")
        return None

