"""
Bearer token handling.

Tokens are minted by the identity provider; this service only verifies them.
`create_access_token` exists for seeding scripts and tests.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from app.core.config import settings

logger = logging.getLogger(__name__)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    to_encode = dict(data)
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode.update({"exp": expire, "type": "access"})
    if "sub" in to_encode:
        # PyJWT requires the subject claim to be a string
        to_encode["sub"] = str(to_encode["sub"])
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Returns the claims, {"error": "TOKEN_EXPIRED"} for an expired token,
    or None when the token cannot be trusted.
    """
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        return {"error": "TOKEN_EXPIRED"}
    except jwt.InvalidTokenError as e:
        logger.warning(f"Rejected bearer token: {e}")
        return None
