"""
Request identity and access-policy dependencies for FastAPI endpoints.
"""
import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core import security
from app.core.exceptions import AuthenticationError
from app.database import get_db
from app.schemas.auth import AuthenticatedIdentity, TokenData
from app.services.employee_directory import EmployeeDirectory

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> AuthenticatedIdentity:
    """
    Decodes the bearer token into an AuthenticatedIdentity.
    The employee link is taken from the token when present, otherwise looked
    up once here through the employee directory.
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authenticated")

    payload = security.decode_access_token(credentials.credentials)
    if payload is None:
        raise AuthenticationError("Could not validate credentials")
    if payload.get("error") == "TOKEN_EXPIRED":
        logger.info("Authentication failed: Token expired")
        raise AuthenticationError("TOKEN_EXPIRED")
    if payload.get("type") != "access":
        logger.warning("Authentication failed: Invalid token type")
        raise AuthenticationError("Invalid token type")

    try:
        token_data = TokenData(**payload)
        user_id = int(token_data.sub)
    except (TypeError, ValueError) as e:
        logger.warning(f"Authentication failed: malformed claims ({e})")
        raise AuthenticationError("Missing subject in token")

    if not token_data.role:
        raise AuthenticationError("Missing role in token")

    employee_id = token_data.employee_id
    if employee_id is None:
        employee = EmployeeDirectory(db).resolve_for_account(user_id, token_data.email)
        employee_id = employee.id if employee else None

    return AuthenticatedIdentity(
        user_id=user_id,
        role=token_data.role,
        email=token_data.email,
        employee_id=employee_id,
    )
