"""
Dashboard authentication and RBAC for protected endpoints.

Bearer tokens are either issued by this service (LocalToken) or by the
external identity provider (ExternalToken). The token header is inspected
once to pick the verifier; there is no fall-through from one verifier to the
other.
"""
import logging
from typing import Optional

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from apihub.core.database import get_db
from apihub.core.roles import has_permission, normalize_role
from apihub.core.security import (
    ExternalToken,
    LocalToken,
    classify_token,
    decode_external_token,
    decode_local_token,
)
from apihub.models.user import User

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

# Gateway credential header
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

NOT_AUTHORIZED = "Not authorized to access this route"


def _unauthorized(detail: str = NOT_AUTHORIZED) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Dependency to verify a bearer token and return the signed-in user.

    External identity-provider tokens auto-provision a user on first sight.

    Raises:
        HTTPException: 401 if the token is missing, invalid, or the user is gone or deactivated
    """
    if credentials is None or not credentials.credentials:
        raise _unauthorized()

    token = classify_token(credentials.credentials)

    if isinstance(token, LocalToken):
        user_id = decode_local_token(token)
        if user_id is None:
            raise _unauthorized()
        user = db.get(User, user_id)
        if user is None:
            raise _unauthorized("User not found")
    elif isinstance(token, ExternalToken):
        claims = decode_external_token(token)
        if claims is None:
            raise _unauthorized()
        from apihub.services.user_service import UserService
        user = UserService(db).get_or_create_external(claims)
    else:
        logger.warning("Rejected bearer token with unrecognised format or algorithm")
        raise _unauthorized()

    if not user.is_active:
        raise _unauthorized("User account is deactivated")

    logger.debug(f"Authenticated user: {user.email} (role: {user.role})")
    return user


def require_role(min_role: str = "user"):
    """
    Dependency factory for role-based access control.

    Args:
        min_role: Minimum required role (user, admin)

    Returns:
        Dependency function that checks role permissions
    """
    def check_role(user: User = Depends(get_current_user)) -> User:
        if not has_permission(user.role, min_role):
            logger.warning(
                f"Access denied: user {user.id} role '{user.role}' does not meet minimum '{normalize_role(min_role)}'"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied. Admin privileges required.",
            )
        return user

    return check_role


require_admin = require_role("admin")
