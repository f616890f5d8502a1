"""
Bearer token authentication.

Validates access tokens through the auth service and exposes the
authenticated account to route handlers.
"""

import logging
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from shared.exceptions import AuthenticationError
from shared.models import AuthenticatedUser
from modules.auth.exceptions import InsufficientPermissionsError
from modules.auth.interfaces import IAuthService

from ..dependencies import get_auth_service

logger = logging.getLogger(__name__)

SESSION_INVALID_MESSAGE = "Session is invalid, please sign in again"

# Bearer token extractor
bearer_scheme = HTTPBearer(auto_error=False)


class AuthError(HTTPException):
    """Authentication error with consistent format."""
    def __init__(self, detail: str = SESSION_INVALID_MESSAGE):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    auth: IAuthService = Depends(get_auth_service),
) -> AuthenticatedUser:
    """
    Dependency that requires authentication.

    Every token problem (missing, expired, forged) produces the same 401.

    Usage:
        @router.get("/protected")
        def protected_route(user: AuthenticatedUser = Depends(get_current_user)):
            return {"user_id": user.id}
    """
    if credentials is None:
        raise AuthError("Missing authorization header")

    try:
        return auth.validate_token(credentials.credentials)
    except AuthenticationError as e:
        logger.debug(f"Rejected bearer token: {e.code}")
        raise AuthError()



def require_admin(user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
    """
    Dependency that requires the admin privilege carried by the access token.

    Raises InsufficientPermissionsError, rendered as 403 by the app.
    """
    if not user.is_admin:
        logger.info(f"Admin-only request refused for account {user.id}")
        raise InsufficientPermissionsError()
    return user
