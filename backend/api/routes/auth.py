"""
Authentication endpoints.

Registration, login, token refresh and password management. Handlers
are plain functions; FastAPI runs them in its threadpool because the
database driver blocks.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from shared.models import AuthenticatedUser
from modules.auth.interfaces import IAuthService
from modules.auth.models import AuthResult, LoginCredentials, RegistrationData

from ..dependencies import get_auth_service
from ..middleware.auth import get_current_user
from ..models.auth import (
    AuthResponse,
    ChangePasswordRequest,
    CurrentUserResponse,
    LoginRequest,
    MessageResponse,
    PasswordResetConfirmRequest,
    PasswordResetRequest,
    RefreshRequest,
    RegisterRequest,
)

router = APIRouter()

ERROR_STATUS = {
    "INVALID_EMAIL": status.HTTP_400_BAD_REQUEST,
    "WEAK_PASSWORD": status.HTTP_400_BAD_REQUEST,
    "INVALID_RESET_TOKEN": status.HTTP_400_BAD_REQUEST,
    "INVALID_CREDENTIALS": status.HTTP_401_UNAUTHORIZED,
    "INVALID_SESSION": status.HTTP_401_UNAUTHORIZED,
    "ACCOUNT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "ACCOUNT_EXISTS": status.HTTP_409_CONFLICT,
}


def _raise_for(result: AuthResult) -> None:
    if result.success:
        return
    raise HTTPException(
        status_code=ERROR_STATUS.get(result.error_code, status.HTTP_503_SERVICE_UNAVAILABLE),
        detail=result.error,
    )


def _auth_response(result: AuthResult) -> AuthResponse:
    _raise_for(result)
    return AuthResponse(
        account=result.account,
        profile=result.profile,
        tokens=result.tokens,
        is_admin=result.is_admin,
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    request: RegisterRequest,
    auth: IAuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Create an account and sign it in."""
    return _auth_response(auth.register(RegistrationData(**request.model_dump())))


@router.post("/login", response_model=AuthResponse)
def login(
    request: LoginRequest,
    auth: IAuthService = Depends(get_auth_service),
) -> AuthResponse:
    return _auth_response(
        auth.login(LoginCredentials(email=request.email, password=request.password))
    )


@router.post("/refresh", response_model=AuthResponse)
def refresh(
    request: RefreshRequest,
    auth: IAuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Exchange a refresh token for a new token pair."""
    return _auth_response(auth.refresh_token(request.refresh_token))


@router.post("/change-password", response_model=MessageResponse)
def change_password(
    request: ChangePasswordRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    auth: IAuthService = Depends(get_auth_service),
) -> MessageResponse:
    """
    Change the authenticated account's password.

    Requires authentication.
    """
    _raise_for(auth.change_password(user.id, request.current_password, request.new_password))
    return MessageResponse(message="Password changed")


@router.post(
    "/password-reset",
    response_model=MessageResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
def request_password_reset(
    request: PasswordResetRequest,
    auth: IAuthService = Depends(get_auth_service),
) -> MessageResponse:
    """
    Start a password reset.

    The response is the same whether or not the email is registered.
    """
    auth.request_password_reset(request.email)
    return MessageResponse(message="If the email is registered, reset instructions will be sent")


@router.post("/password-reset/confirm", response_model=MessageResponse)
def confirm_password_reset(
    request: PasswordResetConfirmRequest,
    auth: IAuthService = Depends(get_auth_service),
) -> MessageResponse:
    _raise_for(auth.reset_password(request.token, request.new_password))
    return MessageResponse(message="Password has been reset")


@router.get("/me", response_model=CurrentUserResponse)
def get_me(user: AuthenticatedUser = Depends(get_current_user)) -> CurrentUserResponse:
    """
    Get the current account as described by its access token.

    Requires authentication.
    """
    return CurrentUserResponse(
        id=user.id,
        email=user.email,
        is_admin=user.is_admin,
        session_id=user.session_id,
        expires_at=user.expires_at,
    )
