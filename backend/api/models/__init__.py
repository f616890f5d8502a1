"""API models package."""

from .auth import (
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
from .errors import ErrorResponse

__all__ = [
    "AuthResponse",
    "ChangePasswordRequest",
    "CurrentUserResponse",
    "LoginRequest",
    "MessageResponse",
    "PasswordResetConfirmRequest",
    "PasswordResetRequest",
    "RefreshRequest",
    "RegisterRequest",
    "ErrorResponse",
]
