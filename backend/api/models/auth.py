"""
Request and response models for the auth endpoints.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from modules.auth.models import Account, Profile, TokenPair


class RegisterRequest(BaseModel):
    """Request body for account registration."""

    email: str = Field(..., description="Email address")
    password: str = Field(..., description="Password")
    full_name: Optional[str] = Field(None, max_length=200)
    job_position: Optional[str] = Field(None, max_length=200)
    department: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, max_length=50)


class LoginRequest(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


class PasswordResetRequest(BaseModel):
    email: str


class PasswordResetConfirmRequest(BaseModel):
    token: str
    new_password: str


class AuthResponse(BaseModel):
    """Account snapshot and fresh tokens after a successful auth flow."""

    account: Account
    profile: Optional[Profile] = None
    tokens: TokenPair
    is_admin: bool = False


class MessageResponse(BaseModel):
    message: str


class CurrentUserResponse(BaseModel):
    """The authenticated account as seen by its access token."""

    id: str
    email: str
    is_admin: bool
    session_id: Optional[str] = None
    expires_at: Optional[datetime] = None
