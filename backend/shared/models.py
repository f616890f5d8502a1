"""
Shared data models used across modules.

These models are shared infrastructure, not business logic.
Module-specific models should stay in their respective module directories.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field


class AuthenticatedUser(BaseModel):
    """
    Represents an authenticated account in the system.

    This model is populated from verified access-token claims and made
    available to route handlers via dependency injection.

    This is the minimal identity info needed for most operations.
    It's extracted from the token and used throughout the request lifecycle.
    """

    id: str = Field(..., description="Account ID (UUID)")
    email: EmailStr = Field(..., description="Account email address")
    is_admin: bool = Field(default=False, description="Privilege flag at token issue time")
    session_id: Optional[str] = Field(None, description="Session correlation id")

    issued_at: Optional[datetime] = Field(None, description="Token issue time")
    expires_at: Optional[datetime] = Field(None, description="Token expiry time")

    model_config = {
        "frozen": True,  # Make immutable for safety
        "extra": "ignore",
    }
