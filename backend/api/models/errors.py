"""
Error response models.

Every HemeraError that escapes a route is rendered in this shape.
"""

from typing import Optional

from pydantic import BaseModel

from shared.exceptions import HemeraError


class ErrorResponse(BaseModel):
    """Standard error response format."""

    error: str
    detail: Optional[str] = None
    code: Optional[str] = None

    @classmethod
    def from_error(cls, exc: HemeraError) -> "ErrorResponse":
        return cls(error=type(exc).__name__, detail=exc.message, code=exc.code)
