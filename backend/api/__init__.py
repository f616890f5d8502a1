"""
Hemera access API package.

Provides the FastAPI application exposing registration, login and token
management.
"""

from .app import app, create_app

__all__ = ["app", "create_app"]
