"""
RoleGate - Authentication Module

Provides:
- JWT verification (Identity Verifier)
- Access token helper for development and tests

Decorators live in api.auth.middleware.

Usage:
    from api.auth import TokenVerifier
"""

from .jwt_handler import (  # noqa: F401
    InvalidTokenError,
    TokenExpiredError,
    TokenVerifier,
    create_access_token,
    verify_token,
)

__all__ = [
    "InvalidTokenError",
    "TokenExpiredError",
    "TokenVerifier",
    "create_access_token",
    "verify_token",
]
