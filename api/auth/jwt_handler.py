"""
RoleGate - JWT Handler

Responsibilities:
- Verify and decode bearer tokens (Identity Verifier)
- Handle expiration
- Issue access tokens for development and tests

Uses:
- HS256 symmetric signing (configurable)
- Secret material from AccessConfig, never read from the environment here
"""

from datetime import datetime, timedelta, timezone

import jwt

from config.settings import AccessConfig
from core.access.exceptions import TokenVerificationError


# ============================================================
# CUSTOM EXCEPTIONS
# ============================================================

class TokenExpiredError(TokenVerificationError):
    """Raised when JWT token has expired."""
    pass


class InvalidTokenError(TokenVerificationError):
    """Raised when JWT token is invalid."""
    pass


# ============================================================
# CREATE ACCESS TOKEN
# ============================================================

def _encode_token(config: AccessConfig, payload: dict) -> str:
    token = jwt.encode(
        payload,
        config.jwt_secret,
        algorithm=config.jwt_algorithm
    )

    if isinstance(token, bytes):
        token = token.decode("utf-8")

    return token


def create_access_token(
    config: AccessConfig,
    user_id: int,
    username: str = "",
    expires_in: timedelta = None
) -> str:
    """
    Generate signed JWT access token.
    """

    now = datetime.now(timezone.utc)
    if expires_in is None:
        expires_in = timedelta(minutes=config.access_token_minutes)

    payload = {
        "user_id": user_id,
        "username": username,
        "token_type": "access",
        "iat": now,
        "exp": now + expires_in
    }
    return _encode_token(config, payload)


# ============================================================
# VERIFY TOKEN
# ============================================================

class TokenVerifier:
    """
    Callable identity verifier bound to one AccessConfig.
    """

    def __init__(self, config: AccessConfig, expected_type: str = "access"):
        self.config = config
        self.expected_type = expected_type

    def __call__(self, token: str) -> dict:
        return verify_token(self.config, token, expected_type=self.expected_type)


def verify_token(config: AccessConfig, token: str, expected_type: str = None) -> dict:
    """
    Decode and verify JWT token.
    Returns payload if valid.
    Raises custom exceptions if invalid.
    """

    try:
        payload = jwt.decode(
            token,
            config.jwt_secret,
            algorithms=[config.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError("Token has expired.")
    except jwt.InvalidTokenError:
        raise InvalidTokenError("Invalid token.")

    if expected_type and payload.get("token_type") != expected_type:
        raise InvalidTokenError("Invalid token type.")

    return payload
