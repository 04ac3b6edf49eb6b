"""JWT encoding and verification.

Learn: Two kinds of signed token share this module:
- Access token: short-lived (60min), the bearer credential for API calls
- Email confirmation token: purpose-bound, carries the user's security
  stamp so it dies as soon as the password (and thus the stamp) changes

Refresh tokens are NOT JWTs; they are opaque and tracked in the database
(see identity.tokens) so they can be consumed and revoked.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from bearer_identity.config import Settings, settings as default_settings


class TokenError(Exception):
    """Raised when token verification fails."""


def create_access_token(
    user_id: str,
    expires_minutes: Optional[int] = None,
    settings: Settings = default_settings,
) -> str:
    """Create a JWT access token. expires_minutes=None means the configured lifetime."""
    if expires_minutes is None:
        expires_minutes = settings.access_token_expire_minutes
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "type": "access",
        "iss": settings.jwt_issuer,
        "jti": uuid.uuid4().hex,
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_purpose_token(
    user_id: str,
    purpose: str,
    stamp: str,
    expires_hours: int,
    settings: Settings = default_settings,
) -> str:
    """Create a single-purpose JWT bound to a user and security stamp."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "type": purpose,
        "stamp": stamp,
        "iss": settings.jwt_issuer,
        "iat": now,
        "exp": now + timedelta(hours=expires_hours),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(
    token: str,
    expected_type: str = "access",
    settings: Settings = default_settings,
) -> dict:
    """Verify and decode a JWT, checking its type claim.

    Returns the payload dict on success.
    Raises TokenError on failure.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            options={"require": ["sub", "exp", "type"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")

    if payload.get("type") != expected_type:
        raise TokenError(f"Not a {expected_type} token")
    return payload
