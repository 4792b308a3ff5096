"""
Token handling for the ``Authorization: Token <jwt>`` header.

Issuing tokens at login time belongs to the accounts side; this module
only knows how to mint one for a user id and read it back.
"""
from datetime import datetime, timedelta, timezone

import jwt

from conduit.config import settings

TOKEN_PREFIXES = ("token", "bearer")


def create_access_token(user_id: int) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + timedelta(hours=settings.ACCESS_TOKEN_TTL_HOURS),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> int | None:
    """Return the user id carried by *token*, or None if it is unusable."""
    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
        )
    except jwt.InvalidTokenError:
        return None
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        return None


def extract_token(authorization: str | None) -> str | None:
    """Pull the raw token out of an ``Authorization`` header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() not in TOKEN_PREFIXES or not token.strip():
        return None
    return token.strip()
