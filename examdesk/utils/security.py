"""JWT helpers. Tokens are issued by the platform's auth service; this service verifies them."""

from datetime import datetime, timedelta, timezone

import jwt
from jwt.exceptions import PyJWTError


def create_access_token(
    data: dict,
    secret_key: str,
    algorithm: str = "HS256",
    expires_minutes: int = 60,
) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, secret_key, algorithm=algorithm)


def decode_access_token(
    token: str,
    secret_key: str,
    algorithm: str = "HS256",
) -> dict | None:
    """Decode and validate a JWT token. Returns None on failure."""
    try:
        return jwt.decode(token, secret_key, algorithms=[algorithm])
    except PyJWTError:
        return None
