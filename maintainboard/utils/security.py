"""Security utilities: JWT token minting and verification."""

from datetime import datetime, timedelta, timezone
from typing import Iterable

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


def create_user_token(
    user_id: str,
    permissions: Iterable[str],
    secret_key: str,
    algorithm: str = "HS256",
    expires_minutes: int = 60,
    role: str | None = None,
) -> str:
    """Mint a token carrying ``sub`` and the caller's capability list."""
    claims: dict = {"sub": user_id, "permissions": sorted(set(permissions))}
    if role:
        claims["role"] = role
    return create_access_token(claims, secret_key, algorithm, expires_minutes)


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
