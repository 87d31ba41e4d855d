"""Password Hashing and JWT Utilities"""

from datetime import timedelta
from typing import Optional

import bcrypt
from jose import JWTError, jwt

from schoolms.config import settings
from schoolms.utils.time import get_utc_now

# bcrypt only looks at the first 72 bytes
_BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    """Encode and cut to bcrypt's limit without splitting a UTF-8 sequence."""
    encoded = password.encode("utf-8")
    if len(encoded) <= _BCRYPT_MAX_BYTES:
        return encoded
    return encoded[:_BCRYPT_MAX_BYTES].decode("utf-8", errors="ignore").encode("utf-8")


def get_password_hash(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        Hashed password (ASCII string for DB storage)
    """
    hashed = bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt())
    return hashed.decode("ascii")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a plain password against a stored bcrypt hash"""
    return bcrypt.checkpw(_password_bytes(plain_password), hashed_password.encode("ascii"))


def _encode(data: dict, expires_delta: timedelta, token_type: str) -> str:
    to_encode = data.copy()
    to_encode.update({"exp": get_utc_now() + expires_delta, "type": token_type})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Claims to encode (usually {"sub": user_id, "role": ..., "school_id": ...})
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return _encode(data, expires_delta, "access")


def create_refresh_token(data: dict) -> str:
    """Create a JWT refresh token"""
    return _encode(data, timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS), "refresh")


def decode_token(token: str) -> Optional[dict]:
    """
    Decode and validate a JWT token.

    Returns:
        Decoded token payload or None if invalid or expired
    """
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
