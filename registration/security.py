"""Password hashing and access/refresh token handling."""
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from fastapi import status
from jose import JWTError, jwt
from passlib.context import CryptContext

from .config import get_settings
from .errors import AppError
from .models import MAX_ID, User
from .result import Err, Ok, Result

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
settings = get_settings()

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def _encode(user_id: int, token_type: str, secret: str, expires_delta: timedelta) -> str:
    now = datetime.utcnow()
    claims = {"sub": str(user_id), "type": token_type, "iat": now, "exp": now + expires_delta}
    return jwt.encode(claims, secret, algorithm=settings.jwt_algorithm)


def _decode(token: str, token_type: str, secret: str) -> Optional[Dict[str, Any]]:
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    subject = str(payload.get("sub", ""))
    if payload.get("type") != token_type or not (subject.isascii() and subject.isdigit()):
        return None
    if not 1 <= int(subject) <= MAX_ID:
        return None
    return payload


def generate_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    return _encode(
        user.id,
        ACCESS_TOKEN_TYPE,
        settings.jwt_access_secret,
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes),
    )


def generate_refresh_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    return _encode(
        user.id,
        REFRESH_TOKEN_TYPE,
        settings.jwt_refresh_secret,
        expires_delta or timedelta(days=settings.refresh_token_expire_days),
    )


def verify_refresh_token(token: str) -> Result[int, AppError]:
    """Return the user id carried by a valid refresh token.

    Malformed, expired, wrongly signed, and non-refresh tokens all fail the
    same way.
    """
    payload = _decode(token, REFRESH_TOKEN_TYPE, settings.jwt_refresh_secret)
    if payload is None:
        return Err(AppError("Invalid or expired refresh token.", status.HTTP_403_FORBIDDEN))
    return Ok(int(payload["sub"]))


def decode_access_token(token: str) -> Optional[int]:
    payload = _decode(token, ACCESS_TOKEN_TYPE, settings.jwt_access_secret)
    if payload is None:
        return None
    return int(payload["sub"])
