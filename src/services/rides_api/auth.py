# src/services/rides_api/auth.py
"""
Аутентификация по Bearer JWT.

Токен несёт sub (UUID пользователя) и role (rider | driver).
Ядро получает уже проверенную пару в виде Actor.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt

from src.common.constants import UserRole
from src.common.exceptions import AuthenticationError
from src.core.access import Actor

bearer_scheme = HTTPBearer(auto_error=False)


def _auth_settings() -> tuple[str, str, int]:
    from src.config import settings

    return (
        settings.auth.JWT_SECRET,
        settings.auth.JWT_ALGORITHM,
        settings.auth.ACCESS_TOKEN_EXPIRE_MINUTES,
    )


def create_access_token(
    user_id: str,
    role: UserRole,
    expires_minutes: int | None = None,
) -> str:
    """Выпускает access-токен для пользователя."""
    secret, algorithm, default_expire = _auth_settings()
    if not secret:
        raise RuntimeError("JWT_SECRET не задан")

    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes or default_expire)
    payload = {
        "sub": str(user_id),
        "role": role.value,
        "type": "access",
        "exp": expire,
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_access_token(token: str) -> Actor:
    """
    Проверяет токен и возвращает Actor.

    Raises:
        AuthenticationError: токен невалиден, истёк или без нужных claims
    """
    secret, algorithm, _ = _auth_settings()
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except ExpiredSignatureError:
        raise AuthenticationError("Token has expired") from None
    except JWTError:
        raise AuthenticationError("Invalid or expired token") from None

    if payload.get("type") != "access":
        raise AuthenticationError("Invalid token type")

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token subject")

    try:
        role = UserRole(payload.get("role"))
    except ValueError:
        raise AuthenticationError("Invalid token role") from None

    return Actor(user_id=str(user_id), role=role)


def get_current_actor(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Actor:
    """FastAPI зависимость: пользователь текущего запроса."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Access token required")
    return decode_access_token(credentials.credentials)
