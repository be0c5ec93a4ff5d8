"""
Modulo di sicurezza per autenticazione JWT
Progetto: Gestionale Preventivi (Quotation Manager)

Hashing password (bcrypt) e gestione token JWT di accesso/refresh.
"""

from datetime import datetime, timedelta, timezone
from typing import Literal

from fastapi import HTTPException, status
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import ValidationError as PydanticValidationError

from app.core.config import settings
from app.schemas.token import TokenPayload

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def _create_token(user_id: str, token_type: Literal["access", "refresh"], lifetime: timedelta) -> str:
    payload = {
        "sub": user_id,
        "exp": datetime.now(timezone.utc) + lifetime,
        "type": token_type,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(user_id: str) -> str:
    """Token di accesso (durata: access_token_expire_minutes)."""
    return _create_token(
        user_id, "access", timedelta(minutes=settings.access_token_expire_minutes)
    )


def create_refresh_token(user_id: str) -> str:
    """Token di refresh (durata: refresh_token_expire_days)."""
    return _create_token(
        user_id, "refresh", timedelta(days=settings.refresh_token_expire_days)
    )


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_token(token: str) -> TokenPayload:
    """
    Decodifica e valida un token JWT.

    Raises:
        HTTPException 401: Token invalido, scaduto o malformato
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
        token_data = TokenPayload(
            sub=payload.get("sub") or "",
            exp=datetime.fromtimestamp(payload.get("exp", 0), tz=timezone.utc),
            type=payload.get("type"),
        )
    except (JWTError, PydanticValidationError) as e:
        raise _unauthorized(f"Token inválido o expirado: {e}")

    if not token_data.sub:
        raise _unauthorized("Token inválido: falta el sujeto")
    return token_data


__all__ = [
    "hash_password",
    "verify_password",
    "create_access_token",
    "create_refresh_token",
    "decode_token",
]
