"""
Servizio per l'autenticazione
Progetto: Gestionale Preventivi (Quotation Manager)

Registrazione, login e refresh dei token.
"""

import logging
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DuplicateError, NotFoundError
from app.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)
from app.models.user import User
from app.schemas.token import TokenResponse
from app.schemas.user import UserCreate, UserLogin

logger = logging.getLogger(__name__)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _token_pair(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(str(user.id)),
        refresh_token=create_refresh_token(str(user.id)),
        token_type="bearer",
    )


class AuthService:
    """Servizio per la gestione dell'autenticazione."""

    async def register(self, db: AsyncSession, data: UserCreate) -> User:
        """
        Registra un nuovo utente.

        Raises:
            DuplicateError: Se l'email è già registrata
        """
        email = data.email.lower()
        result = await db.execute(select(User).where(User.email == email))
        if result.scalar_one_or_none():
            raise DuplicateError(f"El correo {email} ya está registrado")

        user = User(
            email=email,
            hashed_password=hash_password(data.password),
            display_name=data.display_name.strip(),
        )
        db.add(user)
        await db.flush()
        await db.refresh(user)
        logger.info("Registrato utente %s", user.id)
        return user

    async def login(self, db: AsyncSession, data: UserLogin) -> TokenResponse:
        """
        Verifica le credenziali e restituisce access e refresh token.

        Raises:
            HTTPException 401: Credenziali errate o utente disattivato
        """
        result = await db.execute(select(User).where(User.email == data.email.lower()))
        user = result.scalar_one_or_none()

        if not user or not verify_password(data.password, user.hashed_password):
            logger.warning("Login fallito per %s", data.email)
            raise _unauthorized("Correo o contraseña incorrectos")
        if not user.is_active:
            raise _unauthorized("Usuario desactivado")

        return _token_pair(user)

    async def refresh(self, db: AsyncSession, refresh_token: str) -> TokenResponse:
        """
        Nuova coppia di token a partire da un refresh token.

        Raises:
            HTTPException 401: Token non di refresh, utente inesistente o disattivato
        """
        token_data = decode_token(refresh_token)
        if token_data.type != "refresh":
            raise _unauthorized("Se requiere un token de actualización")

        try:
            user_id = UUID(token_data.sub)
        except ValueError:
            raise _unauthorized("ID de usuario inválido en el token")

        user = await db.get(User, user_id)
        if not user:
            raise _unauthorized("Usuario no encontrado")
        if not user.is_active:
            raise _unauthorized("Usuario desactivado")

        return _token_pair(user)

    async def get_user_by_id(self, db: AsyncSession, user_id: UUID) -> User:
        """
        Raises:
            NotFoundError: Se l'utente non esiste
        """
        user = await db.get(User, user_id)
        if not user:
            raise NotFoundError(f"Usuario {user_id} no encontrado")
        return user


def get_auth_service() -> AuthService:
    """Factory per ottenere un'istanza del servizio di autenticazione."""
    return AuthService()


__all__ = ["AuthService", "get_auth_service"]
