"""
Dependency Injection per autenticazione e repository
Progetto: Gestionale Preventivi (Quotation Manager)

- get_optional_user: utente corrente o None
- get_current_user: come sopra ma obbligatorio (401)
- get_quotation_repository: repository SQLAlchemy legato alla sessione
"""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import decode_token
from app.models.user import User
from app.repositories.quotation_repository import (
    QuotationRepository,
    SqlAlchemyQuotationRepository,
)

# OAuth2 scheme - estrae il token dall'header Authorization
oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/api/v1/auth/login",
    auto_error=False,
)


async def get_optional_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """
    Utente corrente dal token JWT, None se il token manca.

    Raises:
        HTTPException 401: Token presente ma invalido, utente inesistente o disattivato
    """
    if not token:
        return None

    token_data = decode_token(token)
    if token_data.type != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="El token de actualización no es válido para esta operación",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user_id = UUID(token_data.sub)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="ID de usuario inválido en el token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await db.get(User, user_id)
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Usuario no encontrado o desactivado",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_current_user(
    user: Optional[User] = Depends(get_optional_user),
) -> User:
    """
    Utente autenticato obbligatorio.

    Raises:
        HTTPException 401: Se manca il token
    """
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token de autenticación no proporcionado",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_quotation_repository(
    db: AsyncSession = Depends(get_db),
) -> QuotationRepository:
    """Repository dei preventivi (sovrascrivibile nei test)."""
    return SqlAlchemyQuotationRepository(db)


# Type aliases per uso comune
OptionalUser = Annotated[Optional[User], Depends(get_optional_user)]
CurrentUser = Annotated[User, Depends(get_current_user)]
QuotationRepo = Annotated[QuotationRepository, Depends(get_quotation_repository)]


__all__ = [
    "oauth2_scheme",
    "get_optional_user",
    "get_current_user",
    "get_quotation_repository",
    "OptionalUser",
    "CurrentUser",
    "QuotationRepo",
]
