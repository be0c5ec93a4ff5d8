"""
Schemas Pydantic per l'autenticazione JWT
Progetto: Gestionale Preventivi (Quotation Manager)
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class TokenResponse(BaseModel):
    """Coppia di token restituita da login e refresh."""

    access_token: str = Field(..., description="Token di accesso JWT")
    refresh_token: str = Field(..., description="Token di refresh JWT")
    token_type: str = Field(default="bearer", description="Tipo di token")


class TokenRefresh(BaseModel):
    refresh_token: str = Field(..., description="Token di refresh JWT")


class TokenPayload(BaseModel):
    """
    Payload dei token.

    Attributes:
        sub: ID utente
        exp: Scadenza
        type: "access" o "refresh"
    """

    sub: str = Field(..., description="ID utente")
    exp: datetime = Field(..., description="Data/ora di scadenza")
    type: Literal["access", "refresh"] = Field(..., description="Tipo di token")


__all__ = ["TokenResponse", "TokenRefresh", "TokenPayload"]
