"""
Schemas Pydantic per l'entità User
Progetto: Gestionale Preventivi (Quotation Manager)
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class UserCreate(BaseModel):
    """
    Registrazione di un nuovo utente.

    Attributes:
        email: Email univoca
        password: Password in chiaro (8-100 caratteri, almeno una cifra)
        display_name: Nome visualizzato
    """

    email: EmailStr = Field(..., description="Email univoca dell'utente")
    password: str = Field(min_length=8, max_length=100)
    display_name: str = Field(min_length=1, max_length=100)

    @field_validator("password")
    @classmethod
    def validate_password_strength(cls, v: str) -> str:
        if not any(ch.isdigit() for ch in v):
            raise ValueError("La contraseña debe contener al menos un número")
        return v


class UserLogin(BaseModel):
    email: EmailStr = Field(..., description="Email dell'utente")
    password: str = Field(..., description="Password in chiaro")


class UserResponse(BaseModel):
    """Utente corrente: {id, email, display_name}."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    display_name: str
    is_active: bool
    created_at: datetime


__all__ = ["UserCreate", "UserLogin", "UserResponse"]
