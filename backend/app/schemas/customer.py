"""
Schemas Pydantic per l'entità Customer
Progetto: Gestionale Preventivi (Quotation Manager)
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """Rimuove gli spazi; accetta cifre, +, -, parentesi."""
    if phone is None:
        return None
    normalized = " ".join(phone.split())
    if not normalized:
        return None
    allowed = set("0123456789+-() ")
    if any(ch not in allowed for ch in normalized):
        raise ValueError("Número de teléfono no válido")
    return normalized


class CustomerBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, description="Nombre o razón social")
    email: Optional[EmailStr] = Field(None, description="Correo electrónico")
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("El nombre es obligatorio")
        return v

    @field_validator("email", mode="before")
    @classmethod
    def blank_email(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        return normalize_phone(v)


class CustomerCreate(CustomerBase):
    """Schema per la creazione di un cliente."""


class CustomerUpdate(BaseModel):
    """Aggiornamento parziale di un cliente."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        return normalize_phone(v)


class CustomerRead(CustomerBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    email: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class CustomerList(BaseModel):
    items: list[CustomerRead]
    total: int


__all__ = ["CustomerCreate", "CustomerUpdate", "CustomerRead", "CustomerList", "normalize_phone"]
