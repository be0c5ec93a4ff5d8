"""
Schemas Pydantic per i profili aziendali
Progetto: Gestionale Preventivi (Quotation Manager)
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.schemas.quotation import CompanySnapshot


class CompanyInfoBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None
    website: Optional[str] = Field(None, max_length=255)
    representative: Optional[str] = Field(None, max_length=255)


class CompanyInfoCreate(CompanyInfoBase):
    """Nuovo profilo; is_default=True azzera il default degli altri profili."""

    is_default: bool = False


class CompanyInfoUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None
    website: Optional[str] = Field(None, max_length=255)
    representative: Optional[str] = Field(None, max_length=255)
    is_default: Optional[bool] = None


class CompanyInfoRead(CompanyInfoBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    email: Optional[str] = None
    is_default: bool
    created_at: datetime
    updated_at: datetime

    def to_snapshot(self) -> CompanySnapshot:
        """Copia da inserire in un preventivo."""
        return CompanySnapshot(
            name=self.name,
            email=self.email,
            phone=self.phone,
            address=self.address,
            website=self.website,
            representative=self.representative,
        )


__all__ = ["CompanyInfoCreate", "CompanyInfoUpdate", "CompanyInfoRead"]
