"""
Modello SQLAlchemy per i profili aziendali
Progetto: Gestionale Preventivi (Quotation Manager)
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Boolean, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from app.models import Base
from app.models.mixins import OwnedByUserMixin, TimestampMixin, UUIDMixin


class CompanyInfo(Base, UUIDMixin, TimestampMixin, OwnedByUserMixin):
    """
    Profilo aziendale dell'utente (intestazione "De:" dei preventivi).

    Al massimo un profilo per utente ha is_default=True; il service azzera
    gli altri quando ne viene impostato uno nuovo.
    """

    __tablename__ = "company_info"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    website: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    representative: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index(
            "uq_company_info_default_per_user",
            "user_id",
            unique=True,
            postgresql_where=text("is_default"),
        ),
    )

    def __repr__(self) -> str:
        return f"<CompanyInfo(id={self.id}, name={self.name}, default={self.is_default})>"
