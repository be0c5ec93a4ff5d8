"""
Modello SQLAlchemy per l'entità Customer
Progetto: Gestionale Preventivi (Quotation Manager)
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models import Base
from app.models.mixins import OwnedByUserMixin, TimestampMixin, UUIDMixin


class Customer(Base, UUIDMixin, TimestampMixin, OwnedByUserMixin):
    """
    Cliente in rubrica.

    I dati vengono copiati nel preventivo alla creazione: modificare il
    cliente non altera i preventivi esistenti.
    """

    __tablename__ = "customers"

    name: Mapped[str] = mapped_column(String(255), nullable=False, doc="Nome o ragione sociale")
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_customers_user_name", "user_id", "name"),
    )

    def __repr__(self) -> str:
        return f"<Customer(id={self.id}, name={self.name})>"
