"""
Modello SQLAlchemy per l'entità User
Progetto: Gestionale Preventivi (Quotation Manager)
"""

from __future__ import annotations

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models import Base
from app.models.mixins import TimestampMixin, UUIDMixin


class User(Base, UUIDMixin, TimestampMixin):
    """
    Utente del sistema.

    Ogni utente vede solo i propri clienti, profili aziendali e preventivi.

    Attributes:
        id: UUID primary key
        email: Email univoca (login)
        hashed_password: Password hashata (bcrypt)
        display_name: Nome visualizzato
        is_active: False blocca login e token esistenti
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
        doc="Email univoca dell'utente",
    )

    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        doc="Password hashata",
    )

    display_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        doc="Nome visualizzato",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        doc="Indica se l'utente è attivo",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
