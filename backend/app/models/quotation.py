"""
Modelli SQLAlchemy per i Preventivi
Progetto: Gestionale Preventivi (Quotation Manager)

Contiene:
- Quotation: Preventivo (intestazione, cliente, totali, copia dati aziendali)
- QuotationItem: Righe del preventivo (cancellate con il preventivo)
- QuotationSequence: Contatore progressivo per utente e anno
- QuotationNumberReservation: Numero già assegnato a una chiave di bozza
"""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models import Base
from app.models.mixins import OwnedByUserMixin, TimestampMixin, UUIDMixin


class Quotation(Base, UUIDMixin, TimestampMixin, OwnedByUserMixin):
    """
    Preventivo.

    I dati del cliente e dell'azienda sono copiati in colonne proprie:
    il preventivo non dipende dai record Customer/CompanyInfo.

    Attributes:
        quotation_number: COT-YYYY-NNNN, univoco per utente
        draft_key: Chiave della bozza client per creazioni idempotenti
        tax_mode: standard | custom | none
        tax_name / tax_rate: Nome e aliquota effettiva applicata
        subtotal / tax_amount / total: Totali arrotondati a 2 decimali
        status: draft | sent | accepted | rejected

    Relationships:
        items: Righe ordinate per posizione
    """

    __tablename__ = "quotations"

    # ------------------------------------------------------------
    # Identificazione
    # ------------------------------------------------------------
    quotation_number: Mapped[str] = mapped_column(String(20), nullable=False)
    draft_key: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    valid_until: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # ------------------------------------------------------------
    # Cliente (copia)
    # ------------------------------------------------------------
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    customer_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    customer_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    project_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # ------------------------------------------------------------
    # Imposta e totali
    # ------------------------------------------------------------
    tax_mode: Mapped[str] = mapped_column(String(10), nullable=False, default="standard")
    tax_name: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("16"))
    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    delivery_terms: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    template_id: Mapped[str] = mapped_column(String(20), nullable=False, default="professional")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")

    # ------------------------------------------------------------
    # Azienda (copia)
    # ------------------------------------------------------------
    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    company_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    company_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    company_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    company_website: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    company_representative: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    items: Mapped[List["QuotationItem"]] = relationship(
        back_populates="quotation",
        cascade="all, delete-orphan",
        order_by="QuotationItem.position",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("user_id", "quotation_number", name="uq_quotations_user_number"),
        UniqueConstraint("user_id", "draft_key", name="uq_quotations_user_draft_key"),
        CheckConstraint(
            "status IN ('draft', 'sent', 'accepted', 'rejected')",
            name="ck_quotations_status",
        ),
        CheckConstraint(
            "tax_mode IN ('standard', 'custom', 'none')",
            name="ck_quotations_tax_mode",
        ),
        CheckConstraint("tax_rate >= 0 AND tax_rate <= 100", name="ck_quotations_tax_rate"),
        CheckConstraint(
            "valid_until IS NULL OR valid_until >= issue_date",
            name="ck_quotations_valid_until",
        ),
        Index("ix_quotations_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Quotation(id={self.id}, number={self.quotation_number}, status={self.status})>"


class QuotationItem(Base, UUIDMixin):
    """Riga del preventivo; line_total = quantity × unit_price."""

    __tablename__ = "quotation_items"

    quotation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("quotations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_ref: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    line_total: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))

    quotation: Mapped["Quotation"] = relationship(back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_quotation_items_quantity"),
        CheckConstraint("unit_price >= 0", name="ck_quotation_items_unit_price"),
    )


class QuotationSequence(Base):
    """
    Contatore dei numeri preventivo per (utente, anno).

    La riga viene bloccata con SELECT ... FOR UPDATE durante l'incremento.
    """

    __tablename__ = "quotation_sequences"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    year: Mapped[int] = mapped_column(Integer, primary_key=True)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class QuotationNumberReservation(Base, UUIDMixin, TimestampMixin, OwnedByUserMixin):
    """Numero assegnato a una chiave di bozza: la stessa chiave riceve sempre lo stesso numero."""

    __tablename__ = "quotation_number_reservations"

    draft_key: Mapped[str] = mapped_column(String(64), nullable=False)
    quotation_number: Mapped[str] = mapped_column(String(20), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "draft_key", name="uq_reservations_user_draft_key"),
    )
