"""
Mixin SQLAlchemy per modelli
Progetto: Gestionale Preventivi (Quotation Manager)

Chiave primaria UUID, timestamp e appartenenza a un utente.
"""

import datetime
import uuid

from sqlalchemy import DateTime, ForeignKey, Uuid
from sqlalchemy import event
from sqlalchemy.orm import Mapped, Session, declared_attr, mapped_column
from sqlalchemy.sql import func


class UUIDMixin:
    """Campo id UUID primary key generato lato applicazione."""

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        doc="UUID primary key",
    )


class TimestampMixin:
    """Campi created_at/updated_at gestiti automaticamente."""

    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        doc="Data/ora di creazione del record",
    )

    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        doc="Data/ora ultimo aggiornamento del record",
    )


class OwnedByUserMixin:
    """
    Record di proprietà di un utente (cancellato insieme all'utente).

    Usage:
        class Customer(Base, UUIDMixin, OwnedByUserMixin):
            __tablename__ = "customers"
    """

    @declared_attr
    def user_id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(
            Uuid,
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
            doc="UUID dell'utente proprietario",
        )


# ------------------------------------------------------------
# Event Listeners
# ------------------------------------------------------------
@event.listens_for(Session, "before_flush")
def update_timestamp(session: Session, flush_context, instances) -> None:
    """Aggiorna updated_at sugli oggetti nuovi e su quelli realmente modificati."""
    now = datetime.datetime.now(datetime.timezone.utc)

    for obj in session.dirty:
        if hasattr(obj, "updated_at") and session.is_modified(obj, include_collections=False):
            obj.updated_at = now

    for obj in session.new:
        if hasattr(obj, "updated_at"):
            obj.updated_at = now
