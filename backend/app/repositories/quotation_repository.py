"""
Repository dei Preventivi
Progetto: Gestionale Preventivi (Quotation Manager)

Il service dipende solo dall'interfaccia QuotationRepository.
Implementazioni:
- SqlAlchemyQuotationRepository: PostgreSQL (AsyncSession)
- InMemoryQuotationRepository: in memoria, per test e sviluppo
"""

import abc
import datetime
import logging
import uuid
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    AppException,
    ConflictError,
    DuplicateError,
    NotFoundError,
    PersistenceError,
)
from app.models import (
    Quotation,
    QuotationItem,
    QuotationNumberReservation,
    QuotationSequence,
)
from app.schemas.quotation import (
    CompanySnapshot,
    CustomerInfo,
    LineItem,
    QuotationRead,
    QuotationSnapshot,
    TaxMode,
    TaxSelection,
)
from app.services import tax_mode
from app.services.totals import round2

logger = logging.getLogger(__name__)

MAX_SEQUENCE = 9999

NUMBER_CONSTRAINT = "uq_quotations_user_number"
DRAFT_KEY_CONSTRAINT = "uq_quotations_user_draft_key"


def format_quotation_number(year: int, value: int) -> str:
    """
    Formatta il numero preventivo: COT-YYYY-NNNN.

    Raises:
        ConflictError: Oltre 9999 preventivi nello stesso anno
    """
    if value > MAX_SEQUENCE:
        raise ConflictError(f"Límite de numeración alcanzado para el año {year}")
    return f"{settings.quotation_number_prefix}-{year}-{value:04d}"


class QuotationRepository(abc.ABC):
    """Interfaccia di persistenza dei preventivi."""

    @abc.abstractmethod
    async def create_quotation(
        self,
        user_id: uuid.UUID,
        quotation: QuotationSnapshot,
        draft_key: Optional[str] = None,
    ) -> QuotationRead:
        """Salva un nuovo preventivo con le sue righe."""

    @abc.abstractmethod
    async def get_quotation(self, quotation_id: uuid.UUID) -> Optional[QuotationRead]:
        """Preventivo per ID, None se inesistente."""

    @abc.abstractmethod
    async def get_quotation_by_draft_key(
        self, user_id: uuid.UUID, draft_key: str
    ) -> Optional[QuotationRead]:
        """Preventivo già creato da una bozza, se esiste."""

    @abc.abstractmethod
    async def update_quotation(
        self, quotation_id: uuid.UUID, quotation: QuotationSnapshot
    ) -> QuotationRead:
        """Sostituisce intestazione, totali e righe."""

    @abc.abstractmethod
    async def delete_quotation(self, quotation_id: uuid.UUID) -> None:
        """Elimina il preventivo e le sue righe."""

    @abc.abstractmethod
    async def list_quotations_by_user(self, user_id: uuid.UUID) -> list[QuotationRead]:
        """Preventivi dell'utente, dal più recente."""

    @abc.abstractmethod
    async def generate_quotation_number(
        self,
        user_id: uuid.UUID,
        draft_key: Optional[str] = None,
        issue_date: Optional[date] = None,
    ) -> str:
        """
        Prossimo numero progressivo dell'utente per l'anno di emissione.

        Con `draft_key` la chiamata è idempotente: la stessa chiave riceve
        sempre lo stesso numero.
        """

    async def commit(self) -> None:
        """Conferma la transazione (no-op per le implementazioni senza transazioni)."""


# ------------------------------------------------------------
# Conversioni ORM <-> snapshot
# ------------------------------------------------------------

def _tax_from_columns(mode: str, name: Optional[str], rate) -> TaxSelection:
    if mode == TaxMode.CUSTOM.value:
        return TaxSelection.custom(name or "", rate)
    if mode == TaxMode.NONE.value:
        return TaxSelection.none()
    return TaxSelection.standard()


def quotation_to_read(quotation: Quotation) -> QuotationRead:
    """Converte un Quotation ORM (con items caricati) in QuotationRead."""
    tax = _tax_from_columns(quotation.tax_mode, quotation.tax_name, quotation.tax_rate)
    return QuotationRead(
        id=quotation.id,
        user_id=quotation.user_id,
        draft_key=quotation.draft_key,
        created_at=quotation.created_at,
        updated_at=quotation.updated_at,
        quotation_number=quotation.quotation_number,
        issue_date=quotation.issue_date,
        valid_until=quotation.valid_until,
        customer=CustomerInfo(
            name=quotation.customer_name,
            email=quotation.customer_email,
            phone=quotation.customer_phone,
            address=quotation.customer_address,
        ),
        project_name=quotation.project_name,
        items=tuple(
            LineItem(
                id=item.id,
                name=item.name,
                description=item.description,
                image_ref=item.image_ref,
                quantity=item.quantity,
                unit_price=item.unit_price,
                line_total=item.line_total,
            )
            for item in quotation.items
        ),
        tax=tax,
        tax_rate=quotation.tax_rate,
        tax_label=tax_mode.tax_label(tax),
        subtotal=quotation.subtotal,
        tax_amount=quotation.tax_amount,
        total=quotation.total,
        notes=quotation.notes,
        delivery_terms=quotation.delivery_terms,
        template_id=quotation.template_id,
        status=quotation.status,
        company=CompanySnapshot(
            name=quotation.company_name,
            email=quotation.company_email,
            phone=quotation.company_phone,
            address=quotation.company_address,
            website=quotation.company_website,
            representative=quotation.company_representative,
        ),
    )


def apply_snapshot(quotation: Quotation, snapshot: QuotationSnapshot) -> None:
    """Copia lo snapshot nelle colonne del modello; le righe sono aggiornate per ID."""
    company = snapshot.company
    if company is None:
        raise ConflictError("Falta la información de la empresa")

    quotation.issue_date = snapshot.issue_date
    quotation.valid_until = snapshot.valid_until
    quotation.customer_name = snapshot.customer.name
    quotation.customer_email = snapshot.customer.email
    quotation.customer_phone = snapshot.customer.phone
    quotation.customer_address = snapshot.customer.address
    quotation.project_name = snapshot.project_name
    quotation.tax_mode = snapshot.tax.mode.value
    quotation.tax_name = snapshot.tax.custom_name or None
    quotation.tax_rate = snapshot.tax_rate
    quotation.subtotal = round2(snapshot.subtotal)
    quotation.tax_amount = round2(snapshot.tax_amount)
    quotation.total = round2(snapshot.total)
    quotation.notes = snapshot.notes
    quotation.delivery_terms = snapshot.delivery_terms
    quotation.template_id = snapshot.template_id.value
    quotation.status = snapshot.status.value
    quotation.company_name = company.name
    quotation.company_email = company.email
    quotation.company_phone = company.phone
    quotation.company_address = company.address
    quotation.company_website = company.website
    quotation.company_representative = company.representative

    existing = {item.id: item for item in quotation.items}
    rows: list[QuotationItem] = []
    for position, item in enumerate(snapshot.items):
        row = existing.get(item.id) or QuotationItem(id=item.id)
        row.position = position
        row.name = item.name
        row.description = item.description
        row.image_ref = item.image_ref
        row.quantity = item.quantity
        row.unit_price = round2(item.unit_price)
        row.line_total = round2(item.line_total)
        rows.append(row)
    quotation.items = rows


def integrity_error(e: IntegrityError, quotation_number: Optional[str]) -> AppException:
    """Traduce una violazione di vincolo nell'errore applicativo corrispondente."""
    message = str(e.orig)
    if NUMBER_CONSTRAINT in message:
        return DuplicateError(f"El número {quotation_number} ya existe")
    if DRAFT_KEY_CONSTRAINT in message:
        return DuplicateError("Este borrador ya fue guardado")
    return ConflictError("Los datos de la cotización entran en conflicto con registros existentes")


# ------------------------------------------------------------
# Implementazione SQLAlchemy
# ------------------------------------------------------------

class SqlAlchemyQuotationRepository(QuotationRepository):
    """
    Repository su PostgreSQL.

    Le operazioni eseguono flush ma non commit: il commit è del router
    (una transazione per richiesta). Errori del driver → PersistenceError.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _load(self, quotation_id: uuid.UUID) -> Optional[Quotation]:
        result = await self.db.execute(select(Quotation).where(Quotation.id == quotation_id))
        return result.scalar_one_or_none()

    async def create_quotation(self, user_id, quotation, draft_key=None) -> QuotationRead:
        if not quotation.quotation_number:
            raise ConflictError("La cotización no tiene número asignado")
        row = Quotation(
            user_id=user_id,
            quotation_number=quotation.quotation_number,
            draft_key=draft_key,
            items=[],
        )
        apply_snapshot(row, quotation)
        self.db.add(row)
        try:
            await self.db.flush()
            await self.db.refresh(row)
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning("Vincolo violato salvando %s: %s", quotation.quotation_number, e)
            raise integrity_error(e, quotation.quotation_number) from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Errore salvataggio preventivo: %s", e)
            raise PersistenceError() from e

        logger.info("Creato preventivo %s (%s)", row.quotation_number, row.id)
        return quotation_to_read(row)

    async def get_quotation(self, quotation_id) -> Optional[QuotationRead]:
        row = await self._load(quotation_id)
        return quotation_to_read(row) if row else None

    async def get_quotation_by_draft_key(self, user_id, draft_key) -> Optional[QuotationRead]:
        result = await self.db.execute(
            select(Quotation).where(Quotation.user_id == user_id, Quotation.draft_key == draft_key)
        )
        row = result.scalar_one_or_none()
        return quotation_to_read(row) if row else None

    async def update_quotation(self, quotation_id, quotation) -> QuotationRead:
        row = await self._load(quotation_id)
        if row is None:
            raise NotFoundError(f"Cotización {quotation_id} no encontrada")
        apply_snapshot(row, quotation)
        try:
            await self.db.flush()
            await self.db.refresh(row)
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning("Vincolo violato aggiornando %s: %s", quotation_id, e)
            raise integrity_error(e, quotation.quotation_number) from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Errore aggiornamento preventivo %s: %s", quotation_id, e)
            raise PersistenceError() from e
        logger.info("Aggiornato preventivo %s", quotation_id)
        return quotation_to_read(row)

    async def delete_quotation(self, quotation_id) -> None:
        row = await self._load(quotation_id)
        if row is None:
            raise NotFoundError(f"Cotización {quotation_id} no encontrada")
        try:
            await self.db.delete(row)
            await self.db.flush()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError() from e
        logger.info("Eliminato preventivo %s", quotation_id)

    async def list_quotations_by_user(self, user_id) -> list[QuotationRead]:
        result = await self.db.execute(
            select(Quotation)
            .where(Quotation.user_id == user_id)
            .order_by(Quotation.created_at.desc())
        )
        return [quotation_to_read(row) for row in result.scalars().all()]

    async def generate_quotation_number(self, user_id, draft_key=None, issue_date=None) -> str:
        """
        Incrementa il contatore (utente, anno) sotto lock di riga.

        1. Se la bozza ha già un numero riservato lo restituisce
        2. Crea la riga contatore se manca (ON CONFLICT DO NOTHING)
        3. SELECT ... FOR UPDATE e incremento
        4. Registra la prenotazione per la chiave di bozza
        """
        year = (issue_date or date.today()).year
        try:
            if draft_key:
                result = await self.db.execute(
                    select(QuotationNumberReservation).where(
                        QuotationNumberReservation.user_id == user_id,
                        QuotationNumberReservation.draft_key == draft_key,
                    )
                )
                reservation = result.scalar_one_or_none()
                if reservation is not None:
                    return reservation.quotation_number

            await self.db.execute(
                pg_insert(QuotationSequence)
                .values(user_id=user_id, year=year, last_value=0)
                .on_conflict_do_nothing(index_elements=["user_id", "year"])
            )
            result = await self.db.execute(
                select(QuotationSequence)
                .where(QuotationSequence.user_id == user_id, QuotationSequence.year == year)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            sequence = result.scalar_one()
            number = format_quotation_number(year, sequence.last_value + 1)
            sequence.last_value += 1

            if draft_key:
                self.db.add(
                    QuotationNumberReservation(
                        user_id=user_id,
                        draft_key=draft_key,
                        quotation_number=number,
                    )
                )
            await self.db.flush()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Errore generazione numero preventivo: %s", e)
            raise PersistenceError() from e

        logger.info("Assegnato numero %s all'utente %s", number, user_id)
        return number

    async def commit(self) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Commit fallito: %s", e)
            raise PersistenceError() from e


# ------------------------------------------------------------
# Implementazione in memoria
# ------------------------------------------------------------

class InMemoryQuotationRepository(QuotationRepository):
    """
    Repository in memoria.

    Nessun await tra lettura e scrittura del contatore: in un singolo
    event loop l'incremento è atomico.
    """

    def __init__(self) -> None:
        self.quotations: dict[uuid.UUID, QuotationRead] = {}
        self.sequences: dict[tuple[uuid.UUID, int], int] = {}
        self.reservations: dict[tuple[uuid.UUID, str], str] = {}
        self.commits = 0

    @staticmethod
    def _now() -> datetime.datetime:
        return datetime.datetime.now(datetime.timezone.utc)

    async def create_quotation(self, user_id, quotation, draft_key=None) -> QuotationRead:
        if not quotation.quotation_number:
            raise ConflictError("La cotización no tiene número asignado")
        for stored in self.quotations.values():
            if stored.user_id == user_id and stored.quotation_number == quotation.quotation_number:
                raise DuplicateError(f"El número {quotation.quotation_number} ya existe")
        now = self._now()
        stored = QuotationRead(
            **quotation.model_dump(),
            id=uuid.uuid4(),
            user_id=user_id,
            draft_key=draft_key,
            created_at=now,
            updated_at=now,
        )
        self.quotations[stored.id] = stored
        return stored

    async def get_quotation(self, quotation_id) -> Optional[QuotationRead]:
        return self.quotations.get(quotation_id)

    async def get_quotation_by_draft_key(self, user_id, draft_key) -> Optional[QuotationRead]:
        for stored in self.quotations.values():
            if stored.user_id == user_id and stored.draft_key == draft_key:
                return stored
        return None

    async def update_quotation(self, quotation_id, quotation) -> QuotationRead:
        current = self.quotations.get(quotation_id)
        if current is None:
            raise NotFoundError(f"Cotización {quotation_id} no encontrada")
        updated = QuotationRead(
            **quotation.model_dump(),
            id=current.id,
            user_id=current.user_id,
            draft_key=current.draft_key,
            created_at=current.created_at,
            updated_at=self._now(),
        )
        self.quotations[quotation_id] = updated
        return updated

    async def delete_quotation(self, quotation_id) -> None:
        if self.quotations.pop(quotation_id, None) is None:
            raise NotFoundError(f"Cotización {quotation_id} no encontrada")

    async def list_quotations_by_user(self, user_id) -> list[QuotationRead]:
        owned = [q for q in self.quotations.values() if q.user_id == user_id]
        return sorted(owned, key=lambda q: q.created_at, reverse=True)

    async def generate_quotation_number(self, user_id, draft_key=None, issue_date=None) -> str:
        if draft_key and (user_id, draft_key) in self.reservations:
            return self.reservations[(user_id, draft_key)]
        year = (issue_date or date.today()).year
        value = self.sequences.get((user_id, year), 0) + 1
        number = format_quotation_number(year, value)
        self.sequences[(user_id, year)] = value
        if draft_key:
            self.reservations[(user_id, draft_key)] = number
        return number

    async def commit(self) -> None:
        self.commits += 1


__all__ = [
    "QuotationRepository",
    "SqlAlchemyQuotationRepository",
    "InMemoryQuotationRepository",
    "format_quotation_number",
    "quotation_to_read",
    "apply_snapshot",
    "integrity_error",
]
