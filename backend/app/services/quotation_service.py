"""
Service Layer per i Preventivi
Progetto: Gestionale Preventivi (Quotation Manager)

Orchestrazione server-side:
- creazione idempotente per chiave di bozza, con numero assegnato una sola volta
- modifiche ammesse solo in bozza (freeze degli stati successivi)
- transizioni di stato secondo VALID_TRANSITIONS
- controllo di proprietà (un utente vede solo i propri preventivi)

I totali sono sempre ricalcolati dal QuotationEditor: il client non può
imporre subtotal/tax/total né line_total.
"""

import logging
import uuid
from typing import Optional

from app.core.exceptions import (
    AuthorizationError,
    BusinessValidationError,
    ConflictError,
    NotFoundError,
)
from app.repositories.quotation_repository import QuotationRepository
from app.schemas.quotation import (
    CompanySnapshot,
    QuotationCreate,
    QuotationRead,
    QuotationSnapshot,
    QuotationStatus,
    QuotationUpdate,
    TemplateId,
    VALID_TRANSITIONS,
)
from app.services.quotation_editor import QuotationEditor, editor_from_payload
from app.services.render_service import RenderTarget, RenderedQuotation, render_quotation

logger = logging.getLogger(__name__)


class QuotationService:
    """
    Service per i preventivi.

    Non conosce il database: lavora sull'interfaccia QuotationRepository
    iniettata dal router (SQLAlchemy in produzione, in memoria nei test).
    """

    def __init__(self, repository: QuotationRepository) -> None:
        self.repository = repository

    # ------------------------------------------------------------
    # Lettura
    # ------------------------------------------------------------

    async def get_by_id(self, user_id: uuid.UUID, quotation_id: uuid.UUID) -> QuotationRead:
        """
        Recupera un preventivo dell'utente.

        Raises:
            NotFoundError: Se il preventivo non esiste
            AuthorizationError: Se appartiene a un altro utente
        """
        quotation = await self.repository.get_quotation(quotation_id)
        if quotation is None:
            logger.warning("Preventivo non trovato: %s", quotation_id)
            raise NotFoundError(f"Cotización {quotation_id} no encontrada")
        if quotation.user_id != user_id:
            logger.warning(
                "Accesso negato al preventivo %s per l'utente %s", quotation_id, user_id
            )
            raise AuthorizationError("No tiene permiso para acceder a esta cotización")
        return quotation

    async def list_by_user(self, user_id: uuid.UUID) -> list[QuotationRead]:
        quotations = await self.repository.list_quotations_by_user(user_id)
        logger.info("Recuperati %s preventivi per l'utente %s", len(quotations), user_id)
        return quotations

    async def generate_number(
        self, user_id: uuid.UUID, draft_key: Optional[str] = None
    ) -> str:
        """Numero preventivo per una nuova bozza (idempotente per draft_key)."""
        return await self.repository.generate_quotation_number(user_id, draft_key)

    # ------------------------------------------------------------
    # Scrittura
    # ------------------------------------------------------------

    async def create(
        self,
        user_id: uuid.UUID,
        data: QuotationCreate,
        default_company: Optional[CompanySnapshot] = None,
    ) -> QuotationRead:
        """
        Crea un preventivo.

        Ordine delle operazioni:
        1. stessa draft_key già salvata → restituisce il preventivo esistente
        2. costruzione editor e finalize (nessuna scrittura se fallisce)
        3. assegnazione del numero (una sola volta per draft_key)
        4. salvataggio

        Args:
            user_id: Utente proprietario
            data: Payload validato
            default_company: Profilo aziendale da copiare se il payload non ne ha uno

        Raises:
            QuotationValidationError: Errori per campo
        """
        if data.draft_key:
            existing = await self.repository.get_quotation_by_draft_key(user_id, data.draft_key)
            if existing is not None:
                logger.info(
                    "Creazione ripetuta per draft_key %s: restituito %s",
                    data.draft_key, existing.quotation_number,
                )
                return existing

        editor = editor_from_payload(data.model_dump(exclude={"draft_key", "target_status"}))
        if data.company is None and default_company is not None:
            editor.set_company(default_company)

        snapshot = editor.finalize(QuotationStatus(data.target_status))
        number = await self.repository.generate_quotation_number(
            user_id, data.draft_key, snapshot.issue_date
        )
        snapshot = editor.assign_number(number)

        quotation = await self.repository.create_quotation(user_id, snapshot, data.draft_key)
        logger.info(
            "Creato preventivo %s per l'utente %s (totale %s, stato %s)",
            quotation.quotation_number, user_id, quotation.total, quotation.status.value,
        )
        return quotation

    async def update(
        self,
        user_id: uuid.UUID,
        quotation_id: uuid.UUID,
        data: QuotationUpdate,
    ) -> QuotationRead:
        """
        Aggiorna un preventivo in bozza.

        Raises:
            ConflictError: Se il preventivo non è in bozza
            QuotationValidationError: Errori per campo
        """
        current = await self.get_by_id(user_id, quotation_id)
        if current.status != QuotationStatus.DRAFT:
            raise ConflictError(
                f"La cotización en estado '{current.status.value}' no puede modificarse"
            )

        editor = editor_from_payload(data.model_dump(exclude_unset=True), base=current.to_snapshot())
        snapshot = editor.finalize(QuotationStatus.DRAFT)
        updated = await self.repository.update_quotation(quotation_id, snapshot)
        logger.info("Aggiornato preventivo %s (totale %s)", updated.quotation_number, updated.total)
        return updated

    async def delete(self, user_id: uuid.UUID, quotation_id: uuid.UUID) -> None:
        await self.get_by_id(user_id, quotation_id)
        await self.repository.delete_quotation(quotation_id)
        logger.info("Eliminato preventivo %s", quotation_id)

    async def change_status(
        self,
        user_id: uuid.UUID,
        quotation_id: uuid.UUID,
        new_status: QuotationStatus,
    ) -> QuotationRead:
        """
        Cambia lo stato secondo la matrice VALID_TRANSITIONS.

        draft → sent passa da finalize(sent): richiede almeno una riga.

        Raises:
            BusinessValidationError: Transizione non consentita
            QuotationValidationError: Preventivo non inviabile
        """
        current = await self.get_by_id(user_id, quotation_id)
        allowed = VALID_TRANSITIONS.get(current.status, [])
        if new_status not in allowed:
            logger.warning(
                "Transizione non consentita: %s -> %s", current.status.value, new_status.value
            )
            raise BusinessValidationError(
                f"Transición de '{current.status.value}' a '{new_status.value}' no permitida"
            )

        if new_status == QuotationStatus.SENT:
            snapshot = QuotationEditor.from_snapshot(current.to_snapshot()).finalize(new_status)
        else:
            snapshot = current.to_snapshot().model_copy(update={"status": new_status})

        updated = await self.repository.update_quotation(quotation_id, snapshot)
        logger.info(
            "Preventivo %s: stato %s -> %s",
            updated.quotation_number, current.status.value, new_status.value,
        )
        return updated

    # ------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------

    async def render(
        self,
        user_id: uuid.UUID,
        quotation_id: uuid.UUID,
        target: RenderTarget,
        template_id: Optional[TemplateId] = None,
    ) -> RenderedQuotation:
        """Renderizza un preventivo salvato sul target richiesto."""
        quotation = await self.get_by_id(user_id, quotation_id)
        return render_quotation(quotation.to_snapshot(), target, template_id)

    @staticmethod
    def preview_draft(
        data: QuotationCreate,
        default_company: Optional[CompanySnapshot] = None,
    ) -> RenderedQuotation:
        """Anteprima di una bozza non salvata (nessuna validazione bloccante)."""
        editor = editor_from_payload(data.model_dump(exclude={"draft_key", "target_status"}))
        if data.company is None and default_company is not None:
            editor.set_company(default_company)
        snapshot: QuotationSnapshot = editor.to_snapshot()
        return render_quotation(snapshot, RenderTarget.PREVIEW)


def get_quotation_service(repository: QuotationRepository) -> QuotationService:
    """Factory per ottenere un'istanza del servizio preventivi."""
    return QuotationService(repository)


__all__ = ["QuotationService", "get_quotation_service"]
