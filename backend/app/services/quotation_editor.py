"""
Quotation Editor - aggregato del preventivo in modifica
Progetto: Gestionale Preventivi (Quotation Manager)

Unica fonte di verità per una sessione di editing. Ogni mutazione
(intestazione, cliente, righe, imposta, template) ricalcola i totali in
modo sincrono e pubblica un nuovo QuotationSnapshot immutabile con
versione incrementale. I render adapter lavorano solo sugli snapshot.

Contiene anche:
- finalize(): validazione con lista errori per campo
- assign_number(): assegnazione unica del numero preventivo
- gestione delle richieste esterne (AI, voce) con scarto dei risultati tardivi
"""

import logging
import uuid
from datetime import date, timedelta
from typing import Any, Awaitable, Callable, Mapping, Optional

from email_validator import EmailNotValidError, validate_email

from app.core.config import settings
from app.core.exceptions import (
    ConflictError,
    ExternalServiceError,
    FieldError,
    QuotationValidationError,
)
from app.schemas.quotation import (
    MAX_AMOUNT,
    CompanySnapshot,
    CustomerInfo,
    LineItem,
    QuotationSnapshot,
    QuotationStatus,
    TaxSelection,
    TemplateId,
)
from app.services import tax_mode
from app.services.line_item_store import LineItemStore
from app.services.totals import compute_totals, line_total, round2

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[QuotationSnapshot], None]

HEADER_FIELDS = frozenset({"issue_date", "valid_until", "project_name", "notes", "delivery_terms"})
CUSTOMER_FIELDS = frozenset({"name", "email", "phone", "address"})
TEXT_TARGET_FIELDS = frozenset({"name", "description"})


def default_valid_until(issue_date: date) -> date:
    """Data di scadenza di default: emissione + giorni di validità configurati."""
    return issue_date + timedelta(days=settings.quotation_validity_days)


def build_snapshot(
    *,
    items: tuple[LineItem, ...],
    tax: TaxSelection,
    version: int = 0,
    **fields: Any,
) -> QuotationSnapshot:
    """Costruisce uno snapshot calcolando i totali dalle righe e dall'imposta."""
    rate = tax_mode.effective_rate(tax)
    totals = compute_totals(items, rate)
    return QuotationSnapshot(
        version=version,
        items=items,
        tax=tax,
        tax_rate=rate,
        tax_label=tax_mode.tax_label(tax),
        subtotal=totals.subtotal,
        tax_amount=totals.tax_amount,
        total=totals.total,
        **fields,
    )


def recompute_snapshot(snapshot: QuotationSnapshot) -> QuotationSnapshot:
    """
    Ricostruisce da zero uno snapshot non affidabile.

    Ricalcola ogni line_total e i totali; tutti gli altri campi restano
    invariati.
    """
    items = tuple(
        item.model_copy(update={"line_total": line_total(item.quantity, item.unit_price)})
        for item in snapshot.items
    )
    fields = snapshot.model_dump(
        exclude={"items", "tax", "tax_rate", "tax_label", "subtotal", "tax_amount", "total", "version"}
    )
    return build_snapshot(items=items, tax=snapshot.tax, version=snapshot.version, **fields)


class ExternalRequest:
    """Richiesta in corso verso un servizio esterno che scriverà su una riga."""

    def __init__(self, item_id: uuid.UUID, field: str) -> None:
        self.token = uuid.uuid4()
        self.item_id = item_id
        self.field = field
        self.cancelled = False


class QuotationEditor:
    """
    Aggregato del preventivo in modifica.

    Finché lo stato è `draft` qualsiasi mutazione è ammessa; dopo
    finalize(sent) o con uno stato terminale l'aggregato è congelato e
    ogni mutazione solleva ConflictError.

    Usage:
        editor = QuotationEditor(company=company_snapshot)
        item_id = editor.add_item({"name": "Servicio", "quantity": 2, "unit_price": "100"})
        editor.toggle_standard(True)
        snapshot = editor.finalize(QuotationStatus.SENT)
    """

    def __init__(
        self,
        *,
        issue_date: Optional[date] = None,
        valid_until: Optional[date] = None,
        customer: Optional[CustomerInfo] = None,
        project_name: Optional[str] = None,
        items: Optional[list[LineItem]] = None,
        tax: Optional[TaxSelection] = None,
        notes: Optional[str] = None,
        delivery_terms: Optional[str] = None,
        template_id: Optional[TemplateId] = None,
        status: QuotationStatus = QuotationStatus.DRAFT,
        company: Optional[CompanySnapshot] = None,
        quotation_number: Optional[str] = None,
    ) -> None:
        self._issue_date = issue_date or date.today()
        self._valid_until = valid_until if valid_until is not None else default_valid_until(self._issue_date)
        self._customer = customer or CustomerInfo()
        self._project_name = project_name
        self._tax = tax or TaxSelection.standard()
        self._notes = notes
        self._delivery_terms = delivery_terms
        self._template_id = template_id or TemplateId(settings.default_template)
        self._status = status
        self._company = company
        self._quotation_number = quotation_number

        self._version = 0
        self._listeners: list[SnapshotListener] = []
        self._requests: dict[uuid.UUID, ExternalRequest] = {}
        self._closed = False

        self._store = LineItemStore(items)
        self._store.subscribe(lambda _items: self._recompute())
        self._snapshot = self._build()

    @classmethod
    def from_snapshot(cls, snapshot: QuotationSnapshot) -> "QuotationEditor":
        """Apre una sessione di editing su un preventivo esistente."""
        return cls(
            issue_date=snapshot.issue_date,
            valid_until=snapshot.valid_until,
            customer=snapshot.customer,
            project_name=snapshot.project_name,
            items=list(snapshot.items),
            tax=snapshot.tax,
            notes=snapshot.notes,
            delivery_terms=snapshot.delivery_terms,
            template_id=snapshot.template_id,
            status=snapshot.status,
            company=snapshot.company,
            quotation_number=snapshot.quotation_number,
        )

    # ------------------------------------------------------------
    # Snapshot e osservatori
    # ------------------------------------------------------------

    @property
    def status(self) -> QuotationStatus:
        return self._status

    @property
    def version(self) -> int:
        return self._version

    @property
    def items(self) -> tuple[LineItem, ...]:
        return self._store.items

    @property
    def is_frozen(self) -> bool:
        return self._status != QuotationStatus.DRAFT

    @property
    def pending_requests(self) -> int:
        """Richieste esterne ancora in attesa di risultato."""
        return len(self._requests)

    def to_snapshot(self) -> QuotationSnapshot:
        """Snapshot immutabile corrente."""
        return self._snapshot

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """
        Registra un osservatore degli snapshot.

        Returns:
            Funzione che annulla la registrazione
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _build(self) -> QuotationSnapshot:
        return build_snapshot(
            items=self._store.items,
            tax=self._tax,
            version=self._version,
            quotation_number=self._quotation_number,
            issue_date=self._issue_date,
            valid_until=self._valid_until,
            customer=self._customer,
            project_name=self._project_name,
            notes=self._notes,
            delivery_terms=self._delivery_terms,
            template_id=self._template_id,
            status=self._status,
            company=self._company,
        )

    def _recompute(self) -> None:
        self._version += 1
        self._snapshot = self._build()
        for listener in list(self._listeners):
            listener(self._snapshot)

    def _ensure_editable(self) -> None:
        if self.is_frozen:
            raise ConflictError(
                f"La cotización en estado '{self._status.value}' no puede modificarse"
            )

    # ------------------------------------------------------------
    # Intestazione, cliente, azienda, template
    # ------------------------------------------------------------

    def set_header(self, **fields: Any) -> QuotationSnapshot:
        """Aggiorna date, progetto, note e condizioni di consegna."""
        self._ensure_editable()
        unknown = set(fields) - HEADER_FIELDS
        if unknown:
            raise QuotationValidationError(
                [FieldError(name, "Campo desconocido") for name in sorted(unknown)]
            )
        if "issue_date" in fields and fields["issue_date"] is not None:
            self._issue_date = fields["issue_date"]
            if "valid_until" not in fields and self._valid_until is None:
                self._valid_until = default_valid_until(self._issue_date)
        if "valid_until" in fields:
            self._valid_until = fields["valid_until"]
        for name in ("project_name", "notes", "delivery_terms"):
            if name in fields:
                value = fields[name]
                if isinstance(value, str):
                    value = value.strip() or None
                setattr(self, f"_{name}", value)
        self._recompute()
        return self._snapshot

    def set_customer(self, customer: Optional[CustomerInfo] = None, **fields: Any) -> QuotationSnapshot:
        """Sostituisce il cliente oppure ne aggiorna singoli campi."""
        self._ensure_editable()
        if customer is not None:
            self._customer = customer
        else:
            unknown = set(fields) - CUSTOMER_FIELDS
            if unknown:
                raise QuotationValidationError(
                    [FieldError(f"customer.{name}", "Campo desconocido") for name in sorted(unknown)]
                )
            self._customer = CustomerInfo.model_validate({**self._customer.model_dump(), **fields})
        self._recompute()
        return self._snapshot

    def set_company(self, company: Optional[CompanySnapshot]) -> QuotationSnapshot:
        """Copia i dati aziendali nello snapshot (mai un riferimento vivo)."""
        self._ensure_editable()
        self._company = company.model_copy() if company is not None else None
        self._recompute()
        return self._snapshot

    def set_template(self, template_id: TemplateId) -> QuotationSnapshot:
        self._ensure_editable()
        self._template_id = TemplateId(template_id)
        self._recompute()
        return self._snapshot

    # ------------------------------------------------------------
    # Imposta
    # ------------------------------------------------------------

    def _apply_tax(self, selection: TaxSelection) -> QuotationSnapshot:
        self._ensure_editable()
        self._tax = selection
        self._recompute()
        return self._snapshot

    def set_tax(self, selection: TaxSelection) -> QuotationSnapshot:
        return self._apply_tax(selection)

    def toggle_standard(self, checked: bool) -> QuotationSnapshot:
        return self._apply_tax(tax_mode.toggle_standard(self._tax, checked))

    def toggle_custom(self, checked: bool) -> QuotationSnapshot:
        return self._apply_tax(tax_mode.toggle_custom(self._tax, checked))

    def set_custom_rate(self, raw: Any) -> QuotationSnapshot:
        # ricalcolo anche se l'input viene scartato: ogni battitura produce uno snapshot
        return self._apply_tax(tax_mode.set_custom_rate(self._tax, raw))

    def set_custom_name(self, name: str) -> QuotationSnapshot:
        return self._apply_tax(tax_mode.set_custom_name(self._tax, name))

    # ------------------------------------------------------------
    # Righe (delegate al LineItemStore)
    # ------------------------------------------------------------

    def add_item(self, draft: Optional[Mapping[str, Any]] = None) -> uuid.UUID:
        self._ensure_editable()
        return self._store.add_item(draft)

    def update_item(self, item_id: uuid.UUID, patch: Mapping[str, Any]) -> LineItem:
        self._ensure_editable()
        return self._store.update_item(item_id, patch)

    def remove_item(self, item_id: uuid.UUID) -> None:
        self._ensure_editable()
        self._store.remove_item(item_id)
        for token in [t for t, r in self._requests.items() if r.item_id == item_id]:
            self._requests.pop(token).cancelled = True

    def set_image(self, item_id: uuid.UUID, ref: str) -> None:
        self._ensure_editable()
        self._store.set_image(item_id, ref)

    def clear_image(self, item_id: uuid.UUID) -> None:
        self._ensure_editable()
        self._store.clear_image(item_id)

    def replace_items(self, items: list[Mapping[str, Any]]) -> QuotationSnapshot:
        self._ensure_editable()
        self._store.replace_all(items)
        return self._snapshot

    # ------------------------------------------------------------
    # Validazione, numerazione, stato
    # ------------------------------------------------------------

    def validate(self, target_status: QuotationStatus) -> list[FieldError]:
        """Restituisce gli errori per campo senza sollevare eccezioni."""
        errors: list[FieldError] = []
        snapshot = self._snapshot

        if not snapshot.customer.name.strip():
            errors.append(FieldError("customer.name", "El nombre del cliente es obligatorio"))

        if snapshot.customer.email:
            try:
                validate_email(snapshot.customer.email, check_deliverability=False)
            except EmailNotValidError:
                errors.append(FieldError("customer.email", "El correo electrónico no es válido"))

        if target_status == QuotationStatus.SENT and not snapshot.items:
            errors.append(FieldError("items", "Se requiere al menos un artículo"))

        for index, item in enumerate(snapshot.items):
            if not item.name.strip():
                errors.append(FieldError(f"items[{index}].name", "El nombre del artículo es obligatorio"))
            if round2(item.line_total) > MAX_AMOUNT:
                errors.append(FieldError(f"items[{index}].line_total", "El importe de la línea es demasiado alto"))

        if round2(snapshot.total) > MAX_AMOUNT:
            errors.append(FieldError("total", f"El total no puede superar {MAX_AMOUNT:,}"))

        if snapshot.company is None or not snapshot.company.name.strip():
            errors.append(FieldError("company", "Falta la información de la empresa"))

        if snapshot.valid_until is not None and snapshot.valid_until < snapshot.issue_date:
            errors.append(
                FieldError("valid_until", "La fecha de vigencia no puede ser anterior a la fecha de emisión")
            )

        return errors

    def finalize(self, target_status: QuotationStatus = QuotationStatus.DRAFT) -> QuotationSnapshot:
        """
        Valida l'aggregato e lo porta nello stato richiesto.

        Args:
            target_status: `draft` (salvataggio) o `sent` (invio)

        Returns:
            QuotationSnapshot validato

        Raises:
            ConflictError: Se l'aggregato non è in bozza
            QuotationValidationError: Con tutti gli errori per campo; nessuna
                modifica di stato in caso di errore
        """
        target_status = QuotationStatus(target_status)
        if target_status not in (QuotationStatus.DRAFT, QuotationStatus.SENT):
            raise ConflictError(f"No se puede finalizar en estado '{target_status.value}'")
        self._ensure_editable()

        errors = self.validate(target_status)
        if errors:
            logger.info("Finalize rifiutato (%s): %s", target_status.value, [e.field for e in errors])
            raise QuotationValidationError(errors)

        if target_status != self._status:
            self._status = target_status
            self._recompute()
        return self._snapshot

    def assign_number(self, quotation_number: str) -> QuotationSnapshot:
        """
        Assegna il numero preventivo.

        Idempotente se richiamato con lo stesso numero.

        Raises:
            ConflictError: Se è già stato assegnato un numero diverso
        """
        if self._quotation_number is not None:
            if self._quotation_number != quotation_number:
                raise ConflictError(
                    f"La cotización ya tiene el número {self._quotation_number}"
                )
            return self._snapshot
        self._quotation_number = quotation_number
        self._recompute()
        return self._snapshot

    # ------------------------------------------------------------
    # Richieste esterne (AI, voce)
    # ------------------------------------------------------------

    def begin_external_request(self, item_id: uuid.UUID, field: str = "description") -> uuid.UUID:
        """
        Registra una richiesta il cui risultato andrà in `field` della riga.

        Returns:
            Token da usare per complete/cancel
        """
        self._ensure_editable()
        if field not in TEXT_TARGET_FIELDS:
            raise QuotationValidationError([FieldError(field, "Campo no admitido")])
        self._store.get(item_id)
        request = ExternalRequest(item_id, field)
        self._requests[request.token] = request
        return request.token

    def cancel_external_request(self, token: uuid.UUID) -> None:
        request = self._requests.pop(token, None)
        if request is not None:
            request.cancelled = True

    def complete_external_request(self, token: uuid.UUID, text: str) -> bool:
        """
        Applica il risultato di una richiesta esterna.

        Il risultato viene scartato se la richiesta è stata annullata, se
        la riga non esiste più, se l'editor è chiuso o congelato.

        Returns:
            True se il testo è stato applicato
        """
        request = self._requests.pop(token, None)
        if request is None or request.cancelled or self._closed or self.is_frozen:
            logger.debug("Risultato esterno scartato (token %s)", token)
            return False
        if request.item_id not in self._store:
            logger.debug("Risultato esterno scartato: riga %s rimossa", request.item_id)
            return False
        self._store.update_item(request.item_id, {request.field: text})
        return True

    async def prefill_text(
        self,
        item_id: uuid.UUID,
        producer: Callable[[str], Awaitable[str]],
        prompt: str,
        field: str = "description",
    ) -> bool:
        """
        Richiede un testo a un servizio esterno e lo applica alla riga.

        Un ExternalServiceError non interrompe il flusso: la riga resta
        invariata e la funzione restituisce False.
        """
        token = self.begin_external_request(item_id, field)
        try:
            text = await producer(prompt)
        except ExternalServiceError as e:
            logger.warning("Servizio esterno non disponibile, riga %s invariata: %s", item_id, e.detail)
            self.cancel_external_request(token)
            return False
        return self.complete_external_request(token, text)

    def close(self) -> None:
        """Chiude la sessione: annulla richieste e osservatori."""
        self._closed = True
        for request in self._requests.values():
            request.cancelled = True
        self._requests.clear()
        self._listeners.clear()


def editor_from_payload(
    payload: Mapping[str, Any],
    *,
    base: Optional[QuotationSnapshot] = None,
) -> QuotationEditor:
    """
    Crea un editor da un payload API (già validato da Pydantic).

    Se `base` è presente i campi assenti dal payload restano quelli del
    preventivo esistente; `items`, se presente, sostituisce tutte le righe.

    Raises:
        ConflictError: Se `base` non è in bozza
        BusinessValidationError: Righe non valide
    """
    editor = QuotationEditor.from_snapshot(base) if base is not None else QuotationEditor(
        issue_date=payload.get("issue_date"),
        valid_until=payload.get("valid_until"),
    )
    if base is not None:
        editor._ensure_editable()

    header = {k: payload[k] for k in HEADER_FIELDS if k in payload}
    if base is None:
        header.pop("issue_date", None)
        header.pop("valid_until", None)
    if header.get("issue_date") is None:
        header.pop("issue_date", None)
    if header:
        editor.set_header(**header)
    if payload.get("customer") is not None:
        editor.set_customer(CustomerInfo.model_validate(payload["customer"]))
    if payload.get("company") is not None:
        editor.set_company(CompanySnapshot.model_validate(payload["company"]))
    if payload.get("template_id") is not None:
        editor.set_template(TemplateId(payload["template_id"]))
    if payload.get("tax") is not None:
        editor.set_tax(TaxSelection.model_validate(payload["tax"]))
    if payload.get("items") is not None:
        editor.replace_items([dict(item) for item in payload["items"]])
    return editor


__all__ = [
    "QuotationEditor",
    "ExternalRequest",
    "build_snapshot",
    "recompute_snapshot",
    "default_valid_until",
    "editor_from_payload",
]
