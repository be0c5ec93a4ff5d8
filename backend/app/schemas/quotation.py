"""
Schemas Pydantic per i Preventivi (Cotizaciones)
Progetto: Gestionale Preventivi (Quotation Manager)

Contiene:
- Enums: TaxMode, TemplateId, QuotationStatus
- Value types immutabili: LineItem, TaxSelection, CustomerInfo,
  CompanySnapshot, QuotationSnapshot
- Schemas API: QuotationCreate, QuotationUpdate, QuotationRead, ...
"""

import uuid
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from app.core.exceptions import BusinessValidationError


STANDARD_TAX_RATE = Decimal("16")
STANDARD_TAX_LABEL = "IVA"

# Limiti delle colonne: Integer per la quantità, NUMERIC(10,2) per gli importi
MAX_QUANTITY = 1_000_000
MAX_AMOUNT = Decimal("99999999.99")


def quantize_rate(rate: Decimal) -> Decimal:
    """Aliquota a 2 decimali (ROUND_HALF_UP), la stessa precisione di quotations.tax_rate."""
    return Decimal(rate).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


# -------------------------------------------------------------------
# Enum
# -------------------------------------------------------------------

class TaxMode(str, Enum):
    """Modalità di imposta applicata al preventivo."""
    STANDARD = "standard"  # IVA 16%
    CUSTOM = "custom"      # Imposta con nome e aliquota personalizzati
    NONE = "none"          # Nessuna imposta


class TemplateId(str, Enum):
    """Template grafici disponibili."""
    PROFESSIONAL = "professional"
    MINIMALIST = "minimalist"
    CREATIVE = "creative"
    CORPORATE = "corporate"


class QuotationStatus(str, Enum):
    """Stato del ciclo di vita del preventivo."""
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


# -------------------------------------------------------------------
# Matrice delle transizioni di stato valide
# -------------------------------------------------------------------

# La validazione delle transizioni avviene nel service layer (quotation_service.py)
VALID_TRANSITIONS: dict[QuotationStatus, list[QuotationStatus]] = {
    QuotationStatus.DRAFT: [QuotationStatus.SENT],
    QuotationStatus.SENT: [QuotationStatus.ACCEPTED, QuotationStatus.REJECTED],
    QuotationStatus.ACCEPTED: [],  # Stato finale
    QuotationStatus.REJECTED: [],  # Stato finale
}


# -------------------------------------------------------------------
# Value types (immutabili)
# -------------------------------------------------------------------

class LineItem(BaseModel):
    """
    Riga del preventivo.

    `line_total` è derivato (quantity × unit_price) e viene calcolato
    dal LineItemStore; non è mai impostato dall'utente. Il tipo non lo
    ricalcola da solo perché uno snapshot letto dal database deve poter
    essere verificato (vedi totals.find_inconsistent_items).
    """

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, description="Chiave stabile della riga")
    name: str = Field("", max_length=255, description="Nome prodotto/servizio")
    description: Optional[str] = Field(None, description="Descrizione")
    image_ref: Optional[str] = Field(None, description="URL o data URI dell'immagine")
    quantity: int = Field(1, ge=1, description="Quantità (intero ≥ 1)")
    unit_price: Decimal = Field(Decimal("0"), ge=0, description="Prezzo unitario")
    line_total: Decimal = Field(Decimal("0"), description="Totale riga (derivato)")


class TaxSelection(BaseModel):
    """
    Selezione dell'imposta: esattamente una modalità attiva.

    Nome e aliquota personalizzati vengono ricordati anche quando la
    modalità attiva non è CUSTOM, così da ripristinarli alla riattivazione.
    """

    model_config = ConfigDict(frozen=True)

    mode: TaxMode = Field(TaxMode.STANDARD, description="Modalità attiva")
    custom_name: str = Field("", max_length=50, description="Nome imposta personalizzata")
    custom_rate: Decimal = Field(Decimal("0"), ge=0, le=100, description="Aliquota personalizzata (%)")

    @field_validator("custom_rate")
    @classmethod
    def round_custom_rate(cls, v: Decimal) -> Decimal:
        return quantize_rate(v)

    @classmethod
    def standard(cls) -> "TaxSelection":
        return cls(mode=TaxMode.STANDARD)

    @classmethod
    def custom(cls, name: str, rate: Decimal) -> "TaxSelection":
        return cls(mode=TaxMode.CUSTOM, custom_name=name, custom_rate=rate)

    @classmethod
    def none(cls) -> "TaxSelection":
        return cls(mode=TaxMode.NONE)


class CustomerInfo(BaseModel):
    """
    Dati del cliente copiati nel preventivo.

    L'email non è validata qui: un editor in bozza può contenere un valore
    parziale; il formato è controllato in fase di finalize.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field("", max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None)

    @field_validator("email", "phone", "address", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class CompanySnapshot(BaseModel):
    """
    Copia dei dati aziendali al momento della creazione/modifica.

    Unico tipo consumato da tutti i render adapter. Non è un riferimento
    al profilo aziendale: modifiche successive al profilo non alterano
    i preventivi già creati.
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    name: str = Field(..., max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None
    website: Optional[str] = Field(None, max_length=255)
    representative: Optional[str] = Field(None, max_length=255)


class QuotationSnapshot(BaseModel):
    """
    Copia immutabile e versionata del preventivo.

    Contiene i totali già calcolati: i render adapter li usano così come
    sono, senza ricalcolarli.
    """

    model_config = ConfigDict(frozen=True)

    version: int = Field(0, ge=0, description="Versione dello snapshot nella sessione di editing")
    quotation_number: Optional[str] = Field(None, description="Numero COT-YYYY-NNNN")
    issue_date: date
    valid_until: Optional[date] = None
    customer: CustomerInfo = Field(default_factory=CustomerInfo)
    project_name: Optional[str] = None
    items: tuple[LineItem, ...] = ()
    tax: TaxSelection = Field(default_factory=TaxSelection.standard)
    tax_rate: Decimal = Field(Decimal("0"), description="Aliquota effettiva (%)")
    tax_label: str = STANDARD_TAX_LABEL
    subtotal: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    notes: Optional[str] = None
    delivery_terms: Optional[str] = None
    template_id: TemplateId = TemplateId.PROFESSIONAL
    status: QuotationStatus = QuotationStatus.DRAFT
    company: Optional[CompanySnapshot] = None


# -------------------------------------------------------------------
# Schemas API - Input
# -------------------------------------------------------------------

class LineItemInput(BaseModel):
    """
    Riga inviata dal client.

    `line_total` non è accettato (extra="forbid"): è sempre calcolato
    lato server.
    """

    model_config = ConfigDict(extra="forbid")

    id: Optional[uuid.UUID] = Field(None, description="Chiave stabile (opzionale)")
    name: str = Field("", max_length=255)
    description: Optional[str] = None
    image_ref: Optional[str] = None
    quantity: int = Field(1, ge=1, le=MAX_QUANTITY)
    unit_price: Decimal = Field(Decimal("0"), ge=0, le=MAX_AMOUNT, decimal_places=2)


class QuotationBase(BaseModel):
    """Campi di intestazione comuni a create/update."""

    issue_date: Optional[date] = None
    valid_until: Optional[date] = None
    customer: Optional[CustomerInfo] = None
    project_name: Optional[str] = Field(None, max_length=255)
    tax: Optional[TaxSelection] = None
    notes: Optional[str] = None
    delivery_terms: Optional[str] = None
    template_id: Optional[TemplateId] = None
    company: Optional[CompanySnapshot] = None

    @model_validator(mode="after")
    def validate_dates(self):
        if self.issue_date and self.valid_until and self.valid_until < self.issue_date:
            raise BusinessValidationError(
                "La fecha de vigencia no puede ser anterior a la fecha de emisión"
            )
        return self


class QuotationCreate(QuotationBase):
    """
    Schema per la creazione di un preventivo.

    `draft_key` identifica la bozza lato client: una seconda richiesta
    con la stessa chiave restituisce il preventivo già creato invece di
    consumare un nuovo numero.
    """

    draft_key: Optional[str] = Field(None, min_length=8, max_length=64)
    items: list[LineItemInput] = Field(default_factory=list)
    target_status: Literal["draft", "sent"] = Field("draft", description="Stato dopo il salvataggio")


class QuotationUpdate(QuotationBase):
    """Aggiornamento parziale; se `items` è presente sostituisce tutte le righe."""

    items: Optional[list[LineItemInput]] = None


class QuotationStatusUpdate(BaseModel):
    """Richiesta di cambio stato."""

    status: QuotationStatus


# -------------------------------------------------------------------
# Schemas API - Output
# -------------------------------------------------------------------

class QuotationRead(QuotationSnapshot):
    """Preventivo persistito."""

    id: uuid.UUID
    user_id: uuid.UUID
    draft_key: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_snapshot(self) -> QuotationSnapshot:
        """Restituisce lo snapshot senza i metadati di persistenza."""
        return QuotationSnapshot.model_validate(
            self.model_dump(exclude={"id", "user_id", "draft_key", "created_at", "updated_at"})
        )


class QuotationSummary(BaseModel):
    """Riga della lista preventivi."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    quotation_number: Optional[str]
    issue_date: date
    customer_name: str
    project_name: Optional[str] = None
    total: Decimal
    status: QuotationStatus
    template_id: TemplateId

    @classmethod
    def from_read(cls, quotation: QuotationRead) -> "QuotationSummary":
        return cls(
            id=quotation.id,
            quotation_number=quotation.quotation_number,
            issue_date=quotation.issue_date,
            customer_name=quotation.customer.name,
            project_name=quotation.project_name,
            total=quotation.total,
            status=quotation.status,
            template_id=quotation.template_id,
        )


class QuotationList(BaseModel):
    """Lista preventivi dell'utente."""

    items: list[QuotationSummary]
    total: int

    @computed_field
    @property
    def total_amount(self) -> Decimal:
        """Somma dei totali dei preventivi in lista."""
        return sum((q.total for q in self.items), Decimal("0"))


class QuotationNumberResponse(BaseModel):
    """Numero preventivo generato dal server."""

    quotation_number: str
    draft_key: Optional[str] = None


__all__ = [
    "STANDARD_TAX_RATE",
    "STANDARD_TAX_LABEL",
    "MAX_QUANTITY",
    "MAX_AMOUNT",
    "quantize_rate",
    "TaxMode",
    "TemplateId",
    "QuotationStatus",
    "VALID_TRANSITIONS",
    "LineItem",
    "TaxSelection",
    "CustomerInfo",
    "CompanySnapshot",
    "QuotationSnapshot",
    "LineItemInput",
    "QuotationCreate",
    "QuotationUpdate",
    "QuotationStatusUpdate",
    "QuotationRead",
    "QuotationSummary",
    "QuotationList",
    "QuotationNumberResponse",
]
