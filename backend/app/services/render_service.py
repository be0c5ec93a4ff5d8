"""
Render dei preventivi: anteprima, stampa, PDF
Progetto: Gestionale Preventivi (Quotation Manager)

Un solo punto di ingresso, render_quotation(snapshot, target), con tre
backend. Tutti partono dallo stesso QuotationDocument costruito dai
totali già calcolati nello snapshot: nessun backend ricalcola
subtotale, imposta o totale.

Se lo snapshot risulta incoerente (line_total ≠ quantità × prezzo, o
totali non corrispondenti) viene considerato non affidabile, ricalcolato
da zero e registrato nel log.
"""

import logging
import os
from enum import Enum
from functools import lru_cache
from typing import Callable, Optional, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape
from pydantic import BaseModel, ConfigDict

from app.core.exceptions import ExternalServiceError
from app.schemas.quotation import (
    QuotationSnapshot,
    QuotationStatus,
    TaxMode,
    TemplateId,
)
from app.services import tax_mode
from app.services.quotation_editor import recompute_snapshot
from app.services.totals import (
    find_inconsistent_items,
    format_currency,
    format_long_date,
    format_rate,
    totals_match,
)

logger = logging.getLogger(__name__)

# Path alle cartelle templates
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
TEMPLATES_DIR = os.path.join(BASE_DIR, "templates", "quotation")

DRAFT_NUMBER_LABEL = "BORRADOR"


def _get_weasyprint():
    """Import lazy di weasyprint (richiede le librerie native Pango/Cairo)."""
    try:
        from weasyprint import HTML
        return HTML
    except OSError as e:
        logger.error("WeasyPrint non disponibile: %s", e)
        raise ExternalServiceError(
            "La generación de PDF no está disponible en este servidor"
        ) from e


class RenderTarget(str, Enum):
    """Superfici di output."""
    PREVIEW = "preview"
    PRINT = "print"
    PDF = "pdf"


# -------------------------------------------------------------------
# Modello documento condiviso
# -------------------------------------------------------------------

class DocumentParty(BaseModel):
    """Blocco "De:" / "Para:"."""

    model_config = ConfigDict(frozen=True)

    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    website: Optional[str] = None
    representative: Optional[str] = None


class DocumentRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    position: int
    name: str
    description: Optional[str] = None
    image_ref: Optional[str] = None
    quantity: int
    unit_price: str
    line_total: str


class QuotationDocument(BaseModel):
    """
    Vista formattata del preventivo, identica per tutti i backend.

    Gli importi sono già stringhe in valuta (es-MX).
    """

    model_config = ConfigDict(frozen=True)

    version: int
    quotation_number: str
    template_id: TemplateId
    status: QuotationStatus
    issue_date: str
    valid_until: Optional[str] = None
    company: Optional[DocumentParty] = None
    customer: DocumentParty
    project_name: Optional[str] = None
    rows: tuple[DocumentRow, ...]
    subtotal: str
    show_tax: bool
    tax_line_label: str
    tax_amount: str
    total: str
    notes: Optional[str] = None
    delivery_terms: Optional[str] = None
    footer_contact: Optional[str] = None
    filename: str


class RenderedQuotation(BaseModel):
    """Output di un render adapter."""

    target: RenderTarget
    media_type: str
    content: Union[bytes, str]
    filename: Optional[str] = None
    document: QuotationDocument


class QuotationPreview(BaseModel):
    """Risposta JSON dell'anteprima: documento formattato e frammento HTML."""

    document: QuotationDocument
    html: str

    @classmethod
    def from_rendered(cls, rendered: RenderedQuotation) -> "QuotationPreview":
        return cls(document=rendered.document, html=rendered.content)


# -------------------------------------------------------------------
# Costruzione del documento
# -------------------------------------------------------------------

def trusted_snapshot(snapshot: QuotationSnapshot) -> QuotationSnapshot:
    """Restituisce lo snapshot se coerente, altrimenti una copia ricalcolata."""
    consistent = (
        snapshot.tax_rate == tax_mode.effective_rate(snapshot.tax)
        and totals_match(snapshot, snapshot.tax_rate)
    )
    if consistent:
        return snapshot
    bad = find_inconsistent_items(snapshot.items)
    logger.warning(
        "Snapshot incoerente (preventivo %s, righe errate: %s): ricalcolo prima del render",
        snapshot.quotation_number, [str(i.id) for i in bad],
    )
    return recompute_snapshot(snapshot)


def pdf_filename(quotation_number: Optional[str]) -> str:
    return f"cotizacion_{quotation_number or DRAFT_NUMBER_LABEL.lower()}.pdf"


def build_document(
    snapshot: QuotationSnapshot,
    template_id: Optional[TemplateId] = None,
) -> QuotationDocument:
    """Formatta lo snapshot; usa i totali così come sono."""
    company = snapshot.company
    contact = None
    if company is not None:
        contact = " | ".join(part for part in (company.email, company.phone) if part) or None

    return QuotationDocument(
        version=snapshot.version,
        quotation_number=snapshot.quotation_number or DRAFT_NUMBER_LABEL,
        template_id=TemplateId(template_id) if template_id else snapshot.template_id,
        status=snapshot.status,
        issue_date=format_long_date(snapshot.issue_date),
        valid_until=format_long_date(snapshot.valid_until) if snapshot.valid_until else None,
        company=DocumentParty(**company.model_dump()) if company is not None else None,
        customer=DocumentParty(**snapshot.customer.model_dump()),
        project_name=snapshot.project_name,
        rows=tuple(
            DocumentRow(
                position=index + 1,
                name=item.name,
                description=item.description,
                image_ref=item.image_ref,
                quantity=item.quantity,
                unit_price=format_currency(item.unit_price),
                line_total=format_currency(item.line_total),
            )
            for index, item in enumerate(snapshot.items)
        ),
        subtotal=format_currency(snapshot.subtotal),
        show_tax=snapshot.tax.mode != TaxMode.NONE,
        tax_line_label=f"{snapshot.tax_label} ({format_rate(snapshot.tax_rate)}%)",
        tax_amount=format_currency(snapshot.tax_amount),
        total=format_currency(snapshot.total),
        notes=snapshot.notes,
        delivery_terms=snapshot.delivery_terms,
        footer_contact=contact,
        filename=pdf_filename(snapshot.quotation_number),
    )


# -------------------------------------------------------------------
# Template Jinja2
# -------------------------------------------------------------------

@lru_cache()
def _environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(TEMPLATES_DIR),
        autoescape=select_autoescape(["html"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )


@lru_cache()
def _stylesheet(template_id: TemplateId, for_pdf: bool) -> str:
    names = ["base.css", f"{template_id.value}.css"]
    if for_pdf:
        names.append("pdf_page.css")
    chunks = []
    for name in names:
        with open(os.path.join(TEMPLATES_DIR, name), encoding="utf-8") as fh:
            chunks.append(fh.read())
    return "\n".join(chunks)


def render_html(document: QuotationDocument, mode: str) -> str:
    """
    Renderizza il template del documento.

    Args:
        document: Documento formattato
        mode: "fragment" (anteprima), "print" (pagina di stampa) o "pdf"
    """
    template = _environment().get_template(f"{document.template_id.value}.html")
    return template.render(
        doc=document,
        mode=mode,
        css=_stylesheet(document.template_id, mode == "pdf"),
    )


# -------------------------------------------------------------------
# Backend
# -------------------------------------------------------------------

def _render_preview(document: QuotationDocument) -> RenderedQuotation:
    return RenderedQuotation(
        target=RenderTarget.PREVIEW,
        media_type="text/html",
        content=render_html(document, "fragment"),
        document=document,
    )


def _render_print(document: QuotationDocument) -> RenderedQuotation:
    # Pagina autonoma: CSS inline e script che stampa e chiude la finestra
    return RenderedQuotation(
        target=RenderTarget.PRINT,
        media_type="text/html",
        content=render_html(document, "print"),
        document=document,
    )


def _render_pdf(document: QuotationDocument) -> RenderedQuotation:
    HTML = _get_weasyprint()
    html_out = render_html(document, "pdf")
    pdf_bytes = HTML(string=html_out, base_url=TEMPLATES_DIR).write_pdf()
    logger.info(
        "Generato PDF %s (%s byte, %s righe)", document.filename, len(pdf_bytes), len(document.rows)
    )
    return RenderedQuotation(
        target=RenderTarget.PDF,
        media_type="application/pdf",
        content=pdf_bytes,
        filename=document.filename,
        document=document,
    )


_RENDERERS: dict[RenderTarget, Callable[[QuotationDocument], RenderedQuotation]] = {
    RenderTarget.PREVIEW: _render_preview,
    RenderTarget.PRINT: _render_print,
    RenderTarget.PDF: _render_pdf,
}


def render_quotation(
    snapshot: QuotationSnapshot,
    target: RenderTarget,
    template_id: Optional[TemplateId] = None,
) -> RenderedQuotation:
    """
    Renderizza uno snapshot sul target richiesto.

    Args:
        snapshot: Snapshot immutabile del preventivo
        target: preview | print | pdf
        template_id: Template alternativo (default: quello dello snapshot)

    Returns:
        RenderedQuotation con contenuto, media type e documento condiviso
    """
    document = build_document(trusted_snapshot(snapshot), template_id)
    return _RENDERERS[RenderTarget(target)](document)


__all__ = [
    "RenderTarget",
    "DocumentParty",
    "DocumentRow",
    "QuotationDocument",
    "RenderedQuotation",
    "QuotationPreview",
    "trusted_snapshot",
    "build_document",
    "render_html",
    "render_quotation",
    "pdf_filename",
]
