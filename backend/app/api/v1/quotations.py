"""
Router FastAPI per i Preventivi
Progetto: Gestionale Preventivi (Quotation Manager)

Definisce gli endpoint per numerazione, CRUD, cambi di stato e render
(anteprima, stampa, PDF) dei preventivi.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import HTMLResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.company_info import get_company_info_service
from app.core.database import get_db
from app.core.deps import CurrentUser, QuotationRepo
from app.models.user import User
from app.schemas.quotation import (
    CompanySnapshot,
    QuotationCreate,
    QuotationList,
    QuotationNumberResponse,
    QuotationRead,
    QuotationStatusUpdate,
    QuotationSummary,
    QuotationUpdate,
    TemplateId,
)
from app.services.company_info_service import CompanyInfoService
from app.services.quotation_service import QuotationService, get_quotation_service
from app.services.render_service import QuotationPreview, RenderTarget

logger = logging.getLogger(__name__)

# Router con prefix e tag
router = APIRouter(
    prefix="/quotations",
    tags=["Preventivi"],
)

# Router separato per la numerazione (/api/v1/generate-quotation-number)
numbering_router = APIRouter(tags=["Preventivi"])


# -------------------------------------------------------------------
# Dependency Injection
# -------------------------------------------------------------------

def get_service(repository: QuotationRepo) -> QuotationService:
    """Service legato al repository della richiesta."""
    return get_quotation_service(repository)


async def _default_company(
    user: User,
    payload_company: Optional[CompanySnapshot],
    db: AsyncSession,
    company_service: CompanyInfoService,
) -> Optional[CompanySnapshot]:
    if payload_company is not None:
        return None
    return await company_service.get_default_snapshot(db, user.id)


# -------------------------------------------------------------------
# Numerazione
# -------------------------------------------------------------------

@numbering_router.get(
    "/generate-quotation-number",
    name="preventivi_numero",
    summary="Genera numero preventivo",
    description=(
        "Restituisce il prossimo numero COT-YYYY-NNNN. Con draft_key la "
        "chiamata è idempotente: la stessa bozza riceve sempre lo stesso numero."
    ),
    response_model=QuotationNumberResponse,
)
async def generate_quotation_number(
    current_user: CurrentUser,
    repository: QuotationRepo,
    draft_key: Optional[str] = Query(None, min_length=8, max_length=64, description="Chiave della bozza"),
    service: QuotationService = Depends(get_service),
) -> QuotationNumberResponse:
    number = await service.generate_number(current_user.id, draft_key)
    await repository.commit()
    return QuotationNumberResponse(quotation_number=number, draft_key=draft_key)


# -------------------------------------------------------------------
# CRUD
# -------------------------------------------------------------------

@router.get(
    "/",
    name="preventivi_lista",
    summary="Lista preventivi",
    description="Preventivi dell'utente, dal più recente.",
    response_model=QuotationList,
)
async def list_quotations(
    current_user: CurrentUser,
    service: QuotationService = Depends(get_service),
) -> QuotationList:
    quotations = await service.list_by_user(current_user.id)
    return QuotationList(
        items=[QuotationSummary.from_read(q) for q in quotations],
        total=len(quotations),
    )


@router.post(
    "/",
    name="preventivi_crea",
    summary="Crea preventivo",
    description=(
        "Valida e salva un preventivo. Se manca il blocco company viene "
        "copiato il profilo aziendale di default. Idempotente per draft_key."
    ),
    response_model=QuotationRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_quotation(
    data: QuotationCreate,
    current_user: CurrentUser,
    repository: QuotationRepo,
    db: AsyncSession = Depends(get_db),
    service: QuotationService = Depends(get_service),
    company_service: CompanyInfoService = Depends(get_company_info_service),
) -> QuotationRead:
    default_company = await _default_company(current_user, data.company, db, company_service)
    quotation = await service.create(current_user.id, data, default_company)
    await repository.commit()
    return quotation


@router.post(
    "/render/preview",
    name="preventivi_anteprima_bozza",
    summary="Anteprima bozza non salvata",
    description="Renderizza un preventivo non ancora salvato, senza validazione bloccante.",
    response_model=QuotationPreview,
)
async def preview_unsaved_quotation(
    data: QuotationCreate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
    company_service: CompanyInfoService = Depends(get_company_info_service),
) -> QuotationPreview:
    default_company = await _default_company(current_user, data.company, db, company_service)
    rendered = QuotationService.preview_draft(data, default_company)
    return QuotationPreview.from_rendered(rendered)


@router.get(
    "/{quotation_id}",
    name="preventivi_dettaglio",
    summary="Dettaglio preventivo",
    response_model=QuotationRead,
)
async def get_quotation(
    quotation_id: uuid.UUID,
    current_user: CurrentUser,
    service: QuotationService = Depends(get_service),
) -> QuotationRead:
    return await service.get_by_id(current_user.id, quotation_id)


@router.put(
    "/{quotation_id}",
    name="preventivi_aggiorna",
    summary="Aggiorna preventivo",
    description="Solo i preventivi in bozza sono modificabili (409 altrimenti).",
    response_model=QuotationRead,
)
async def update_quotation(
    quotation_id: uuid.UUID,
    data: QuotationUpdate,
    current_user: CurrentUser,
    repository: QuotationRepo,
    service: QuotationService = Depends(get_service),
) -> QuotationRead:
    quotation = await service.update(current_user.id, quotation_id, data)
    await repository.commit()
    return quotation


@router.delete(
    "/{quotation_id}",
    name="preventivi_elimina",
    summary="Elimina preventivo",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_quotation(
    quotation_id: uuid.UUID,
    current_user: CurrentUser,
    repository: QuotationRepo,
    service: QuotationService = Depends(get_service),
) -> None:
    await service.delete(current_user.id, quotation_id)
    await repository.commit()


@router.post(
    "/{quotation_id}/status",
    name="preventivi_stato",
    summary="Cambia stato preventivo",
    description="draft → sent → accepted | rejected.",
    response_model=QuotationRead,
)
async def change_quotation_status(
    quotation_id: uuid.UUID,
    data: QuotationStatusUpdate,
    current_user: CurrentUser,
    repository: QuotationRepo,
    service: QuotationService = Depends(get_service),
) -> QuotationRead:
    quotation = await service.change_status(current_user.id, quotation_id, data.status)
    await repository.commit()
    return quotation


# -------------------------------------------------------------------
# Render
# -------------------------------------------------------------------

@router.get(
    "/{quotation_id}/preview",
    name="preventivi_anteprima",
    summary="Anteprima preventivo",
    response_model=QuotationPreview,
)
async def preview_quotation(
    quotation_id: uuid.UUID,
    current_user: CurrentUser,
    template_id: Optional[TemplateId] = Query(None, description="Template alternativo"),
    service: QuotationService = Depends(get_service),
) -> QuotationPreview:
    rendered = await service.render(current_user.id, quotation_id, RenderTarget.PREVIEW, template_id)
    return QuotationPreview.from_rendered(rendered)


@router.get(
    "/{quotation_id}/print",
    name="preventivi_stampa",
    summary="Pagina di stampa",
    description="Documento HTML autonomo che avvia la stampa all'apertura.",
    response_class=HTMLResponse,
)
async def print_quotation(
    quotation_id: uuid.UUID,
    current_user: CurrentUser,
    template_id: Optional[TemplateId] = Query(None, description="Template alternativo"),
    service: QuotationService = Depends(get_service),
) -> HTMLResponse:
    rendered = await service.render(current_user.id, quotation_id, RenderTarget.PRINT, template_id)
    return HTMLResponse(content=rendered.content)


@router.get(
    "/{quotation_id}/pdf",
    name="preventivi_pdf",
    summary="Scarica PDF",
    response_class=Response,
    responses={200: {"content": {"application/pdf": {}}}},
)
async def download_quotation_pdf(
    quotation_id: uuid.UUID,
    current_user: CurrentUser,
    template_id: Optional[TemplateId] = Query(None, description="Template alternativo"),
    service: QuotationService = Depends(get_service),
) -> Response:
    rendered = await service.render(current_user.id, quotation_id, RenderTarget.PDF, template_id)
    return Response(
        content=rendered.content,
        media_type=rendered.media_type,
        headers={"Content-Disposition": f'attachment; filename="{rendered.filename}"'},
    )


__all__ = ["router", "numbering_router"]
