"""
Router FastAPI per i profili aziendali
Progetto: Gestionale Preventivi (Quotation Manager)

I dati del profilo di default vengono copiati nei nuovi preventivi.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.deps import CurrentUser
from app.schemas.company_info import (
    CompanyInfoCreate,
    CompanyInfoRead,
    CompanyInfoUpdate,
)
from app.services.company_info_service import CompanyInfoService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/company-info",
    tags=["Azienda"],
)


def get_company_info_service() -> CompanyInfoService:
    """Dependency per ottenere un'istanza del CompanyInfoService."""
    return CompanyInfoService()


@router.get(
    "/",
    name="azienda_lista",
    summary="Lista profili aziendali",
    description="Profili aziendali dell'utente, il default per primo.",
    response_model=list[CompanyInfoRead],
)
async def list_company_info(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
    service: CompanyInfoService = Depends(get_company_info_service),
) -> list[CompanyInfoRead]:
    companies = await service.get_all(db, current_user.id)
    return [CompanyInfoRead.model_validate(c) for c in companies]


@router.get(
    "/{company_id}",
    name="azienda_dettaglio",
    summary="Dettaglio profilo aziendale",
    response_model=CompanyInfoRead,
)
async def get_company_info(
    company_id: uuid.UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
    service: CompanyInfoService = Depends(get_company_info_service),
) -> CompanyInfoRead:
    company = await service.get_by_id(db, current_user.id, company_id)
    return CompanyInfoRead.model_validate(company)


@router.post(
    "/",
    name="azienda_crea",
    summary="Crea profilo aziendale",
    description="Con is_default=true il profilo sostituisce il default precedente.",
    response_model=CompanyInfoRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_company_info(
    data: CompanyInfoCreate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
    service: CompanyInfoService = Depends(get_company_info_service),
) -> CompanyInfoRead:
    company = await service.create(db, current_user.id, data)
    await db.commit()
    return CompanyInfoRead.model_validate(company)


@router.put(
    "/{company_id}",
    name="azienda_aggiorna",
    summary="Aggiorna profilo aziendale",
    response_model=CompanyInfoRead,
)
async def update_company_info(
    company_id: uuid.UUID,
    data: CompanyInfoUpdate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
    service: CompanyInfoService = Depends(get_company_info_service),
) -> CompanyInfoRead:
    company = await service.update(db, current_user.id, company_id, data)
    await db.commit()
    return CompanyInfoRead.model_validate(company)


@router.delete(
    "/{company_id}",
    name="azienda_elimina",
    summary="Elimina profilo aziendale",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_company_info(
    company_id: uuid.UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
    service: CompanyInfoService = Depends(get_company_info_service),
) -> None:
    await service.delete(db, current_user.id, company_id)
    await db.commit()
