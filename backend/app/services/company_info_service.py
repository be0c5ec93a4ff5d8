"""
Service Layer per i profili aziendali
Progetto: Gestionale Preventivi (Quotation Manager)

Al massimo un profilo di default per utente: impostarne uno come default
azzera il flag sugli altri nella stessa transazione.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.models import CompanyInfo
from app.schemas.company_info import CompanyInfoCreate, CompanyInfoUpdate
from app.schemas.quotation import CompanySnapshot

logger = logging.getLogger(__name__)


class CompanyInfoService:
    """Service per la gestione dei profili aziendali dell'utente."""

    async def get_all(self, db: AsyncSession, user_id: uuid.UUID) -> list[CompanyInfo]:
        result = await db.execute(
            select(CompanyInfo)
            .where(CompanyInfo.user_id == user_id)
            .order_by(CompanyInfo.is_default.desc(), CompanyInfo.name.asc())
        )
        return list(result.scalars().all())

    async def get_by_id(
        self, db: AsyncSession, user_id: uuid.UUID, company_id: uuid.UUID
    ) -> CompanyInfo:
        result = await db.execute(
            select(CompanyInfo).where(
                CompanyInfo.id == company_id, CompanyInfo.user_id == user_id
            )
        )
        company = result.scalar_one_or_none()
        if company is None:
            raise NotFoundError(f"Información de empresa {company_id} no encontrada")
        return company

    async def get_default_snapshot(
        self, db: AsyncSession, user_id: uuid.UUID
    ) -> Optional[CompanySnapshot]:
        """
        Copia del profilo di default, da usare nei nuovi preventivi.

        Returns:
            CompanySnapshot o None se l'utente non ha un profilo di default
        """
        result = await db.execute(
            select(CompanyInfo).where(
                CompanyInfo.user_id == user_id, CompanyInfo.is_default.is_(True)
            )
        )
        company = result.scalar_one_or_none()
        if company is None:
            logger.info("Nessun profilo aziendale di default per l'utente %s", user_id)
            return None
        return CompanySnapshot.model_validate(company)

    async def _clear_default(self, db: AsyncSession, user_id: uuid.UUID) -> None:
        await db.execute(
            update(CompanyInfo)
            .where(CompanyInfo.user_id == user_id, CompanyInfo.is_default.is_(True))
            .values(is_default=False)
        )

    async def create(
        self, db: AsyncSession, user_id: uuid.UUID, data: CompanyInfoCreate
    ) -> CompanyInfo:
        if data.is_default:
            await self._clear_default(db, user_id)
        company = CompanyInfo(user_id=user_id, **data.model_dump())
        db.add(company)
        await db.flush()
        await db.refresh(company)
        logger.info("Creato profilo aziendale %s (default=%s)", company.id, company.is_default)
        return company

    async def update(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        company_id: uuid.UUID,
        data: CompanyInfoUpdate,
    ) -> CompanyInfo:
        company = await self.get_by_id(db, user_id, company_id)
        values = data.model_dump(exclude_unset=True)
        if values.get("is_default"):
            await self._clear_default(db, user_id)
        for field, value in values.items():
            setattr(company, field, value)
        await db.flush()
        await db.refresh(company)
        logger.info("Aggiornato profilo aziendale %s", company_id)
        return company

    async def delete(
        self, db: AsyncSession, user_id: uuid.UUID, company_id: uuid.UUID
    ) -> None:
        company = await self.get_by_id(db, user_id, company_id)
        await db.delete(company)
        await db.flush()
        logger.info("Eliminato profilo aziendale %s", company_id)


__all__ = ["CompanyInfoService"]
