"""
Service Layer per l'entità Customer
Progetto: Gestionale Preventivi (Quotation Manager)

CRUD della rubrica clienti, sempre filtrata per utente proprietario.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.models import Customer
from app.schemas.customer import CustomerCreate, CustomerUpdate

logger = logging.getLogger(__name__)


class CustomerService:
    """
    Service per la gestione dei clienti.

    Un cliente di un altro utente viene trattato come inesistente (404).
    """

    async def get_all(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        search: Optional[str] = None,
    ) -> tuple[list[Customer], int]:
        """
        Clienti dell'utente in ordine alfabetico.

        Args:
            db: Sessione database
            user_id: Utente proprietario
            search: Filtro opzionale su nome, email e telefono

        Returns:
            Tuple di (lista clienti, totale)
        """
        conditions = [Customer.user_id == user_id]
        if search:
            term = f"%{search}%"
            conditions.append(
                or_(
                    Customer.name.ilike(term),
                    Customer.email.ilike(term),
                    Customer.phone.ilike(term),
                )
            )

        result = await db.execute(
            select(Customer).where(*conditions).order_by(Customer.name.asc())
        )
        customers = list(result.scalars().all())

        count_result = await db.execute(
            select(func.count()).select_from(Customer).where(*conditions)
        )
        total = count_result.scalar() or 0

        logger.info("Recuperati %s clienti per l'utente %s", total, user_id)
        return customers, total

    async def get_by_id(
        self, db: AsyncSession, user_id: uuid.UUID, customer_id: uuid.UUID
    ) -> Customer:
        """
        Raises:
            NotFoundError: Se il cliente non esiste o è di un altro utente
        """
        result = await db.execute(
            select(Customer).where(Customer.id == customer_id, Customer.user_id == user_id)
        )
        customer = result.scalar_one_or_none()
        if customer is None:
            logger.warning("Cliente non trovato: %s", customer_id)
            raise NotFoundError(f"Cliente {customer_id} no encontrado")
        return customer

    async def create(
        self, db: AsyncSession, user_id: uuid.UUID, data: CustomerCreate
    ) -> Customer:
        customer = Customer(user_id=user_id, **data.model_dump())
        db.add(customer)
        await db.flush()
        await db.refresh(customer)
        logger.info("Creato cliente %s - %s", customer.id, customer.name)
        return customer

    async def update(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        customer_id: uuid.UUID,
        data: CustomerUpdate,
    ) -> Customer:
        customer = await self.get_by_id(db, user_id, customer_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(customer, field, value)
        await db.flush()
        await db.refresh(customer)
        logger.info("Aggiornato cliente %s", customer_id)
        return customer

    async def delete(
        self, db: AsyncSession, user_id: uuid.UUID, customer_id: uuid.UUID
    ) -> None:
        """I preventivi esistenti conservano la propria copia dei dati cliente."""
        customer = await self.get_by_id(db, user_id, customer_id)
        await db.delete(customer)
        await db.flush()
        logger.info("Eliminato cliente %s", customer_id)


__all__ = ["CustomerService"]
