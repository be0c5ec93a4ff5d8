"""
Router FastAPI per la rubrica clienti
Progetto: Gestionale Preventivi (Quotation Manager)
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.deps import CurrentUser
from app.schemas.customer import (
    CustomerCreate,
    CustomerList,
    CustomerRead,
    CustomerUpdate,
)
from app.services.customer_service import CustomerService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/customers",
    tags=["Clienti"],
)


# -------------------------------------------------------------------
# Dependency Injection
# -------------------------------------------------------------------

def get_customer_service() -> CustomerService:
    """Dependency per ottenere un'istanza del CustomerService."""
    return CustomerService()


# -------------------------------------------------------------------
# Endpoints
# -------------------------------------------------------------------

@router.get(
    "/",
    name="clienti_lista",
    summary="Lista clienti",
    description="Clienti dell'utente con eventuale filtro di ricerca.",
    response_model=CustomerList,
)
async def get_customers(
    current_user: CurrentUser,
    search: Optional[str] = Query(None, description="Termine di ricerca"),
    db: AsyncSession = Depends(get_db),
    service: CustomerService = Depends(get_customer_service),
) -> CustomerList:
    customers, total = await service.get_all(db, current_user.id, search)
    return CustomerList(
        items=[CustomerRead.model_validate(c) for c in customers],
        total=total,
    )


@router.get(
    "/{customer_id}",
    name="clienti_dettaglio",
    summary="Dettaglio cliente",
    response_model=CustomerRead,
)
async def get_customer(
    customer_id: uuid.UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
    service: CustomerService = Depends(get_customer_service),
) -> CustomerRead:
    customer = await service.get_by_id(db, current_user.id, customer_id)
    return CustomerRead.model_validate(customer)


@router.post(
    "/",
    name="clienti_crea",
    summary="Crea cliente",
    response_model=CustomerRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_customer(
    data: CustomerCreate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
    service: CustomerService = Depends(get_customer_service),
) -> CustomerRead:
    customer = await service.create(db, current_user.id, data)
    await db.commit()
    return CustomerRead.model_validate(customer)


@router.put(
    "/{customer_id}",
    name="clienti_aggiorna",
    summary="Aggiorna cliente",
    response_model=CustomerRead,
)
async def update_customer(
    customer_id: uuid.UUID,
    data: CustomerUpdate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
    service: CustomerService = Depends(get_customer_service),
) -> CustomerRead:
    customer = await service.update(db, current_user.id, customer_id, data)
    await db.commit()
    return CustomerRead.model_validate(customer)


@router.delete(
    "/{customer_id}",
    name="clienti_elimina",
    summary="Elimina cliente",
    description="I preventivi già emessi conservano la propria copia dei dati.",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_customer(
    customer_id: uuid.UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
    service: CustomerService = Depends(get_customer_service),
) -> None:
    await service.delete(db, current_user.id, customer_id)
    await db.commit()
