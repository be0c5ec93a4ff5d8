"""
Pytest configuration and fixtures per i test del gestionale preventivi.

I test non usano un database reale: i service lavorano su
InMemoryQuotationRepository e le sessioni SQLAlchemy sono mock.
"""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.quotation_repository import InMemoryQuotationRepository
from app.schemas.quotation import CompanySnapshot, CustomerInfo
from app.services.quotation_service import QuotationService


# ============================================================
# Backend async
# ============================================================


@pytest.fixture
def anyio_backend():
    return "asyncio"


# ============================================================
# Fixtures per AsyncSession Mock
# ============================================================


@pytest.fixture
def mock_db():
    """Crea un mock di AsyncSession."""
    db = AsyncMock(spec=AsyncSession)
    db.execute = AsyncMock()
    db.add = MagicMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.flush = AsyncMock()
    db.refresh = AsyncMock()
    db.delete = AsyncMock()
    return db


# ============================================================
# Fixtures per User Mock
# ============================================================


class MockUser:
    """Mock del modello User."""
    def __init__(self, **kwargs):
        self.id = kwargs.get('id', uuid.uuid4())
        self.email = kwargs.get('email', 'vendedor@empresa.mx')
        self.display_name = kwargs.get('display_name', 'Laura Méndez')
        self.hashed_password = kwargs.get('hashed_password', 'hash')
        self.is_active = kwargs.get('is_active', True)
        self.created_at = kwargs.get('created_at', datetime(2025, 1, 10, tzinfo=timezone.utc))


@pytest.fixture
def mock_user():
    """Utente proprietario dei preventivi."""
    return MockUser()


@pytest.fixture
def other_user():
    """Un secondo utente, senza accesso ai preventivi del primo."""
    return MockUser(email='otro@empresa.mx', display_name='Carlos Ruiz')


# ============================================================
# Fixtures per dati del preventivo
# ============================================================


@pytest.fixture
def company_snapshot():
    """Profilo aziendale copiato nei preventivi."""
    return CompanySnapshot(
        name="Servicios Integrales del Bajío",
        email="ventas@serviciosbajio.mx",
        phone="4771234567",
        address="Blvd. López Mateos 1020, León, Gto.",
        website="serviciosbajio.mx",
        representative="Laura Méndez",
    )


@pytest.fixture
def customer_info():
    return CustomerInfo(
        name="Constructora Álamo",
        email="compras@alamo.mx",
        phone="4779876543",
        address="Av. Insurgentes 45, León, Gto.",
    )


@pytest.fixture
def quotation_payload(company_snapshot, customer_info):
    """
    Payload di creazione: 2 × 100 + 1 × 50 con IVA 16%.

    subtotal 250, IVA 40, totale 290.
    """
    return {
        "issue_date": date(2025, 1, 15),
        "customer": customer_info.model_dump(),
        "project_name": "Remodelación de oficinas",
        "company": company_snapshot.model_dump(),
        "items": [
            {"name": "Instalación eléctrica", "quantity": 2, "unit_price": Decimal("100.00")},
            {"name": "Material", "description": "Cableado calibre 12", "quantity": 1, "unit_price": Decimal("50.00")},
        ],
        "notes": "Precios en pesos mexicanos",
        "delivery_terms": "50% anticipo, 50% contra entrega",
    }


# ============================================================
# Fixtures per repository e service
# ============================================================


@pytest.fixture
def repository():
    return InMemoryQuotationRepository()


@pytest.fixture
def service(repository):
    return QuotationService(repository)


@pytest.fixture
def company_info_service(company_snapshot):
    """CompanyInfoService mock con un profilo di default."""
    mock = MagicMock()
    mock.get_default_snapshot = AsyncMock(return_value=company_snapshot)
    return mock


# ============================================================
# Fixtures per TestClient
# ============================================================


@pytest.fixture
def api_client(mock_user, mock_db, repository, company_info_service):
    """
    TestClient con dipendenze sostituite: utente autenticato,
    repository in memoria e sessione mock.
    """
    from fastapi.testclient import TestClient

    from app.api.v1.company_info import get_company_info_service
    from app.core.database import get_db
    from app.core.deps import get_current_user, get_quotation_repository
    from app.main import app

    async def override_get_db():
        yield mock_db

    app.dependency_overrides[get_current_user] = lambda: mock_user
    app.dependency_overrides[get_quotation_repository] = lambda: repository
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_company_info_service] = lambda: company_info_service

    yield TestClient(app)

    app.dependency_overrides.clear()
