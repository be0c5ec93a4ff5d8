"""
Modelli Database SQLAlchemy
Progetto: Gestionale Preventivi (Quotation Manager)

Import centralizzato di tutti i modelli (metadata per create_all/Alembic).

Modelli:
- User: Utenti autenticati
- Customer: Rubrica clienti dell'utente
- CompanyInfo: Profili aziendali (uno di default per utente)
- Quotation / QuotationItem: Preventivi e relative righe
- QuotationSequence: Contatore annuale per utente dei numeri preventivo
- QuotationNumberReservation: Numeri già assegnati a una bozza (idempotenza)
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class per tutti i modelli SQLAlchemy."""
    pass


from app.models.user import User
from app.models.customer import Customer
from app.models.company_info import CompanyInfo
from app.models.quotation import (
    Quotation,
    QuotationItem,
    QuotationNumberReservation,
    QuotationSequence,
)

__all__ = [
    "Base",
    "User",
    "Customer",
    "CompanyInfo",
    "Quotation",
    "QuotationItem",
    "QuotationSequence",
    "QuotationNumberReservation",
]
