"""
Repository di persistenza
Progetto: Gestionale Preventivi (Quotation Manager)
"""

from app.repositories.quotation_repository import (
    InMemoryQuotationRepository,
    QuotationRepository,
    SqlAlchemyQuotationRepository,
)

__all__ = [
    "QuotationRepository",
    "SqlAlchemyQuotationRepository",
    "InMemoryQuotationRepository",
]
