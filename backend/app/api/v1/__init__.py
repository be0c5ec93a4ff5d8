"""
API v1 Routes
Progetto: Gestionale Preventivi (Quotation Manager)

Router versione 1 dell'API.
"""

from fastapi import APIRouter

from app.api.v1 import ai, auth, company_info, customers, quotations

# Router aggregato per v1
api_v1_router = APIRouter(prefix="/api/v1")

# Includi i router dei moduli
api_v1_router.include_router(auth.router)
api_v1_router.include_router(quotations.numbering_router)
api_v1_router.include_router(quotations.router)
api_v1_router.include_router(customers.router)
api_v1_router.include_router(company_info.router)
api_v1_router.include_router(ai.router)

# Esportazione
__all__ = ["api_v1_router"]
