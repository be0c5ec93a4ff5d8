"""
Router per le descrizioni generate con AI
Progetto: Gestionale Preventivi (Quotation Manager)
"""

from fastapi import APIRouter, Depends

from app.core.deps import CurrentUser
from app.schemas.ai import DescriptionRequest, DescriptionResponse
from app.services.ai_description_service import (
    AIDescriptionService,
    get_ai_description_service,
)

router = APIRouter(
    prefix="/ai",
    tags=["AI"],
)


@router.post(
    "/generate-description",
    name="ai_descrizione",
    summary="Genera descrizione prodotto",
    description="Descrizione breve per una riga del preventivo. 503 se il servizio non è configurato.",
    response_model=DescriptionResponse,
)
async def generate_description(
    data: DescriptionRequest,
    current_user: CurrentUser,
    service: AIDescriptionService = Depends(get_ai_description_service),
) -> DescriptionResponse:
    text = await service.generate_description(data.prompt)
    return DescriptionResponse(description=text)
