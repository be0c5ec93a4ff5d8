"""
Schemas Pydantic per la generazione descrizioni AI
Progetto: Gestionale Preventivi (Quotation Manager)
"""

from pydantic import BaseModel, Field


class DescriptionRequest(BaseModel):
    prompt: str = Field(..., min_length=1, max_length=500, description="Producto o servicio")


class DescriptionResponse(BaseModel):
    description: str
