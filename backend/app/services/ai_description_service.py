"""
Generazione descrizioni prodotto con OpenAI
Progetto: Gestionale Preventivi (Quotation Manager)

Servizio opzionale: senza OPENAI_API_KEY ogni chiamata fallisce con
ExternalServiceError (503) e l'editor resta pienamente utilizzabile.
"""

import logging
from typing import Optional

from openai import AsyncOpenAI, OpenAIError

from app.core.config import settings
from app.core.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

DESCRIPTION_PROMPT = (
    "Generate a professional product or service description for a quotation. "
    "Keep it concise (max 2-3 sentences) and focus on value proposition. "
    "Use formal business language. The product/service is: {prompt}"
)


class AIDescriptionService:
    """
    Client per le descrizioni generate.

    Args:
        client: Client OpenAI già configurato (se None viene creato dalle settings)
        model: Modello da usare (default: settings.ai_model)
    """

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
    ) -> None:
        if client is None and settings.ai_enabled:
            client = AsyncOpenAI(
                api_key=settings.openai_api_key,
                timeout=settings.ai_timeout_seconds,
            )
        self.client = client
        self.model = model or settings.ai_model

    @property
    def enabled(self) -> bool:
        return self.client is not None

    async def generate_description(self, prompt: str) -> str:
        """
        Genera una descrizione breve per una riga del preventivo.

        Raises:
            ExternalServiceError: Servizio non configurato, errore remoto o risposta vuota
        """
        if not self.enabled:
            raise ExternalServiceError("El servicio de IA no está configurado")

        text = prompt.strip()
        if not text:
            raise ExternalServiceError("Se requiere una descripción del producto")

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                temperature=0.7,
                max_tokens=200,
                messages=[{"role": "user", "content": DESCRIPTION_PROMPT.format(prompt=text)}],
            )
        except OpenAIError as e:
            logger.error("Errore OpenAI durante la generazione della descrizione: %s", e)
            raise ExternalServiceError("No se pudo generar la descripción") from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            logger.warning("Risposta vuota dal modello %s", self.model)
            raise ExternalServiceError("No se pudo generar la descripción")
        return content.strip()


def get_ai_description_service() -> AIDescriptionService:
    """Factory per ottenere un'istanza del servizio AI."""
    return AIDescriptionService()


__all__ = ["AIDescriptionService", "DESCRIPTION_PROMPT", "get_ai_description_service"]
