"""
Macchina a stati della modalità imposta
Progetto: Gestionale Preventivi (Quotation Manager)

Due checkbox mutuamente esclusive (IVA standard, imposta personalizzata):
selezionarne una deseleziona l'altra; nessuna selezionata → nessuna imposta.
Ogni funzione restituisce una nuova TaxSelection (immutabile).
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Union

from app.schemas.quotation import (
    STANDARD_TAX_LABEL,
    STANDARD_TAX_RATE,
    TaxMode,
    TaxSelection,
    quantize_rate,
)

logger = logging.getLogger(__name__)

MIN_RATE = Decimal("0")
MAX_RATE = Decimal("100")
CUSTOM_TAX_FALLBACK_LABEL = "Impuesto"
NO_TAX_LABEL = "Sin impuesto"


def toggle_standard(selection: TaxSelection, checked: bool) -> TaxSelection:
    """Checkbox IVA: se selezionata disattiva l'imposta personalizzata."""
    if checked:
        return selection.model_copy(update={"mode": TaxMode.STANDARD})
    if selection.mode == TaxMode.STANDARD:
        return selection.model_copy(update={"mode": TaxMode.NONE})
    return selection


def toggle_custom(selection: TaxSelection, checked: bool) -> TaxSelection:
    """Checkbox imposta personalizzata: se selezionata disattiva l'IVA."""
    if checked:
        return selection.model_copy(update={"mode": TaxMode.CUSTOM})
    if selection.mode == TaxMode.CUSTOM:
        return selection.model_copy(update={"mode": TaxMode.NONE})
    return selection


def parse_rate(raw: Union[str, int, float, Decimal, None]) -> Decimal:
    """
    Converte l'input utente in aliquota, limitata a 0-100 e arrotondata
    a 2 decimali.

    Accetta sia la virgola sia il punto come separatore decimale.

    Raises:
        ValueError: Se l'input non è numerico
    """
    if raw is None:
        raise ValueError("aliquota mancante")
    text = str(raw).strip().replace(",", ".").rstrip("%").strip()
    if not text:
        raise ValueError("aliquota vuota")
    try:
        value = Decimal(text)
    except InvalidOperation as e:
        raise ValueError(f"aliquota non numerica: {raw!r}") from e
    if not value.is_finite():
        raise ValueError(f"aliquota non finita: {raw!r}")
    return quantize_rate(min(max(value, MIN_RATE), MAX_RATE))


def set_custom_rate(selection: TaxSelection, raw) -> TaxSelection:
    """
    Aggiorna l'aliquota personalizzata.

    Input non numerico: viene ignorato e resta l'ultimo valore valido.
    """
    try:
        rate = parse_rate(raw)
    except ValueError as e:
        logger.debug("Aliquota personalizzata rifiutata: %s", e)
        return selection
    return selection.model_copy(update={"custom_rate": rate})


def set_custom_name(selection: TaxSelection, name: str) -> TaxSelection:
    return selection.model_copy(update={"custom_name": (name or "").strip()[:50]})


def effective_rate(selection: TaxSelection) -> Decimal:
    """Aliquota effettiva: 16 (standard), personalizzata oppure 0."""
    if selection.mode == TaxMode.STANDARD:
        return STANDARD_TAX_RATE
    if selection.mode == TaxMode.CUSTOM:
        return selection.custom_rate
    return MIN_RATE


def tax_label(selection: TaxSelection) -> str:
    """Etichetta mostrata nel riepilogo totali."""
    if selection.mode == TaxMode.STANDARD:
        return STANDARD_TAX_LABEL
    if selection.mode == TaxMode.CUSTOM:
        return selection.custom_name or CUSTOM_TAX_FALLBACK_LABEL
    return NO_TAX_LABEL


def checkboxes(selection: TaxSelection) -> tuple[bool, bool]:
    """Stato delle due checkbox (use_standard, use_custom)."""
    return selection.mode == TaxMode.STANDARD, selection.mode == TaxMode.CUSTOM


__all__ = [
    "toggle_standard",
    "toggle_custom",
    "parse_rate",
    "set_custom_rate",
    "set_custom_name",
    "effective_rate",
    "tax_label",
    "checkboxes",
]
