"""
Calcolo totali e formattazione importi
Progetto: Gestionale Preventivi (Quotation Manager)

Funzioni pure: nessun accesso a database, nessuno stato.

Regole:
- subtotal = Σ quantity × unit_price (Decimal esatto, non arrotondato)
- tax_amount = round2(subtotal × rate / 100)
- total = subtotal + tax_amount

L'arrotondamento ROUND_HALF_UP a 2 decimali si applica solo all'imposta,
alla formattazione in valuta e alla persistenza su colonne NUMERIC(10,2).
"""

import logging
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, NamedTuple, Protocol, Sequence

from app.core.exceptions import ComputationInconsistencyError

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

_MONTHS_ES = (
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
)


class PricedLine(Protocol):
    """Qualsiasi riga con quantità e prezzo unitario (LineItem, modello ORM)."""

    quantity: int
    unit_price: Decimal


class Totals(NamedTuple):
    """Risultato di compute_totals."""

    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal


def round2(value: Decimal) -> Decimal:
    """Arrotonda a 2 decimali con ROUND_HALF_UP."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(quantity: int, unit_price: Decimal) -> Decimal:
    """Totale di una riga: quantity × unit_price, senza arrotondamento."""
    return Decimal(quantity) * Decimal(unit_price)


def compute_totals(items: Iterable[PricedLine], effective_rate: Decimal) -> Totals:
    """
    Calcola subtotale, imposta e totale.

    Args:
        items: Righe con quantity e unit_price
        effective_rate: Aliquota effettiva in percentuale (0-100)

    Returns:
        Totals: (subtotal, tax_amount, total); tutti zero per lista vuota

    Raises:
        ComputationInconsistencyError: Se un valore non è un numero finito
    """
    try:
        rate = Decimal(effective_rate)
        subtotal = sum((line_total(i.quantity, i.unit_price) for i in items), ZERO)
        if not subtotal.is_finite() or not rate.is_finite():
            raise InvalidOperation("valore non finito")
        tax_amount = round2(subtotal * rate / HUNDRED)
    except (InvalidOperation, TypeError) as e:
        logger.error("Calcolo totali fallito: %s", e)
        raise ComputationInconsistencyError(
            "No fue posible calcular los totales de la cotización"
        ) from e

    return Totals(subtotal=subtotal, tax_amount=tax_amount, total=subtotal + tax_amount)


def find_inconsistent_items(items: Sequence) -> list:
    """Righe il cui line_total non coincide con quantity × unit_price."""
    return [
        item for item in items
        if Decimal(item.line_total) != line_total(item.quantity, item.unit_price)
    ]


def totals_match(snapshot, effective_rate: Decimal) -> bool:
    """Verifica che i totali memorizzati nello snapshot siano quelli attesi."""
    if find_inconsistent_items(snapshot.items):
        return False
    expected = compute_totals(snapshot.items, effective_rate)
    # Gli snapshot letti dal database hanno importi già arrotondati a 2 decimali
    return (
        round2(expected.subtotal) == round2(snapshot.subtotal)
        and expected.tax_amount == round2(snapshot.tax_amount)
        and round2(expected.total) == round2(snapshot.total)
    )


def ensure_consistent(snapshot) -> None:
    """
    Solleva ComputationInconsistencyError se lo snapshot non è coerente.

    Raises:
        ComputationInconsistencyError: Con la lista delle righe incoerenti
    """
    bad = find_inconsistent_items(snapshot.items)
    if bad or not totals_match(snapshot, snapshot.tax_rate):
        raise ComputationInconsistencyError(
            extra={"items": [str(getattr(i, "id", "")) for i in bad]},
        )


# ------------------------------------------------------------
# Formattazione (es-MX, MXN)
# ------------------------------------------------------------

def format_currency(amount: Decimal) -> str:
    """
    Formatta un importo in pesos messicani.

    Example:
        >>> format_currency(Decimal("1234.5"))
        '$1,234.50'
    """
    value = round2(amount)
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def format_rate(rate: Decimal) -> str:
    """Aliquota senza zeri superflui: 16 → '16', 10.50 → '10.5'."""
    value = Decimal(rate)
    if value == value.to_integral_value():
        return str(value.quantize(Decimal("1")))
    return format(value.normalize(), "f")


def format_long_date(value: date) -> str:
    """Data in formato esteso es-MX: '15 de enero de 2025'."""
    return f"{value.day} de {_MONTHS_ES[value.month - 1]} de {value.year}"


__all__ = [
    "Totals",
    "round2",
    "line_total",
    "compute_totals",
    "find_inconsistent_items",
    "totals_match",
    "ensure_consistent",
    "format_currency",
    "format_rate",
    "format_long_date",
]
