"""
Unit tests per il calcolo dei totali e la formattazione degli importi.
"""

import random
from datetime import date
from decimal import Decimal

import pytest

from app.core.exceptions import ComputationInconsistencyError
from app.schemas.quotation import LineItem, TaxSelection
from app.services import tax_mode
from app.services.quotation_editor import QuotationEditor, build_snapshot
from app.services.totals import (
    compute_totals,
    ensure_consistent,
    find_inconsistent_items,
    format_currency,
    format_long_date,
    format_rate,
    round2,
    totals_match,
)


def _item(quantity, price):
    price = Decimal(price)
    return LineItem(name="Artículo", quantity=quantity, unit_price=price, line_total=quantity * price)


def _random_items(rng, count):
    return [
        _item(rng.randint(1, 50), Decimal(rng.randint(0, 999_999)) / Decimal(100))
        for _ in range(count)
    ]


# ============================================================
# Scenari di riferimento
# ============================================================


class TestReferenceScenarios:
    """Scenari con risultati noti."""

    def test_standard_tax_two_units(self):
        """Test 2 × 100.00 con IVA standard → 200 / 32 / 232."""
        totals = compute_totals([_item(2, "100.00")], tax_mode.effective_rate(TaxSelection.standard()))

        assert totals.subtotal == Decimal("200.00")
        assert totals.tax_amount == Decimal("32.00")
        assert totals.total == Decimal("232.00")

    def test_custom_tax_rounds_half_up(self):
        """Test 3 × 49.99 con ISR 10% → imposta 14.997 arrotondata a 15.00."""
        selection = TaxSelection.custom("ISR", Decimal("10"))
        totals = compute_totals([_item(3, "49.99")], tax_mode.effective_rate(selection))

        assert totals.subtotal == Decimal("149.97")
        assert totals.tax_amount == Decimal("15.00")
        assert totals.total == Decimal("164.97")

    @pytest.mark.parametrize(
        "selection",
        [TaxSelection.standard(), TaxSelection.custom("ISR", Decimal("10")), TaxSelection.none()],
    )
    def test_empty_items_are_zero(self, selection):
        """Test lista vuota → tutti i totali a zero per ogni modalità."""
        totals = compute_totals([], tax_mode.effective_rate(selection))

        assert totals.subtotal == 0
        assert totals.tax_amount == 0
        assert totals.total == 0

    def test_removing_last_item_resets_totals(self):
        """Test rimozione dell'unica riga: i totali tornano a zero subito."""
        editor = QuotationEditor()
        item_id = editor.add_item({"name": "Servicio", "quantity": 2, "unit_price": "100"})
        assert editor.to_snapshot().total == Decimal("232.00")

        editor.remove_item(item_id)

        snapshot = editor.to_snapshot()
        assert snapshot.subtotal == 0
        assert snapshot.tax_amount == 0
        assert snapshot.total == 0


# ============================================================
# Proprietà su input casuali
# ============================================================


class TestTotalsProperties:
    """Proprietà verificate su righe generate con seed fisso."""

    @pytest.mark.parametrize("seed", range(25))
    def test_subtotal_is_exact_sum(self, seed):
        """Test subtotal = Σ quantità × prezzo, senza arrotondamenti."""
        rng = random.Random(seed)
        items = _random_items(rng, rng.randint(1, 12))

        totals = compute_totals(items, Decimal("16"))

        assert totals.subtotal == sum((i.quantity * i.unit_price for i in items), Decimal("0"))

    @pytest.mark.parametrize("seed", range(25))
    def test_total_is_subtotal_plus_tax(self, seed):
        """Test total = subtotal + imposta e imposta = round2(subtotal × aliquota / 100)."""
        rng = random.Random(1000 + seed)
        items = _random_items(rng, rng.randint(1, 8))
        rate = Decimal(rng.randint(0, 10_000)) / Decimal(100)

        totals = compute_totals(items, rate)

        assert totals.tax_amount == round2(totals.subtotal * rate / Decimal(100))
        assert totals.total == totals.subtotal + totals.tax_amount

    @pytest.mark.parametrize("seed", range(10))
    def test_compute_is_idempotent(self, seed):
        """Test due calcoli sullo stesso input danno lo stesso risultato."""
        rng = random.Random(5000 + seed)
        items = _random_items(rng, 5)

        assert compute_totals(items, Decimal("16")) == compute_totals(items, Decimal("16"))

    def test_no_tax_means_zero_tax(self):
        """Test modalità nessuna imposta → totale uguale al subtotale."""
        totals = compute_totals([_item(4, "12.50")], tax_mode.effective_rate(TaxSelection.none()))

        assert totals.tax_amount == 0
        assert totals.total == totals.subtotal == Decimal("50.00")


# ============================================================
# Coerenza degli snapshot
# ============================================================


class TestConsistencyChecks:
    """Rilevamento di line_total e totali incoerenti."""

    def _snapshot(self, items):
        return build_snapshot(items=tuple(items), tax=TaxSelection.standard(), issue_date=date(2025, 1, 15))

    def test_consistent_snapshot(self):
        """Test snapshot costruito correttamente è coerente."""
        snapshot = self._snapshot([_item(2, "10.00")])

        assert find_inconsistent_items(snapshot.items) == []
        assert totals_match(snapshot, snapshot.tax_rate)
        ensure_consistent(snapshot)

    def test_stale_line_total_detected(self):
        """Test line_total diverso da quantità × prezzo viene segnalato."""
        stale = LineItem(name="Viejo", quantity=3, unit_price=Decimal("10"), line_total=Decimal("20"))
        snapshot = self._snapshot([stale])

        assert find_inconsistent_items(snapshot.items) == [stale]
        with pytest.raises(ComputationInconsistencyError) as exc_info:
            ensure_consistent(snapshot)
        assert exc_info.value.extra["items"] == [str(stale.id)]

    def test_non_finite_price_is_an_error(self):
        """Test un valore non finito solleva errore invece di produrre zero."""
        bad = LineItem.model_construct(
            name="Roto", quantity=1, unit_price=Decimal("NaN"), line_total=Decimal("0")
        )

        with pytest.raises(ComputationInconsistencyError):
            compute_totals([bad], Decimal("16"))


# ============================================================
# Formattazione
# ============================================================


class TestFormatting:
    """Formattazione es-MX."""

    @pytest.mark.parametrize(
        "amount,expected",
        [
            (Decimal("0"), "$0.00"),
            (Decimal("1234.5"), "$1,234.50"),
            (Decimal("1000000"), "$1,000,000.00"),
            (Decimal("14.997"), "$15.00"),
            (Decimal("0.005"), "$0.01"),
        ],
    )
    def test_format_currency(self, amount, expected):
        """Test formattazione in pesos con separatore delle migliaia."""
        assert format_currency(amount) == expected

    @pytest.mark.parametrize(
        "rate,expected",
        [(Decimal("16"), "16"), (Decimal("16.00"), "16"), (Decimal("10.50"), "10.5"), (Decimal("0"), "0")],
    )
    def test_format_rate(self, rate, expected):
        """Test aliquota senza zeri superflui."""
        assert format_rate(rate) == expected

    def test_format_long_date(self):
        """Test data estesa in spagnolo."""
        assert format_long_date(date(2025, 1, 15)) == "15 de enero de 2025"
        assert format_long_date(date(2024, 12, 3)) == "3 de diciembre de 2024"
