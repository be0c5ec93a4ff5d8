"""
Unit tests per il QuotationEditor (aggregato del preventivo).
"""

from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from app.core.exceptions import ConflictError, ExternalServiceError, QuotationValidationError
from app.schemas.quotation import (
    CustomerInfo,
    LineItem,
    QuotationStatus,
    TaxMode,
    TemplateId,
)
from app.services.quotation_editor import (
    QuotationEditor,
    editor_from_payload,
    recompute_snapshot,
)


@pytest.fixture
def editor(company_snapshot, customer_info):
    """Editor con cliente, azienda e una riga 2 × 100."""
    editor = QuotationEditor(
        issue_date=date(2025, 1, 15),
        customer=customer_info,
        company=company_snapshot,
    )
    editor.add_item({"name": "Servicio", "quantity": 2, "unit_price": "100"})
    return editor


# ============================================================
# Snapshot e versioni
# ============================================================


class TestSnapshots:

    def test_default_valid_until(self):
        """Test validità di default: 30 giorni dall'emissione."""
        editor = QuotationEditor(issue_date=date(2025, 1, 15))

        assert editor.to_snapshot().valid_until == date(2025, 2, 14)

    def test_every_mutation_bumps_version(self, editor):
        """Test ogni mutazione pubblica un nuovo snapshot con versione maggiore."""
        versions = []
        editor.subscribe(lambda snapshot: versions.append(snapshot.version))

        editor.toggle_custom(True)
        editor.set_custom_rate("10")
        editor.set_template(TemplateId.CREATIVE)

        assert versions == sorted(versions)
        assert len(set(versions)) == 3
        assert editor.to_snapshot().version == versions[-1]

    def test_snapshots_are_immutable(self, editor):
        """Test uno snapshot già pubblicato non cambia dopo le mutazioni."""
        before = editor.to_snapshot()

        editor.toggle_standard(False)

        assert before.total == Decimal("232")
        assert editor.to_snapshot().total == Decimal("200")

    def test_tax_changes_recompute_totals(self, editor):
        """Test imposta personalizzata ISR 10%."""
        editor.toggle_custom(True)
        editor.set_custom_name("ISR")
        snapshot = editor.set_custom_rate("10")

        assert snapshot.tax.mode == TaxMode.CUSTOM
        assert snapshot.tax_label == "ISR"
        assert snapshot.tax_amount == Decimal("20.00")
        assert snapshot.total == Decimal("220.00")

    def test_company_is_copied(self, editor, company_snapshot):
        """Test i dati aziendali sono una copia, non un riferimento."""
        editor.set_company(company_snapshot)

        assert editor.to_snapshot().company == company_snapshot
        assert editor.to_snapshot().company is not company_snapshot

    def test_recompute_snapshot_fixes_stale_lines(self, editor):
        """Test recompute_snapshot ricostruisce line_total e totali."""
        snapshot = editor.to_snapshot()
        stale_item = snapshot.items[0].model_copy(update={"line_total": Decimal("1")})
        stale = snapshot.model_copy(update={"items": (stale_item,), "total": Decimal("1")})

        fixed = recompute_snapshot(stale)

        assert fixed.items[0].line_total == Decimal("200")
        assert fixed.total == Decimal("232.00")
        assert fixed.customer == snapshot.customer


# ============================================================
# Validazione e finalize
# ============================================================


class TestFinalize:

    def test_finalize_sent(self, editor):
        """Test invio valido: stato sent e aggregato congelato."""
        snapshot = editor.finalize(QuotationStatus.SENT)

        assert snapshot.status == QuotationStatus.SENT
        assert editor.is_frozen
        with pytest.raises(ConflictError):
            editor.add_item()

    def test_empty_items_cannot_be_sent(self, company_snapshot, customer_info):
        """Test nessuna riga → errore 'items' sull'invio, ma la bozza si salva."""
        editor = QuotationEditor(customer=customer_info, company=company_snapshot)

        with pytest.raises(QuotationValidationError) as exc_info:
            editor.finalize(QuotationStatus.SENT)

        assert exc_info.value.fields() == ["items"]
        assert editor.status == QuotationStatus.DRAFT
        assert editor.finalize(QuotationStatus.DRAFT).total == 0

    def test_all_field_errors_reported(self):
        """Test tutti gli errori per campo in un'unica eccezione."""
        editor = QuotationEditor(
            issue_date=date(2025, 1, 15),
            valid_until=date(2025, 1, 1),
            customer=CustomerInfo(name="  ", email="no-es-correo"),
        )
        editor.add_item({"quantity": 1})

        with pytest.raises(QuotationValidationError) as exc_info:
            editor.finalize(QuotationStatus.SENT)

        fields = exc_info.value.fields()
        assert "customer.name" in fields
        assert "customer.email" in fields
        assert "items[0].name" in fields
        assert "company" in fields
        assert "valid_until" in fields
        assert exc_info.value.status_code == 422
        assert exc_info.value.to_dict()["errors"][0]["field"] == fields[0]

    def test_amount_beyond_column_limit(self, editor):
        """Test totale oltre 99,999,999.99: errore per campo, non un errore di salvataggio."""
        editor.add_item({"name": "Obra", "quantity": 1000, "unit_price": "1000000"})

        with pytest.raises(QuotationValidationError) as exc_info:
            editor.finalize(QuotationStatus.DRAFT)

        fields = exc_info.value.fields()
        assert "items[1].line_total" in fields
        assert "total" in fields
        assert editor.status == QuotationStatus.DRAFT

    def test_cannot_finalize_to_terminal_state(self, editor):
        """Test finalize accetta solo draft o sent."""
        with pytest.raises(ConflictError):
            editor.finalize(QuotationStatus.ACCEPTED)

    def test_assign_number_once(self, editor):
        """Test numero assegnato una sola volta."""
        editor.assign_number("COT-2025-0001")

        assert editor.assign_number("COT-2025-0001").quotation_number == "COT-2025-0001"
        with pytest.raises(ConflictError):
            editor.assign_number("COT-2025-0002")


# ============================================================
# Richieste esterne (AI)
# ============================================================


class TestExternalRequests:

    def test_result_applied(self, editor):
        """Test risultato applicato alla descrizione della riga."""
        item_id = editor.items[0].id
        token = editor.begin_external_request(item_id)

        assert editor.complete_external_request(token, "Servicio profesional") is True
        assert editor.items[0].description == "Servicio profesional"

    def test_late_result_after_removal_discarded(self, editor):
        """Test risultato arrivato dopo la rimozione della riga viene scartato."""
        item_id = editor.add_item({"name": "Temporal"})
        token = editor.begin_external_request(item_id)
        editor.remove_item(item_id)
        version = editor.version

        assert editor.complete_external_request(token, "Tarde") is False
        assert editor.version == version

    def test_cancelled_request_discarded(self, editor):
        """Test richiesta annullata: il risultato non viene applicato."""
        item_id = editor.items[0].id
        token = editor.begin_external_request(item_id)
        editor.cancel_external_request(token)

        assert editor.complete_external_request(token, "Ignorado") is False
        assert editor.items[0].description is None

    def test_cancel_releases_request(self, editor):
        """Test una richiesta annullata non resta in attesa."""
        token = editor.begin_external_request(editor.items[0].id)
        assert editor.pending_requests == 1

        editor.cancel_external_request(token)

        assert editor.pending_requests == 0

    def test_remove_item_releases_its_requests(self, editor):
        """Test rimozione riga: le sue richieste vengono rilasciate."""
        item_id = editor.add_item({"name": "Temporal"})
        editor.begin_external_request(item_id)
        editor.begin_external_request(editor.items[0].id)

        editor.remove_item(item_id)

        assert editor.pending_requests == 1

    def test_closed_editor_discards(self, editor):
        """Test editor chiuso: nessuna scrittura tardiva."""
        token = editor.begin_external_request(editor.items[0].id)
        editor.close()

        assert editor.pending_requests == 0
        assert editor.complete_external_request(token, "Tarde") is False

    @pytest.mark.anyio
    async def test_prefill_text(self, editor):
        """Test prefill con un produttore asincrono."""
        producer = AsyncMock(return_value="Descripción generada")

        applied = await editor.prefill_text(editor.items[0].id, producer, "servicio")

        assert applied is True
        producer.assert_awaited_once_with("servicio")
        assert editor.items[0].description == "Descripción generada"

    @pytest.mark.anyio
    async def test_prefill_degrades_on_service_error(self, editor):
        """Test servizio esterno non disponibile: riga invariata, nessun errore."""
        producer = AsyncMock(side_effect=ExternalServiceError("sin servicio"))
        item = editor.items[0]

        applied = await editor.prefill_text(item.id, producer, "servicio")

        assert applied is False
        assert editor.items[0] == item
        assert editor.pending_requests == 0


# ============================================================
# Payload API
# ============================================================


class TestEditorFromPayload:

    def test_create_payload(self, quotation_payload):
        """Test costruzione da payload: righe, date e totali."""
        editor = editor_from_payload(quotation_payload)
        snapshot = editor.to_snapshot()

        assert snapshot.issue_date == date(2025, 1, 15)
        assert snapshot.valid_until == date(2025, 1, 15) + timedelta(days=30)
        assert [i.line_total for i in snapshot.items] == [Decimal("200.00"), Decimal("50.00")]
        assert snapshot.subtotal == Decimal("250.00")
        assert snapshot.tax_amount == Decimal("40.00")
        assert snapshot.total == Decimal("290.00")

    def test_partial_update_keeps_base(self, quotation_payload):
        """Test aggiornamento parziale: i campi assenti restano quelli esistenti."""
        base = editor_from_payload(quotation_payload).to_snapshot()

        snapshot = editor_from_payload({"project_name": "Fase 2"}, base=base).to_snapshot()

        assert snapshot.project_name == "Fase 2"
        assert snapshot.items == base.items
        assert snapshot.total == base.total

    def test_frozen_base_rejected(self, quotation_payload):
        """Test un preventivo inviato non è modificabile."""
        editor = editor_from_payload(quotation_payload)
        sent = editor.finalize(QuotationStatus.SENT)

        with pytest.raises(ConflictError):
            editor_from_payload({"notes": "cambio"}, base=sent)

    def test_items_replaced_by_id(self, quotation_payload):
        """Test righe con ID esistente mantengono la chiave."""
        base = editor_from_payload(quotation_payload).to_snapshot()
        first = base.items[0]

        snapshot = editor_from_payload(
            {"items": [{"id": first.id, "name": first.name, "quantity": 5, "unit_price": first.unit_price}]},
            base=base,
        ).to_snapshot()

        assert [i.id for i in snapshot.items] == [first.id]
        assert snapshot.items[0].line_total == Decimal("500.00")
        assert isinstance(snapshot.items[0], LineItem)
