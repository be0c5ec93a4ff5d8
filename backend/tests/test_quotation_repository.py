"""
Unit tests per SqlAlchemyQuotationRepository e le conversioni snapshot <-> righe ORM.

La sessione è un AsyncMock: si verificano le istruzioni inviate e i dati
scritti sui modelli, non il database.
"""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from app.core.exceptions import (
    ConflictError,
    DuplicateError,
    NotFoundError,
    PersistenceError,
)
from app.models import Quotation, QuotationNumberReservation, QuotationSequence
from app.repositories.quotation_repository import (
    SqlAlchemyQuotationRepository,
    apply_snapshot,
    quotation_to_read,
)
from app.services.quotation_editor import QuotationEditor, editor_from_payload
from app.services.render_service import RenderTarget, render_quotation, trusted_snapshot
from app.services.totals import round2

NOW = datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc)


def _result(value):
    """Risultato di db.execute() con un solo oggetto."""
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    result.scalar_one.return_value = value
    return result


def _row_from(snapshot, user_id):
    """Riga Quotation come la scriverebbe il repository, con id e timestamp."""
    row = Quotation(
        id=uuid.uuid4(),
        user_id=user_id,
        quotation_number=snapshot.quotation_number,
        draft_key=None,
        items=[],
    )
    apply_snapshot(row, snapshot)
    row.created_at = row.updated_at = NOW
    return row


def _stored_as_numeric(row):
    """Precisione delle colonne NUMERIC dopo la scrittura."""
    row.tax_rate = round2(row.tax_rate)
    for item in row.items:
        item.unit_price = round2(item.unit_price)
        item.line_total = round2(item.line_total)


@pytest.fixture
def snapshot(quotation_payload):
    """Snapshot numerato: 2 × 100 + 1 × 50 con IVA 16%."""
    editor = editor_from_payload(quotation_payload)
    return editor.assign_number("COT-2025-0001")


@pytest.fixture
def repo(mock_db):
    return SqlAlchemyQuotationRepository(mock_db)


# ============================================================
# Snapshot -> riga -> QuotationRead
# ============================================================


class TestRowConversion:

    def test_totals_survive_round_trip(self, snapshot, mock_user):
        """Test totali e righe identici dopo scrittura e rilettura."""
        row = _row_from(snapshot, mock_user.id)
        _stored_as_numeric(row)

        read = quotation_to_read(row)

        assert (read.subtotal, read.tax_amount, read.total) == (
            snapshot.subtotal, snapshot.tax_amount, snapshot.total
        )
        assert [i.id for i in read.items] == [i.id for i in snapshot.items]
        assert [i.line_total for i in read.items] == [i.line_total for i in snapshot.items]
        assert read.quotation_number == "COT-2025-0001"
        assert read.company == snapshot.company

    def test_reread_snapshot_is_trusted(self, snapshot, mock_user):
        """Test preventivo riletto: nessun ricalcolo e stesso totale in anteprima."""
        row = _row_from(snapshot, mock_user.id)
        _stored_as_numeric(row)
        reread = quotation_to_read(row).to_snapshot()

        assert trusted_snapshot(reread) is reread
        preview = render_quotation(reread, RenderTarget.PREVIEW)
        assert preview.document.total == render_quotation(snapshot, RenderTarget.PREVIEW).document.total

    def test_custom_rate_matches_saved_total(self, company_snapshot, customer_info, mock_user):
        """Test aliquota 10.125: arrotondata prima del calcolo, il totale salvato resta valido."""
        editor = QuotationEditor(
            issue_date=date(2025, 1, 15), customer=customer_info, company=company_snapshot
        )
        editor.add_item({"name": "Servicio", "quantity": 1, "unit_price": "1000"})
        editor.toggle_custom(True)
        editor.set_custom_name("ISR")
        editor.set_custom_rate("10.125")
        snapshot = editor.assign_number("COT-2025-0002")

        row = _row_from(snapshot, mock_user.id)
        _stored_as_numeric(row)
        reread = quotation_to_read(row).to_snapshot()

        assert snapshot.tax_rate == Decimal("10.13")
        assert snapshot.total == Decimal("1101.30")
        assert row.tax_rate == snapshot.tax_rate
        assert trusted_snapshot(reread) is reread
        assert render_quotation(reread, RenderTarget.PREVIEW).document.total == "$1,101.30"

    def test_update_keeps_ids_and_order(self, snapshot, mock_user):
        """Test righe esistenti riusate per ID, rimosse eliminate, nuove in coda."""
        row = _row_from(snapshot, mock_user.id)
        removed, kept = row.items
        editor = QuotationEditor.from_snapshot(snapshot)
        editor.remove_item(removed.id)
        editor.update_item(kept.id, {"quantity": 5})
        new_id = editor.add_item({"name": "Extra", "quantity": 1, "unit_price": "30"})

        apply_snapshot(row, editor.to_snapshot())

        assert [r.id for r in row.items] == [kept.id, new_id]
        assert row.items[0] is kept
        assert [r.position for r in row.items] == [0, 1]
        assert removed.id not in {r.id for r in row.items}
        assert kept.quantity == 5
        assert row.subtotal == Decimal("280.00")

    def test_missing_company_rejected(self, snapshot, mock_user):
        """Test snapshot senza azienda non scrivibile."""
        with pytest.raises(ConflictError):
            _row_from(snapshot.model_copy(update={"company": None}), mock_user.id)


# ============================================================
# Scrittura tramite sessione
# ============================================================


class TestWrites:

    @pytest.mark.anyio
    async def test_create_flushes_and_returns_read(self, repo, mock_db, snapshot, mock_user):
        """Test creazione: un add, un flush e il preventivo riletto."""
        async def fake_refresh(row):
            row.created_at = row.updated_at = NOW
            if row.id is None:
                row.id = uuid.uuid4()

        mock_db.refresh = AsyncMock(side_effect=fake_refresh)

        read = await repo.create_quotation(mock_user.id, snapshot, "bozza-0001")

        added = mock_db.add.call_args.args[0]
        assert isinstance(added, Quotation)
        assert added.draft_key == "bozza-0001"
        mock_db.flush.assert_awaited_once()
        assert read.total == snapshot.total
        assert read.draft_key == "bozza-0001"
        assert [i.id for i in read.items] == [i.id for i in snapshot.items]

    @pytest.mark.anyio
    async def test_duplicate_number(self, repo, mock_db, snapshot, mock_user):
        """Test vincolo sul numero → DuplicateError."""
        mock_db.flush = AsyncMock(side_effect=IntegrityError(
            "INSERT", {},
            Exception('duplicate key value violates unique constraint "uq_quotations_user_number"'),
        ))

        with pytest.raises(DuplicateError) as exc_info:
            await repo.create_quotation(mock_user.id, snapshot)

        assert "COT-2025-0001" in exc_info.value.detail
        mock_db.rollback.assert_awaited_once()

    @pytest.mark.anyio
    async def test_other_constraint_is_conflict(self, repo, mock_db, snapshot, mock_user):
        """Test altri vincoli (es. ID riga già usato) non riportati come numero duplicato."""
        mock_db.flush = AsyncMock(side_effect=IntegrityError(
            "INSERT", {},
            Exception('duplicate key value violates unique constraint "quotation_items_pkey"'),
        ))

        with pytest.raises(ConflictError) as exc_info:
            await repo.create_quotation(mock_user.id, snapshot)

        assert "COT-2025-0001" not in exc_info.value.detail

    @pytest.mark.anyio
    async def test_driver_error_is_persistence_error(self, repo, mock_db, snapshot, mock_user):
        """Test errore del driver → PersistenceError (503, ripetibile)."""
        mock_db.flush = AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("conexión perdida")))

        with pytest.raises(PersistenceError) as exc_info:
            await repo.create_quotation(mock_user.id, snapshot)

        assert exc_info.value.status_code == 503
        mock_db.rollback.assert_awaited_once()

    @pytest.mark.anyio
    async def test_update_replaces_items(self, repo, mock_db, snapshot, mock_user):
        """Test aggiornamento: righe sostituite sul record caricato."""
        row = _row_from(snapshot, mock_user.id)
        mock_db.execute = AsyncMock(return_value=_result(row))
        editor = QuotationEditor.from_snapshot(snapshot)
        editor.remove_item(snapshot.items[1].id)

        read = await repo.update_quotation(row.id, editor.to_snapshot())

        assert [i.id for i in read.items] == [snapshot.items[0].id]
        assert read.total == Decimal("232.00")
        mock_db.flush.assert_awaited_once()

    @pytest.mark.anyio
    async def test_update_missing(self, repo, mock_db, snapshot):
        """Test preventivo inesistente."""
        mock_db.execute = AsyncMock(return_value=_result(None))

        with pytest.raises(NotFoundError):
            await repo.update_quotation(uuid.uuid4(), snapshot)

    @pytest.mark.anyio
    async def test_commit_failure(self, repo, mock_db):
        """Test commit fallito → PersistenceError con rollback."""
        mock_db.commit = AsyncMock(side_effect=SQLAlchemyError("timeout"))

        with pytest.raises(PersistenceError):
            await repo.commit()

        mock_db.rollback.assert_awaited_once()


# ============================================================
# Numerazione
# ============================================================


class TestNumbering:

    @pytest.mark.anyio
    async def test_reservation_returns_same_number(self, repo, mock_db, mock_user):
        """Test draft_key già prenotata: stesso numero, contatore intatto."""
        reservation = QuotationNumberReservation(
            user_id=mock_user.id, draft_key="bozza-0001", quotation_number="COT-2025-0007"
        )
        mock_db.execute = AsyncMock(return_value=_result(reservation))

        number = await repo.generate_quotation_number(mock_user.id, "bozza-0001", date(2025, 3, 1))

        assert number == "COT-2025-0007"
        assert mock_db.execute.await_count == 1
        mock_db.add.assert_not_called()
        mock_db.flush.assert_not_awaited()

    @pytest.mark.anyio
    async def test_new_number_locks_sequence_and_reserves(self, repo, mock_db, mock_user):
        """Test nuovo numero: contatore bloccato, incrementato e prenotato per la bozza."""
        sequence = QuotationSequence(user_id=mock_user.id, year=2025, last_value=4)
        mock_db.execute = AsyncMock(side_effect=[_result(None), MagicMock(), _result(sequence)])

        number = await repo.generate_quotation_number(mock_user.id, "bozza-0002", date(2025, 3, 1))

        assert number == "COT-2025-0005"
        assert sequence.last_value == 5
        locked = mock_db.execute.await_args_list[2].args[0]
        assert "FOR UPDATE" in str(locked.compile(dialect=postgresql.dialect()))
        reservation = mock_db.add.call_args.args[0]
        assert isinstance(reservation, QuotationNumberReservation)
        assert (reservation.draft_key, reservation.quotation_number) == ("bozza-0002", "COT-2025-0005")
        mock_db.flush.assert_awaited_once()

    @pytest.mark.anyio
    async def test_without_draft_key_no_reservation(self, repo, mock_db, mock_user):
        """Test senza draft_key: numero consumato, nessuna prenotazione."""
        sequence = QuotationSequence(user_id=mock_user.id, year=2025, last_value=0)
        mock_db.execute = AsyncMock(side_effect=[MagicMock(), _result(sequence)])

        number = await repo.generate_quotation_number(mock_user.id, issue_date=date(2025, 6, 1))

        assert number == "COT-2025-0001"
        mock_db.add.assert_not_called()

    @pytest.mark.anyio
    async def test_sequence_error_is_persistence_error(self, repo, mock_db, mock_user):
        """Test errore durante l'incremento → PersistenceError."""
        mock_db.execute = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("lock timeout")))

        with pytest.raises(PersistenceError):
            await repo.generate_quotation_number(mock_user.id, issue_date=date(2025, 6, 1))

        mock_db.rollback.assert_awaited_once()
