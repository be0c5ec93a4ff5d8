"""
Line Item Store
Progetto: Gestionale Preventivi (Quotation Manager)

Collezione ordinata delle righe di un preventivo, indicizzata da una
chiave stabile (UUID). Ogni mutazione:
1. valida la patch (in caso di errore lo store resta invariato)
2. ricalcola line_total se cambiano quantità o prezzo
3. notifica gli osservatori in modo sincrono, a mutazione completata
"""

import logging
import uuid
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterator, Mapping, Optional

from app.core.exceptions import BusinessValidationError, NotFoundError
from app.schemas.quotation import MAX_AMOUNT, MAX_QUANTITY, LineItem
from app.services.totals import line_total, round2

logger = logging.getLogger(__name__)

# Campi modificabili tramite update_item
EDITABLE_FIELDS = frozenset({"name", "description", "image_ref", "quantity", "unit_price"})

ChangeListener = Callable[[tuple[LineItem, ...]], None]


def _coerce_quantity(value: Any) -> int:
    if isinstance(value, bool):
        raise BusinessValidationError("La cantidad debe ser un número entero")
    try:
        quantity = int(value)
    except (TypeError, ValueError, OverflowError):
        raise BusinessValidationError("La cantidad debe ser un número entero")
    if quantity != Decimal(str(value)):
        raise BusinessValidationError("La cantidad debe ser un número entero")
    if quantity < 1:
        raise BusinessValidationError("La cantidad debe ser al menos 1")
    if quantity > MAX_QUANTITY:
        raise BusinessValidationError(f"La cantidad no puede superar {MAX_QUANTITY:,}")
    return quantity


def _coerce_price(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise BusinessValidationError("El precio debe ser numérico")
    try:
        price = Decimal(str(value).replace(",", "."))
    except InvalidOperation:
        raise BusinessValidationError("El precio debe ser numérico")
    if not price.is_finite():
        raise BusinessValidationError("El precio debe ser numérico")
    if price < 0:
        raise BusinessValidationError("El precio no puede ser negativo")
    if price > MAX_AMOUNT:
        raise BusinessValidationError(f"El precio no puede superar {MAX_AMOUNT:,}")
    if price != round2(price):
        raise BusinessValidationError("El precio admite como máximo 2 decimales")
    return price


class LineItemStore:
    """
    Store delle righe di un preventivo.

    Gli osservatori ricevono la tupla completa delle righe dopo ogni
    mutazione riuscita. set_image/clear_image notificano comunque, ma
    non toccano line_total.
    """

    def __init__(self, items: Optional[list[LineItem]] = None) -> None:
        self._items: dict[uuid.UUID, LineItem] = {}
        self._listeners: list[ChangeListener] = []
        for item in items or []:
            self._items[item.id] = item.model_copy(
                update={"line_total": line_total(item.quantity, item.unit_price)}
            )

    # ------------------------------------------------------------
    # Lettura
    # ------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[LineItem]:
        return iter(self.items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    @property
    def items(self) -> tuple[LineItem, ...]:
        """Righe in ordine di inserimento."""
        return tuple(self._items.values())

    def get(self, item_id: uuid.UUID) -> LineItem:
        try:
            return self._items[item_id]
        except KeyError:
            raise NotFoundError(f"Artículo {item_id} no encontrado")

    # ------------------------------------------------------------
    # Osservatori
    # ------------------------------------------------------------

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Registra un osservatore; restituisce la funzione di disiscrizione."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.items
        for listener in list(self._listeners):
            listener(snapshot)

    # ------------------------------------------------------------
    # Mutazioni
    # ------------------------------------------------------------

    def add_item(self, draft: Optional[Mapping[str, Any]] = None) -> uuid.UUID:
        """
        Aggiunge una riga in coda.

        Default: quantity=1, unit_price=0, line_total=0.

        Args:
            draft: Campi iniziali opzionali (stessi di update_item, più `id`)

        Returns:
            UUID: Chiave stabile della nuova riga
        """
        draft = dict(draft or {})
        item_id = draft.pop("id", None) or uuid.uuid4()
        if not isinstance(item_id, uuid.UUID):
            item_id = uuid.UUID(str(item_id))
        if item_id in self._items:
            raise BusinessValidationError(f"Artículo {item_id} duplicado")

        values = self._validated_patch(draft)
        quantity = values.get("quantity", 1)
        unit_price = values.get("unit_price", Decimal("0"))
        item = LineItem(
            id=item_id,
            name=values.get("name", ""),
            description=values.get("description"),
            image_ref=values.get("image_ref"),
            quantity=quantity,
            unit_price=unit_price,
            line_total=line_total(quantity, unit_price),
        )
        self._items[item_id] = item
        logger.debug("Aggiunta riga %s (totale righe: %s)", item_id, len(self._items))
        self._notify()
        return item_id

    def update_item(self, item_id: uuid.UUID, patch: Mapping[str, Any]) -> LineItem:
        """
        Applica una patch a una riga.

        Raises:
            NotFoundError: Se la riga non esiste
            BusinessValidationError: Patch non valida (store invariato)
        """
        current = self.get(item_id)
        values = self._validated_patch(patch)
        if not values:
            return current

        updated = current.model_copy(update=values)
        if "quantity" in values or "unit_price" in values:
            updated = updated.model_copy(
                update={"line_total": line_total(updated.quantity, updated.unit_price)}
            )
        self._items[item_id] = updated
        self._notify()
        return updated

    def remove_item(self, item_id: uuid.UUID) -> None:
        """Rimuove una riga. Raises: NotFoundError."""
        self.get(item_id)
        del self._items[item_id]
        logger.debug("Rimossa riga %s (totale righe: %s)", item_id, len(self._items))
        self._notify()

    def set_image(self, item_id: uuid.UUID, ref: str) -> None:
        if not ref or not str(ref).strip():
            raise BusinessValidationError("Referencia de imagen vacía")
        self._replace(item_id, image_ref=str(ref))

    def clear_image(self, item_id: uuid.UUID) -> None:
        self._replace(item_id, image_ref=None)

    def replace_all(self, items: list[Mapping[str, Any]]) -> None:
        """
        Sostituisce tutte le righe (usato dagli aggiornamenti via API).

        Tutte le righe vengono validate prima di toccare lo store.
        """
        staged: dict[uuid.UUID, LineItem] = {}
        for raw in items:
            data = dict(raw)
            item_id = data.pop("id", None) or uuid.uuid4()
            if not isinstance(item_id, uuid.UUID):
                item_id = uuid.UUID(str(item_id))
            if item_id in staged:
                raise BusinessValidationError(f"Artículo {item_id} duplicado")
            values = self._validated_patch(data)
            quantity = values.get("quantity", 1)
            unit_price = values.get("unit_price", Decimal("0"))
            staged[item_id] = LineItem(
                id=item_id,
                name=values.get("name", ""),
                description=values.get("description"),
                image_ref=values.get("image_ref"),
                quantity=quantity,
                unit_price=unit_price,
                line_total=line_total(quantity, unit_price),
            )
        self._items = staged
        self._notify()

    # ------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------

    def _replace(self, item_id: uuid.UUID, **values: Any) -> None:
        current = self.get(item_id)
        self._items[item_id] = current.model_copy(update=values)
        self._notify()

    @staticmethod
    def _validated_patch(patch: Mapping[str, Any]) -> dict[str, Any]:
        unknown = set(patch) - EDITABLE_FIELDS
        if "line_total" in unknown:
            raise BusinessValidationError("El total de la línea se calcula automáticamente")
        if unknown:
            raise BusinessValidationError(f"Campos no válidos: {', '.join(sorted(unknown))}")

        values: dict[str, Any] = {}
        for key, value in patch.items():
            if key == "quantity":
                values[key] = _coerce_quantity(value)
            elif key == "unit_price":
                values[key] = _coerce_price(value)
            elif key == "name":
                values[key] = (value or "").strip()
                if len(values[key]) > 255:
                    raise BusinessValidationError("El nombre no puede superar 255 caracteres")
            else:
                values[key] = value if value not in ("",) else None
        return values


__all__ = ["LineItemStore", "EDITABLE_FIELDS"]
