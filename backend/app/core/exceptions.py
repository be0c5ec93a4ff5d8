"""
Eccezioni Custom per l'applicazione.
Progetto: Gestionale Preventivi (Quotation Manager)

Tassonomia degli errori di dominio. Ogni eccezione porta con sé lo
status HTTP, un codice stabile per il frontend e un dizionario `extra`
opzionale (es. la lista degli errori per campo di un preventivo).

NOTA: BusinessValidationError è volutamente distinta da pydantic.ValidationError.
- pydantic.ValidationError: errori di formato/tipo nei dati di input (gestiti da FastAPI → 422)
- BusinessValidationError: violazioni delle regole di business (gestiti dal nostro handler → 422)
"""

from typing import Any, Dict, List, Optional

__all__ = [
    "AppException",
    "NotFoundError",
    "DuplicateError",
    "BusinessValidationError",
    "ValidationError",       # alias di BusinessValidationError
    "QuotationValidationError",
    "FieldError",
    "ConflictError",
    "AuthorizationError",
    "ComputationInconsistencyError",
    "PersistenceError",
    "ExternalServiceError",
]


class AppException(Exception):
    """
    Base exception per l'applicazione.

    Attributes:
        status_code: HTTP status code da restituire al client
        error_code: Identificativo univoco dell'errore per il frontend
        detail: Messaggio di errore leggibile per l'utente
        extra: Dizionario con dati aggiuntivi per il frontend
    """

    status_code: int = 500
    error_code: str = "INTERNAL_SERVER_ERROR"
    default_detail: str = "Error interno del servidor"

    def __init__(
        self,
        detail: Optional[str] = None,
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.detail = detail if detail is not None else self.default_detail
        self.error_code = error_code if error_code is not None else self.error_code
        self.extra = extra
        self.status_code = self.__class__.status_code
        super().__init__(self.detail)

    def to_dict(self) -> Dict[str, Any]:
        """Corpo JSON della risposta di errore."""
        body: Dict[str, Any] = {"detail": self.detail, "error_code": self.error_code}
        if self.extra:
            body.update(self.extra)
        return body


class NotFoundError(AppException):
    """Risorsa inesistente (o non visibile all'utente corrente)."""

    status_code: int = 404
    error_code: str = "RESOURCE_NOT_FOUND"
    default_detail: str = "Recurso no encontrado"


class DuplicateError(AppException):
    """Violazione di un vincolo di unicità (es. email già registrata)."""

    status_code: int = 409
    error_code: str = "DUPLICATE_RESOURCE"
    default_detail: str = "El recurso ya existe"


class BusinessValidationError(ValueError, AppException):
    """
    Eccezione sollevata per violazioni delle regole di business logic.

    Eredita da ValueError per essere catturata dai validatori Pydantic.

    Esempi di utilizzo:
        - "La cantidad debe ser al menos 1"
        - "Transizione di stato non consentita"
    """

    status_code: int = 422
    error_code: str = "BUSINESS_VALIDATION_ERROR"
    default_detail: str = "Validación de datos fallida"

    def __init__(
        self,
        detail: Optional[str] = None,
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        # Chiama AppException.__init__ direttamente per evitare ValueError
        AppException.__init__(self, detail, error_code, extra)


# Alias per compatibilità
ValidationError = BusinessValidationError


class FieldError(dict):
    """Errore su un singolo campo: {"field": ..., "message": ...}."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(field=field, message=message)

    @property
    def field(self) -> str:
        return self["field"]

    @property
    def message(self) -> str:
        return self["message"]


class QuotationValidationError(BusinessValidationError):
    """
    Validazione di un preventivo fallita.

    Raccoglie tutti gli errori per campo in un'unica eccezione, così che
    il frontend possa evidenziarli inline. Nessun dato viene persistito
    quando questa eccezione viene sollevata.

    Attributes:
        errors: Lista di FieldError
    """

    error_code: str = "QUOTATION_VALIDATION_ERROR"
    default_detail: str = "La cotización contiene errores"

    def __init__(
        self,
        errors: List[FieldError],
        detail: Optional[str] = None,
    ) -> None:
        self.errors = list(errors)
        super().__init__(detail, extra={"errors": [dict(e) for e in self.errors]})

    def fields(self) -> List[str]:
        """Nomi dei campi in errore, nell'ordine di rilevazione."""
        return [e["field"] for e in self.errors]


class ConflictError(AppException):
    """
    Conflitto di stato.

    Utilizzata quando un'operazione non è ammessa nello stato corrente
    della risorsa (es. modifica di un preventivo già inviato).
    """

    status_code: int = 409
    error_code: str = "CONFLICT_STATE"
    default_detail: str = "Conflicto de estado"


class AuthorizationError(AppException):
    """
    Accesso non autorizzato.

    Esempi di utilizzo:
        - preventivo appartenente a un altro utente
    """

    status_code: int = 403
    error_code: str = "FORBIDDEN"
    default_detail: str = "Acceso no autorizado"


class ComputationInconsistencyError(AppException):
    """
    Invariante di calcolo violata.

    Sollevata quando il totale di una riga non coincide con
    quantità × prezzo unitario. Non deve mai verificarsi; il rendering
    ricalcola lo snapshot invece di propagarla.
    """

    status_code: int = 500
    error_code: str = "COMPUTATION_INCONSISTENCY"
    default_detail: str = "Los totales de la cotización son inconsistentes"


class PersistenceError(AppException):
    """
    Errore di database o di rete durante il salvataggio.

    È sempre ripetibile: la bozza in memoria non viene toccata.
    """

    status_code: int = 503
    error_code: str = "PERSISTENCE_ERROR"
    default_detail: str = "No se pudo guardar la cotización, intente de nuevo"

    def __init__(
        self,
        detail: Optional[str] = None,
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        merged = {"retryable": True}
        if extra:
            merged.update(extra)
        super().__init__(detail, error_code, merged)


class ExternalServiceError(AppException):
    """Servizio esterno (AI, trascrizione vocale) non disponibile."""

    status_code: int = 503
    error_code: str = "EXTERNAL_SERVICE_UNAVAILABLE"
    default_detail: str = "Servicio externo no disponible"
