"""
Eccezioni Custom per l'applicazione.
Progetto: Field Service Manager (Gestionale Interventi)

Definisce eccezioni specifiche del dominio per una gestione
centralizzata degli errori.

NOTA: BusinessValidationError è volutamente distinta da pydantic.ValidationError.
- pydantic.ValidationError: errori di formato/tipo nel body della richiesta (→ 422 con dettaglio campi)
- BusinessValidationError: violazioni delle regole di business logic (→ 422)
"""

from typing import Any, Dict, Optional

__all__ = [
    "AppException",
    "NotFoundError",
    "BusinessValidationError",
    "PreconditionFailedError",
    "ConflictError",
    "AuthorizationError",
    "InvoicePersistenceError",
]


class AppException(Exception):
    """
    Base exception per l'applicazione.

    Tutte le eccezioni custom ereditano da questa classe base.

    Attributes:
        status_code: HTTP status code da restituire al client
        error_code: Identificativo univoco dell'errore per il frontend
        detail: Messaggio di errore leggibile per l'utente
        extra: Dizionario con dati aggiuntivi per il frontend
    """

    # Default values - overridden in subclasses
    status_code: int = 500
    error_code: str = "INTERNAL_SERVER_ERROR"
    default_detail: str = "Errore interno del server"

    def __init__(
        self,
        detail: Optional[str] = None,
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Inizializza l'eccezione.

        Args:
            detail: Messaggio di errore dettagliato (default: quello di classe)
            error_code: Identificativo univoco (default: quello di classe)
            extra: Dati aggiuntivi da passare al frontend (default: None)
        """
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
    """
    Eccezione sollevata quando una risorsa non viene trovata.
    """

    status_code: int = 404
    error_code: str = "RESOURCE_NOT_FOUND"
    default_detail: str = "Risorsa non trovata"


class BusinessValidationError(ValueError, AppException):
    """
    Eccezione sollevata per violazioni delle regole di business logic.

    Eredita da ValueError per essere catturata dai validatori Pydantic:
    sollevata dentro un model_validator diventa un errore di campo
    nel 422 strutturato.

    Esempi di utilizzo:
        - "Il job X è referenziato da più di una riga"
        - "La riga referenzia un job non presente in jobIds"
    """

    status_code: int = 422
    error_code: str = "BUSINESS_VALIDATION_ERROR"
    default_detail: str = "Validazione dati fallita"

    def __init__(
        self,
        detail: Optional[str] = None,
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        # Chiama AppException.__init__ direttamente per evitare ValueError
        AppException.__init__(self, detail, error_code, extra)


class PreconditionFailedError(AppException):
    """
    Eccezione sollevata quando un'entità referenziata non soddisfa
    la precondizione richiesta (job non completato, caparra senza
    credito residuo, fattura non in bozza, utente senza company).

    Il messaggio nomina sempre l'id che ha causato il fallimento.
    """

    status_code: int = 400
    error_code: str = "PRECONDITION_FAILED"
    default_detail: str = "Precondizione non soddisfatta"


class ConflictError(AppException):
    """
    Eccezione sollevata per conflitti di stato.

    Utilizzata quando una richiesta con la stessa chiave di idempotenza
    è ancora in elaborazione.
    """

    status_code: int = 409
    error_code: str = "CONFLICT_STATE"
    default_detail: str = "Conflitto di stato"


class AuthorizationError(AppException):
    """
    Eccezione sollevata per accesso non autorizzato.

    Il messaggio non distingue tra risorsa inesistente e risorsa di
    un'altra company, per non rivelarne l'esistenza.
    """

    status_code: int = 403
    error_code: str = "FORBIDDEN"
    default_detail: str = "Accesso non autorizzato"


class InvoicePersistenceError(AppException):
    """
    Eccezione sollevata quando la sequenza di scrittura della fattura
    fallisce dopo il primo insert. Quando viene sollevata la
    compensazione è già stata eseguita.
    """

    status_code: int = 500
    error_code: str = "INVOICE_WRITE_FAILED"
    default_detail: str = "Creazione fattura non riuscita"
