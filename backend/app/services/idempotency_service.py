"""
Service per le chiavi di idempotenza
Progetto: Field Service Manager (Gestionale Interventi)

Protocollo claim-before-execute:
1. claim: inserisce la chiave in stato pending (vincolo unique sulla tupla)
2. la richiesta viene eseguita solo da chi ha ottenuto la chiave
3. complete: memorizza status e body della risposta 2xx
4. release: in caso di errore la chiave viene cancellata, così il client
   può ritentare

Una chiave pending ha un lease (idempotency_pending_ttl_seconds): se il
processo muore prima del release, scaduto il lease la chiave può essere
ripresa da una nuova richiesta.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.exceptions import BusinessValidationError, ConflictError
from app.models.idempotency import IDEMPOTENCY_KEY_MAX_LENGTH
from app.repositories.billing_repository import BillingRepository

# Logger per questo modulo
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredResponse:
    """Coppia (status, body) restituita al client o riprodotta da una chiave."""

    status_code: int
    body: Dict[str, Any]


def get_idempotency_key(headers: Mapping[str, str]) -> Optional[str]:
    """
    Legge la chiave di idempotenza dagli header della richiesta.

    `headers` è lo starlette Headers della richiesta, con lookup
    case-insensitive.

    Returns:
        La chiave senza spazi esterni, None se assente o vuota

    Raises:
        BusinessValidationError: Chiave più lunga di IDEMPOTENCY_KEY_MAX_LENGTH
    """
    key = headers.get(settings.idempotency_header, "").strip() or None
    if key is not None and len(key) > IDEMPOTENCY_KEY_MAX_LENGTH:
        raise BusinessValidationError(
            f"{settings.idempotency_header} supera {IDEMPOTENCY_KEY_MAX_LENGTH} caratteri",
            error_code="IDEMPOTENCY_KEY_TOO_LONG",
        )
    return key


class IdempotencyService:
    """Gestione del ciclo di vita di una chiave di idempotenza."""

    @staticmethod
    async def claim(
        repo: BillingRepository,
        user_id: uuid.UUID,
        company_id: uuid.UUID,
        route: str,
        key: str,
    ) -> Optional[StoredResponse]:
        """
        Acquisisce la chiave oppure restituisce la risposta memorizzata.

        Returns:
            None se la richiesta deve essere eseguita, altrimenti la
            risposta originale da riprodurre senza eseguire nulla

        Raises:
            ConflictError: Una richiesta con la stessa chiave è ancora in corso
        """
        lease = timedelta(seconds=settings.idempotency_pending_ttl_seconds)
        if await repo.claim_idempotency_key(user_id, company_id, route, key, lease):
            return None

        record = await repo.get_idempotency_record(user_id, company_id, route, key)
        if record is None or not record.is_completed:
            raise ConflictError(
                "Una richiesta con la stessa chiave di idempotenza è ancora in elaborazione",
                error_code="IDEMPOTENCY_KEY_IN_USE",
            )

        logger.info(f"Replay risposta memorizzata per chiave {key!r} su {route}")
        return StoredResponse(status_code=record.response_status, body=record.response_body)

    @staticmethod
    async def complete(
        repo: BillingRepository,
        user_id: uuid.UUID,
        company_id: uuid.UUID,
        route: str,
        key: str,
        response: StoredResponse,
    ) -> None:
        """Memorizza la risposta; solo le risposte 2xx vengono salvate."""
        if not 200 <= response.status_code < 300:
            await IdempotencyService.release(repo, user_id, company_id, route, key)
            return
        await repo.complete_idempotency_key(
            user_id, company_id, route, key, response.status_code, response.body
        )

    @staticmethod
    async def release(
        repo: BillingRepository,
        user_id: uuid.UUID,
        company_id: uuid.UUID,
        route: str,
        key: str,
    ) -> None:
        """
        Cancella la chiave pending dopo un errore.

        Viene chiamata mentre un'altra eccezione è in propagazione: un
        errore qui viene solo registrato, la chiave resta pending fino
        alla scadenza del lease.
        """
        try:
            await repo.release_idempotency_key(user_id, company_id, route, key)
        except SQLAlchemyError:
            logger.error(f"Impossibile rilasciare la chiave {key!r} su {route}", exc_info=True)


async def run_idempotent(
    repo: BillingRepository,
    user_id: uuid.UUID,
    company_id: uuid.UUID,
    route: str,
    key: Optional[str],
    operation: Callable[[], Awaitable[StoredResponse]],
) -> StoredResponse:
    """
    Esegue `operation` al più una volta per (utente, company, route, chiave).

    Senza chiave l'operazione viene eseguita e basta. Con chiave:
    replay della risposta memorizzata, 409 se un'altra richiesta è in
    corso, altrimenti esecuzione e memorizzazione della risposta.
    Qualsiasi interruzione, cancellazione del task compresa, rilascia
    la chiave.
    """
    if not key:
        return await operation()

    stored = await IdempotencyService.claim(repo, user_id, company_id, route, key)
    if stored is not None:
        return stored

    succeeded = False
    try:
        response = await operation()
        succeeded = True
    finally:
        if not succeeded:
            await IdempotencyService.release(repo, user_id, company_id, route, key)

    try:
        await IdempotencyService.complete(repo, user_id, company_id, route, key, response)
    except SQLAlchemyError:
        # L'operazione è avvenuta: la chiave resta pending e blocca i duplicati
        # finché il lease non scade
        logger.error(f"Memorizzazione risposta fallita per chiave {key!r} su {route}", exc_info=True)
    return response
