"""
Validazione di appartenenza e precondizioni
Progetto: Field Service Manager (Gestionale Interventi)

Tutti i controlli avvengono prima della prima scrittura: un fallimento
interrompe la richiesta senza nulla da compensare.

I controlli sono eseguiti uno alla volta: la AsyncSession della
richiesta non supporta statement concorrenti.
"""

import logging
import uuid
from decimal import Decimal
from typing import Dict

from app.core.exceptions import AuthorizationError, PreconditionFailedError
from app.repositories.billing_repository import BillingRepository
from app.schemas.invoice import CreateInvoiceRequest
from app.services.payment_service import get_unapplied_amount

# Logger per questo modulo
logger = logging.getLogger(__name__)


async def validate_customer(
    repo: BillingRepository, customer_id: uuid.UUID, company_id: uuid.UUID
) -> None:
    """
    Raises:
        AuthorizationError: Cliente inesistente o di un'altra company
            (i due casi non sono distinguibili dal chiamante)
    """
    customer = await repo.get_customer(customer_id)
    if customer is None or customer.company_id != company_id:
        raise AuthorizationError("Customer not found or unauthorized")


async def validate_job(
    repo: BillingRepository,
    job_id: uuid.UUID,
    customer_id: uuid.UUID,
    company_id: uuid.UUID,
) -> None:
    """
    Il job deve appartenere a company e cliente ed essere completato.

    Raises:
        PreconditionFailedError: Con l'id del job nel messaggio
    """
    job = await repo.get_job(job_id)
    if job is None or job.company_id != company_id or job.customer_id != customer_id:
        raise PreconditionFailedError(
            f"Job {job_id} not found or does not belong to this customer",
            extra={"job_id": str(job_id)},
        )
    if not job.is_done:
        raise PreconditionFailedError(
            f"Job {job_id} is not completed (status: {job.status})",
            extra={"job_id": str(job_id)},
        )


async def validate_deposit(
    repo: BillingRepository,
    deposit_id: uuid.UUID,
    customer_id: uuid.UUID,
    company_id: uuid.UUID,
) -> Decimal:
    """
    La caparra deve appartenere a company e cliente e avere credito residuo.

    Returns:
        Credito residuo della caparra

    Raises:
        PreconditionFailedError: Con l'id della caparra nel messaggio
    """
    payment = await repo.get_payment(deposit_id)
    if (
        payment is None
        or payment.company_id != company_id
        or payment.customer_id != customer_id
        or not payment.is_deposit
    ):
        raise PreconditionFailedError(
            f"Deposit {deposit_id} not found or not a deposit of this customer",
            extra={"deposit_id": str(deposit_id)},
        )

    unapplied = await get_unapplied_amount(repo, deposit_id)
    if unapplied <= 0:
        raise PreconditionFailedError(
            f"Deposit {deposit_id} has no unapplied balance",
            extra={"deposit_id": str(deposit_id)},
        )
    return unapplied


async def validate_request(
    repo: BillingRepository,
    company_id: uuid.UUID,
    request: CreateInvoiceRequest,
) -> Dict[uuid.UUID, Decimal]:
    """
    Valida cliente, job e caparre nell'ordine della richiesta.

    Returns:
        {deposit_id: credito residuo} nell'ordine indicato dal chiamante
    """
    await validate_customer(repo, request.customer_id, company_id)

    for job_id in request.job_ids:
        await validate_job(repo, job_id, request.customer_id, company_id)

    balances: Dict[uuid.UUID, Decimal] = {}
    for deposit_id in request.deposit_ids:
        balances[deposit_id] = await validate_deposit(
            repo, deposit_id, request.customer_id, company_id
        )

    logger.debug(
        f"Richiesta valida: cliente {request.customer_id}, "
        f"{len(request.job_ids)} job, {len(balances)} caparre"
    )
    return balances
