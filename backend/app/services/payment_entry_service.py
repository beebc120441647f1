"""
Service per la registrazione degli incassi
Progetto: Field Service Manager (Gestionale Interventi)

- create_payment: registra un incasso o una caparra (idempotente per chiave)
- apply_payment: applica un incasso esistente a una fattura, entro il suo
  credito residuo e il saldo della fattura
"""

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any, Optional

from app.core.exceptions import AuthorizationError, PreconditionFailedError
from app.models import Payment, PaymentApplication
from app.repositories.billing_repository import BillingRepository
from app.schemas.payment import (
    CreatePaymentApplicationRequest,
    CreatePaymentRequest,
    PaymentApplicationCreatedResponse,
    PaymentCreatedResponse,
)
from app.services.idempotency_service import StoredResponse, run_idempotent
from app.services.invoice_summary import summarize_totals
from app.services.ownership_service import validate_customer
from app.services.payment_service import get_unapplied_amount

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Identificativo della route per le chiavi di idempotenza
CREATE_PAYMENT_ROUTE = "POST /api/payments"


class PaymentEntryService:
    """Registrazione di incassi e loro applicazione alle fatture."""

    @staticmethod
    async def create_payment(
        repo: BillingRepository,
        user_id: uuid.UUID,
        company_id: uuid.UUID,
        payload: Any,
        idempotency_key: Optional[str] = None,
    ) -> StoredResponse:
        """
        Registra un incasso; con depositType diventa una caparra.

        Returns:
            StoredResponse 201 con paymentId e credito disponibile

        Raises:
            pydantic.ValidationError: Body non valido (422)
            ConflictError: Chiave in uso da una richiesta in corso (409)
            AuthorizationError: Cliente o job fuori dalla company (403)
        """
        return await run_idempotent(
            repo,
            user_id,
            company_id,
            CREATE_PAYMENT_ROUTE,
            idempotency_key,
            lambda: PaymentEntryService._create_payment(repo, user_id, company_id, payload),
        )

    @staticmethod
    async def _create_payment(
        repo: BillingRepository,
        user_id: uuid.UUID,
        company_id: uuid.UUID,
        payload: Any,
    ) -> StoredResponse:
        request = CreatePaymentRequest.model_validate(payload)

        await validate_customer(repo, request.customer_id, company_id)

        if request.job_id is not None:
            job = await repo.get_job(request.job_id)
            if job is None or job.company_id != company_id or job.customer_id != request.customer_id:
                raise AuthorizationError(
                    "Job not found or does not belong to this customer",
                    extra={"job_id": str(request.job_id)},
                )

        payment = await repo.insert_payment(
            Payment(
                id=uuid.uuid4(),
                company_id=company_id,
                customer_id=request.customer_id,
                job_id=request.job_id,
                amount=request.amount,
                payment_date=date.today(),
                payment_method=request.method.value,
                is_deposit=request.deposit_type is not None,
                deposit_type=request.deposit_type.value if request.deposit_type else None,
                memo=request.memo,
                created_by=user_id,
            )
        )

        kind = f"caparra {payment.deposit_type}" if payment.is_deposit else "incasso"
        logger.info(f"Registrato {kind} {payment.id} di {payment.amount} per cliente {payment.customer_id}")

        body = PaymentCreatedResponse(
            payment_id=payment.id,
            unapplied_credit=payment.amount,
        ).model_dump(mode="json", by_alias=True)
        return StoredResponse(status_code=201, body=body)

    @staticmethod
    async def apply_payment(
        repo: BillingRepository,
        user_id: uuid.UUID,
        company_id: uuid.UUID,
        payload: Any,
    ) -> PaymentApplicationCreatedResponse:
        """
        Applica un incasso esistente a una fattura.

        Le caparre si consumano solo con depositIds alla creazione della
        fattura, che genera anche la riga deposit_applied.

        Raises:
            pydantic.ValidationError: Body non valido (422)
            AuthorizationError: Fattura o incasso fuori dalla company (403)
            PreconditionFailedError: Saldo fattura o credito incasso
                insufficiente, clienti diversi, incasso caparra (400)
            ConflictError: Credito consumato da una richiesta concorrente (409)
        """
        request = CreatePaymentApplicationRequest.model_validate(payload)

        invoice = await repo.get_invoice(request.invoice_id)
        if invoice is None or invoice.company_id != company_id:
            raise AuthorizationError("Invoice not found or unauthorized")

        totals = await repo.invoice_totals(invoice.id)
        balance = summarize_totals(totals, totals.deposit_credit).balance
        if balance < request.amount:
            raise PreconditionFailedError(
                f"Invoice only has balance of {balance}, cannot apply {request.amount}",
                extra={"invoice_id": str(invoice.id)},
            )

        payment = await repo.get_payment(request.payment_id)
        if payment is None or payment.company_id != company_id:
            raise AuthorizationError("Payment not found or unauthorized")
        if payment.customer_id != invoice.customer_id:
            raise PreconditionFailedError(
                "Payment and invoice belong to different customers",
                extra={"payment_id": str(payment.id)},
            )
        if payment.is_deposit:
            raise PreconditionFailedError(
                f"Deposit {payment.id} is applied through depositIds when creating an invoice",
                extra={"payment_id": str(payment.id)},
            )

        unapplied = await get_unapplied_amount(repo, payment.id)
        if unapplied < request.amount:
            raise PreconditionFailedError(
                f"Payment only has {unapplied} unapplied, cannot apply {request.amount}",
                extra={"payment_id": str(payment.id)},
            )

        application = PaymentApplication(
            id=uuid.uuid4(),
            payment_id=payment.id,
            invoice_id=invoice.id,
            applied_amount=request.amount,
            applied_at=datetime.now(timezone.utc),
            applied_by=user_id,
        )
        # Residuo ricontrollato sotto lock: ConflictError se nel frattempo è stato consumato
        await repo.insert_payment_applications([application])

        totals = await repo.invoice_totals(invoice.id)
        remaining = summarize_totals(totals, totals.deposit_credit).balance
        logger.info(
            f"Incasso {payment.id}: applicati {request.amount} alla fattura "
            f"{invoice.invoice_number}, residuo fattura {remaining}"
        )
        return PaymentApplicationCreatedResponse(
            payment_application_id=application.id,
            payment_id=payment.id,
            remaining_balance=remaining,
        )
