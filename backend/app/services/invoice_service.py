"""
Service Layer per la Fatturazione
Progetto: Field Service Manager (Gestionale Interventi)

Orchestrazione della creazione fattura:

    idempotenza → validazione body → appartenenza → numerazione →
    righe → caparre → scrittura a stadi → totali → memorizzazione risposta

più lettura del dettaglio ed emissione di una bozza.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from app.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    PreconditionFailedError,
)
from app.models import InvoiceStatus
from app.repositories.billing_repository import BillingRepository
from app.schemas.invoice import (
    CreateInvoiceRequest,
    InvoiceCreatedResponse,
    InvoiceDetail,
    InvoiceLineRead,
    IssueInvoiceRequest,
    IssueInvoiceResponse,
)
from app.services.billing import apply_deposits, assemble_lines
from app.services.idempotency_service import StoredResponse, run_idempotent
from app.services.invoice_numbering import next_invoice_number
from app.services.invoice_summary import project_summary, summarize_totals
from app.services.invoice_writer import InvoiceDraft, InvoiceWriter
from app.services.ownership_service import validate_request

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Identificativo della route per le chiavi di idempotenza
CREATE_INVOICE_ROUTE = "POST /api/invoices"


class InvoiceService:
    """
    Service per la creazione e gestione delle fatture.

    Fornisce metodi asincroni senza dipendenze da FastAPI: l'accesso
    allo storage passa dal BillingRepository ricevuto.

    Args:
        failure_policy: Policy per gli errori di applicazione caparre
            (vedi InvoiceWriter)
    """

    def __init__(self, failure_policy: Optional[str] = None) -> None:
        self.writer = InvoiceWriter(failure_policy)

    async def create_invoice(
        self,
        repo: BillingRepository,
        user_id: uuid.UUID,
        company_id: uuid.UUID,
        payload: Any,
        idempotency_key: Optional[str] = None,
    ) -> StoredResponse:
        """
        Crea una fattura con semantica at-most-once per chiave.

        Con chiave già completata restituisce la risposta memorizzata
        senza eseguire nulla. Una richiesta fallita non viene memorizzata.

        Returns:
            StoredResponse con status 201 e body della risposta

        Raises:
            pydantic.ValidationError: Body non valido (422)
            ConflictError: Chiave in uso da una richiesta in corso (409)
            AuthorizationError: Cliente di un'altra company (403)
            PreconditionFailedError: Job o caparra non validi (400)
            InvoicePersistenceError: Scrittura fallita e compensata (500)
        """
        return await run_idempotent(
            repo,
            user_id,
            company_id,
            CREATE_INVOICE_ROUTE,
            idempotency_key,
            lambda: self._create(repo, user_id, company_id, payload),
        )

    async def _create(
        self,
        repo: BillingRepository,
        user_id: uuid.UUID,
        company_id: uuid.UUID,
        payload: Any,
    ) -> StoredResponse:
        request = CreateInvoiceRequest.model_validate(payload)

        # Tutti i controlli prima della prima scrittura
        deposit_balances = await validate_request(repo, company_id, request)

        invoice_number = await next_invoice_number(repo, company_id)

        assembled = assemble_lines(request.lines)
        deposits = apply_deposits(
            deposit_balances, assembled.subtotal, len(assembled.lines) + 1
        )

        draft = InvoiceDraft(
            company_id=company_id,
            customer_id=request.customer_id,
            invoice_number=invoice_number,
            created_by=user_id,
            issue_now=request.issue_now,
            due_date=request.due_date,
            terms=request.terms,
            notes=request.notes,
        )
        invoice = await self.writer.write(repo, draft, assembled.lines, deposits.lines)

        summary = await project_summary(repo, invoice.id, deposits.total_applied)
        body = InvoiceCreatedResponse(
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            summary=summary,
        ).model_dump(mode="json", by_alias=True)

        logger.info(
            f"Fattura {invoice.invoice_number} creata: {len(assembled.lines)} righe, "
            f"{len(deposits.lines)} caparre applicate ({deposits.total_applied})"
        )
        return StoredResponse(status_code=201, body=body)

    async def get_invoice_detail(
        self,
        repo: BillingRepository,
        company_id: uuid.UUID,
        invoice_id: uuid.UUID,
    ) -> InvoiceDetail:
        """
        Recupera una fattura con righe e totali.

        Raises:
            NotFoundError: Fattura inesistente o di un'altra company
        """
        invoice = await repo.get_invoice(invoice_id)
        if invoice is None or invoice.company_id != company_id:
            raise NotFoundError(f"Fattura {invoice_id} non trovata")

        totals = await repo.invoice_totals(invoice.id)
        return InvoiceDetail(
            id=invoice.id,
            invoice_number=invoice.invoice_number,
            customer_id=invoice.customer_id,
            invoice_date=invoice.invoice_date,
            status=invoice.status,
            terms=invoice.terms,
            notes=invoice.notes,
            issued_at=invoice.issued_at,
            due_date=invoice.due_date,
            lines=[InvoiceLineRead.model_validate(line) for line in invoice.lines],
            summary=summarize_totals(totals, totals.deposit_credit),
        )

    async def issue_invoice(
        self,
        repo: BillingRepository,
        company_id: uuid.UUID,
        invoice_id: uuid.UUID,
        data: IssueInvoiceRequest,
    ) -> IssueInvoiceResponse:
        """
        Emette una fattura in bozza.

        Raises:
            AuthorizationError: Fattura inesistente o di un'altra company
            PreconditionFailedError: Fattura non in bozza
        """
        invoice = await repo.get_invoice(invoice_id)
        if invoice is None or invoice.company_id != company_id:
            raise AuthorizationError("Invoice not found or unauthorized")

        if not invoice.is_draft:
            raise PreconditionFailedError(
                f"Invoice is already {invoice.status}, cannot issue",
                extra={"invoice_id": str(invoice_id)},
            )

        invoice.status = InvoiceStatus.ISSUED.value
        invoice.issued_at = datetime.now(timezone.utc)
        invoice.due_date = data.due_date
        invoice.terms = data.terms
        invoice = await repo.update_invoice(invoice)

        logger.info(f"Fattura {invoice.invoice_number} emessa, scadenza {invoice.due_date}")
        return IssueInvoiceResponse(
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            status=invoice.status,
            issue_date=invoice.issued_at.date(),
            due_date=invoice.due_date,
        )
