"""
Scrittura a stadi della fattura con compensazione
Progetto: Field Service Manager (Gestionale Interventi)

Lo storage non offre una transazione su più statement al chiamante:
ogni stadio è una scrittura durevole e un fallimento viene compensato
cancellando la fattura già scritta.

Stadi (strettamente sequenziali):
1. Insert fattura (issued con scadenza, oppure draft)
2. Insert righe del chiamante          → fallimento: delete fattura
3. Insert righe caparra                → fallimento: delete fattura
4. Insert PaymentApplication           → dipende dalla policy:
   - "continue": errore registrato e ignorato, fattura mantenuta
   - "rollback": delete fattura
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.exceptions import ConflictError, InvoicePersistenceError
from app.models import Invoice, InvoiceStatus, PaymentApplication
from app.repositories.billing_repository import BillingRepository
from app.services.billing import CallerLine, DepositAppliedLine

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Errori attesi dagli stadi di scrittura
WRITE_ERRORS = (SQLAlchemyError, ConflictError)


@dataclass(frozen=True)
class InvoiceDraft:
    """Dati di testata della fattura da scrivere."""

    company_id: uuid.UUID
    customer_id: uuid.UUID
    invoice_number: str
    created_by: uuid.UUID
    issue_now: bool = False
    due_date: Optional[date] = None
    terms: Optional[str] = None
    notes: Optional[str] = None


class InvoiceWriter:
    """
    Esegue la sequenza di scrittura della fattura.

    Args:
        failure_policy: Comportamento su errore allo stadio 4
            ("continue" o "rollback"); default da settings
    """

    def __init__(self, failure_policy: Optional[str] = None) -> None:
        self.failure_policy = failure_policy or settings.payment_application_failure_policy

    def build_invoice(self, draft: InvoiceDraft) -> Invoice:
        """Testata della fattura: emessa con scadenza oppure bozza senza scadenza."""
        today = date.today()
        invoice = Invoice(
            id=uuid.uuid4(),
            company_id=draft.company_id,
            customer_id=draft.customer_id,
            invoice_number=draft.invoice_number,
            invoice_date=today,
            terms=draft.terms,
            notes=draft.notes,
            created_by=draft.created_by,
        )
        if draft.issue_now:
            invoice.status = InvoiceStatus.ISSUED.value
            invoice.issued_at = datetime.now(timezone.utc)
            invoice.due_date = draft.due_date or today + timedelta(
                days=settings.invoice_default_due_days
            )
        else:
            invoice.status = InvoiceStatus.DRAFT.value
            invoice.due_date = None
        return invoice

    async def write(
        self,
        repo: BillingRepository,
        draft: InvoiceDraft,
        lines: Sequence[CallerLine],
        deposit_lines: Sequence[DepositAppliedLine],
    ) -> Invoice:
        """
        Scrive fattura, righe, righe caparra e applicazioni.

        Returns:
            La fattura scritta

        Raises:
            InvoicePersistenceError: Uno stadio è fallito; la compensazione
                (se prevista) è già stata eseguita
        """
        # Stadio 1: fattura
        try:
            invoice = await repo.insert_invoice(self.build_invoice(draft))
        except WRITE_ERRORS as e:
            logger.error(f"Insert fattura {draft.invoice_number} fallito: {e}")
            raise InvoicePersistenceError(
                f"Creazione fattura {draft.invoice_number} non riuscita"
            ) from e
        logger.info(f"Fattura {invoice.invoice_number} scritta (id={invoice.id}, stato={invoice.status})")

        # Stadio 2: righe del chiamante
        try:
            await repo.insert_lines([line.to_model(invoice.id) for line in lines])
        except WRITE_ERRORS as e:
            await self._compensate(repo, invoice, "righe")
            raise InvoicePersistenceError(
                f"Scrittura righe della fattura {invoice.invoice_number} non riuscita"
            ) from e

        # Stadio 3: righe caparra
        try:
            await repo.insert_lines([line.to_model(invoice.id) for line in deposit_lines])
        except WRITE_ERRORS as e:
            await self._compensate(repo, invoice, "righe caparra")
            raise InvoicePersistenceError(
                f"Scrittura caparre della fattura {invoice.invoice_number} non riuscita"
            ) from e

        # Stadio 4: applicazioni delle caparre
        if deposit_lines:
            await self._write_applications(repo, invoice, draft.created_by, deposit_lines)

        return invoice

    async def _write_applications(
        self,
        repo: BillingRepository,
        invoice: Invoice,
        actor_id: uuid.UUID,
        deposit_lines: Sequence[DepositAppliedLine],
    ) -> None:
        applied_at = datetime.now(timezone.utc)
        applications = [
            PaymentApplication(
                id=uuid.uuid4(),
                payment_id=line.payment_id,
                invoice_id=invoice.id,
                applied_amount=abs(line.unit_price),
                applied_at=applied_at,
                applied_by=actor_id,
            )
            for line in deposit_lines
        ]
        try:
            await repo.insert_payment_applications(applications)
        except WRITE_ERRORS as e:
            if self.failure_policy == "rollback":
                await self._compensate(repo, invoice, "applicazioni caparra")
                raise InvoicePersistenceError(
                    f"Applicazione caparre sulla fattura {invoice.invoice_number} non riuscita"
                ) from e
            # policy "continue": la fattura resta con le righe caparra
            logger.error(
                f"Applicazione caparre fallita per fattura {invoice.invoice_number}: "
                f"fattura mantenuta senza PaymentApplication",
                exc_info=True,
            )

    async def _compensate(self, repo: BillingRepository, invoice: Invoice, stage: str) -> None:
        """Cancella la fattura dopo un errore allo stadio indicato."""
        logger.warning(
            f"Stadio '{stage}' fallito: cancellazione fattura {invoice.invoice_number} (id={invoice.id})"
        )
        try:
            await repo.delete_invoice(invoice.id)
        except SQLAlchemyError:
            logger.error(
                f"Compensazione fallita: fattura {invoice.invoice_number} (id={invoice.id}) "
                f"potrebbe essere rimasta nello storage",
                exc_info=True,
            )
