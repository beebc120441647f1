"""
Repository per la Fatturazione
Progetto: Field Service Manager (Gestionale Interventi)

Unico punto di accesso allo storage per il percorso di creazione fattura.

Ogni metodo di scrittura esegue il proprio commit: una chiamata equivale
a una scrittura durevole, e i passi successivi non possono annullarla
se non con una compensazione esplicita (es. delete_invoice).
In caso di SQLAlchemyError la sessione viene riportata in stato pulito
con rollback e l'eccezione viene rilanciata al chiamante.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import and_, case, delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import ConflictError
from app.models import (
    CompanyInvoiceCounter,
    CompanyMember,
    Customer,
    DEPOSIT_APPLIED_LINE_TYPE,
    IdempotencyRecord,
    IdempotencyState,
    Invoice,
    InvoiceLine,
    Job,
    Payment,
    PaymentApplication,
    User,
)

# Logger per questo modulo
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvoiceTotals:
    """
    Aggregati grezzi (non arrotondati) letti dalle righe persistite.

    Attributes:
        subtotal: Σ quantity * unit_price sulle righe non caparra
        tax: Σ imponibile * tax_rate sulle righe imponibili non caparra
        deposit_credit: Σ |importo| delle righe deposit_applied
        paid: Σ applicazioni di incassi che non sono caparre
    """

    subtotal: Decimal
    tax: Decimal
    deposit_credit: Decimal
    paid: Decimal


class BillingRepository:
    """
    Accesso allo storage per fatture, righe, incassi e chiavi di idempotenza.

    Un'istanza per richiesta, costruita attorno alla AsyncSession di get_db.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    # ------------------------------------------------------------
    # Letture anagrafiche
    # ------------------------------------------------------------
    async def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_first_company_id(self, user_id: uuid.UUID) -> Optional[uuid.UUID]:
        """Prima company dell'utente in ordine di membership."""
        result = await self.db.execute(
            select(CompanyMember.company_id)
            .where(CompanyMember.user_id == user_id)
            .order_by(CompanyMember.created_at.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_customer(self, customer_id: uuid.UUID) -> Optional[Customer]:
        result = await self.db.execute(select(Customer).where(Customer.id == customer_id))
        return result.scalar_one_or_none()

    async def get_job(self, job_id: uuid.UUID) -> Optional[Job]:
        result = await self.db.execute(select(Job).where(Job.id == job_id))
        return result.scalar_one_or_none()

    async def get_payment(self, payment_id: uuid.UUID) -> Optional[Payment]:
        result = await self.db.execute(select(Payment).where(Payment.id == payment_id))
        return result.scalar_one_or_none()

    async def get_applied_total(self, payment_id: uuid.UUID) -> Decimal:
        """Σ applied_amount delle applicazioni dell'incasso (0 se nessuna)."""
        result = await self.db.execute(
            select(func.coalesce(func.sum(PaymentApplication.applied_amount), 0))
            .where(PaymentApplication.payment_id == payment_id)
        )
        return Decimal(result.scalar_one())

    async def list_customer_payments(
        self,
        company_id: uuid.UUID,
        customer_id: uuid.UUID,
        deposit_type: Optional[str] = None,
    ) -> List[Tuple[Payment, Decimal]]:
        """
        Incassi del cliente con il totale già applicato, dal più recente.

        Returns:
            Lista di coppie (payment, applied_total)
        """
        applied = (
            select(
                PaymentApplication.payment_id,
                func.sum(PaymentApplication.applied_amount).label("applied_total"),
            )
            .group_by(PaymentApplication.payment_id)
            .subquery()
        )
        stmt = (
            select(Payment, func.coalesce(applied.c.applied_total, 0))
            .outerjoin(applied, applied.c.payment_id == Payment.id)
            .where(
                Payment.company_id == company_id,
                Payment.customer_id == customer_id,
            )
            .order_by(Payment.payment_date.desc(), Payment.created_at.desc())
        )
        if deposit_type is not None:
            stmt = stmt.where(Payment.deposit_type == deposit_type)

        result = await self.db.execute(stmt)
        return [(payment, Decimal(total)) for payment, total in result.all()]

    # ------------------------------------------------------------
    # Numerazione
    # ------------------------------------------------------------
    async def increment_invoice_counter(self, company_id: uuid.UUID, start: int) -> int:
        """
        Incrementa (o crea a `start`) il contatore della company.

        Un solo statement INSERT ... ON CONFLICT DO UPDATE ... RETURNING:
        l'incremento è atomico lato database e viene committato subito,
        quindi un numero assegnato non viene mai riutilizzato.
        """
        stmt = pg_insert(CompanyInvoiceCounter).values(
            company_id=company_id,
            last_number=start,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[CompanyInvoiceCounter.company_id],
            set_={"last_number": CompanyInvoiceCounter.last_number + 1},
        ).returning(CompanyInvoiceCounter.last_number)

        try:
            result = await self.db.execute(stmt)
            number = result.scalar_one()
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        return number

    # ------------------------------------------------------------
    # Idempotenza
    # ------------------------------------------------------------
    def _idempotency_filter(
        self, user_id: uuid.UUID, company_id: uuid.UUID, route: str, key: str
    ):
        return and_(
            IdempotencyRecord.user_id == user_id,
            IdempotencyRecord.company_id == company_id,
            IdempotencyRecord.route == route,
            IdempotencyRecord.idempotency_key == key,
        )

    async def get_idempotency_record(
        self, user_id: uuid.UUID, company_id: uuid.UUID, route: str, key: str
    ) -> Optional[IdempotencyRecord]:
        result = await self.db.execute(
            select(IdempotencyRecord).where(
                self._idempotency_filter(user_id, company_id, route, key)
            )
        )
        return result.scalar_one_or_none()

    async def claim_idempotency_key(
        self,
        user_id: uuid.UUID,
        company_id: uuid.UUID,
        route: str,
        key: str,
        stale_after: timedelta,
    ) -> bool:
        """
        Inserisce la chiave in stato pending, o riprende un lease scaduto.

        Se la tupla esiste già ed è ancora pending da più di `stale_after`
        (richiesta morta senza release), un UPDATE condizionale rinnova il
        lease: solo una delle richieste concorrenti ottiene la riga.

        Returns:
            True se questa richiesta ha ottenuto la chiave, False se
            esiste un record completato o un pending ancora valido.
        """
        insert_stmt = (
            pg_insert(IdempotencyRecord)
            .values(
                id=uuid.uuid4(),
                user_id=user_id,
                company_id=company_id,
                route=route,
                idempotency_key=key,
                state=IdempotencyState.PENDING.value,
            )
            .on_conflict_do_nothing(constraint="uq_request_idempotency_key")
            .returning(IdempotencyRecord.id)
        )
        takeover_stmt = (
            update(IdempotencyRecord)
            .where(
                self._idempotency_filter(user_id, company_id, route, key),
                IdempotencyRecord.state == IdempotencyState.PENDING.value,
                IdempotencyRecord.updated_at < func.now() - stale_after,
            )
            .values(updated_at=func.now())
            .returning(IdempotencyRecord.id)
        )
        try:
            claimed = (await self.db.execute(insert_stmt)).scalar_one_or_none()
            if claimed is None:
                claimed = (await self.db.execute(takeover_stmt)).scalar_one_or_none()
                if claimed is not None:
                    logger.warning(f"Lease scaduto ripreso per chiave {key!r} su {route}")
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        return claimed is not None

    async def complete_idempotency_key(
        self,
        user_id: uuid.UUID,
        company_id: uuid.UUID,
        route: str,
        key: str,
        status_code: int,
        body: Dict[str, Any],
    ) -> None:
        await self.db.execute(
            update(IdempotencyRecord)
            .where(self._idempotency_filter(user_id, company_id, route, key))
            .values(
                state=IdempotencyState.COMPLETED.value,
                response_status=status_code,
                response_body=body,
            )
        )
        await self._commit()

    async def release_idempotency_key(
        self, user_id: uuid.UUID, company_id: uuid.UUID, route: str, key: str
    ) -> None:
        """Cancella una chiave rimasta pending."""
        await self.db.execute(
            delete(IdempotencyRecord).where(
                self._idempotency_filter(user_id, company_id, route, key),
                IdempotencyRecord.state == IdempotencyState.PENDING.value,
            )
        )
        await self._commit()

    # ------------------------------------------------------------
    # Scritture incassi
    # ------------------------------------------------------------
    async def insert_payment(self, payment: Payment) -> Payment:
        self.db.add(payment)
        await self._commit()
        return payment

    # ------------------------------------------------------------
    # Scritture fattura
    # ------------------------------------------------------------
    async def insert_invoice(self, invoice: Invoice) -> Invoice:
        self.db.add(invoice)
        await self._commit()
        return invoice

    async def insert_lines(self, lines: Sequence[InvoiceLine]) -> None:
        if not lines:
            return
        self.db.add_all(list(lines))
        await self._commit()

    async def delete_invoice(self, invoice_id: uuid.UUID) -> None:
        """Cancella la fattura; righe e applicazioni seguono per ON DELETE CASCADE."""
        await self.db.execute(delete(Invoice).where(Invoice.id == invoice_id))
        await self._commit()

    async def insert_payment_applications(
        self, applications: Sequence[PaymentApplication]
    ) -> None:
        """
        Registra applicazioni di caparre o di incassi a una fattura.

        Ogni incasso coinvolto viene bloccato con SELECT ... FOR UPDATE
        (in ordine di id) e il suo residuo ricalcolato: se un'applicazione
        lo porterebbe sotto zero nessuna riga viene scritta.

        Raises:
            ConflictError: Residuo insufficiente su almeno un incasso
        """
        if not applications:
            return

        requested: Dict[uuid.UUID, Decimal] = {}
        for application in applications:
            requested[application.payment_id] = (
                requested.get(application.payment_id, Decimal("0"))
                + application.applied_amount
            )

        try:
            for payment_id in sorted(requested, key=str):
                result = await self.db.execute(
                    select(Payment.amount).where(Payment.id == payment_id).with_for_update()
                )
                amount = result.scalar_one()
                applied = await self.get_applied_total(payment_id)
                if amount - applied < requested[payment_id]:
                    raise ConflictError(
                        f"L'incasso {payment_id} non ha più credito sufficiente",
                        extra={"payment_id": str(payment_id)},
                    )

            self.db.add_all(list(applications))
            await self.db.commit()
        except (SQLAlchemyError, ConflictError):
            await self.db.rollback()
            raise

    async def update_invoice(self, invoice: Invoice) -> Invoice:
        self.db.add(invoice)
        await self._commit()
        return invoice

    # ------------------------------------------------------------
    # Letture fattura
    # ------------------------------------------------------------
    async def get_invoice(self, invoice_id: uuid.UUID) -> Optional[Invoice]:
        """Fattura con le righe caricate (ordinate per line_number)."""
        result = await self.db.execute(
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .options(selectinload(Invoice.lines))
        )
        return result.scalar_one_or_none()

    async def invoice_totals(self, invoice_id: uuid.UUID) -> InvoiceTotals:
        """Aggregati della fattura calcolati dal database sulle righe salvate."""
        line_amount = InvoiceLine.quantity * InvoiceLine.unit_price
        is_deposit_line = InvoiceLine.line_type == DEPOSIT_APPLIED_LINE_TYPE

        lines_stmt = select(
            func.coalesce(func.sum(case((~is_deposit_line, line_amount), else_=0)), 0),
            func.coalesce(
                func.sum(
                    case(
                        (
                            and_(~is_deposit_line, InvoiceLine.taxable.is_(True)),
                            line_amount * InvoiceLine.tax_rate,
                        ),
                        else_=0,
                    )
                ),
                0,
            ),
            func.coalesce(func.sum(case((is_deposit_line, func.abs(line_amount)), else_=0)), 0),
        ).where(InvoiceLine.invoice_id == invoice_id)

        subtotal, tax, deposit_credit = (await self.db.execute(lines_stmt)).one()

        paid_stmt = (
            select(func.coalesce(func.sum(PaymentApplication.applied_amount), 0))
            .join(Payment, Payment.id == PaymentApplication.payment_id)
            .where(
                PaymentApplication.invoice_id == invoice_id,
                Payment.is_deposit.is_(False),
            )
        )
        paid = (await self.db.execute(paid_stmt)).scalar_one()

        return InvoiceTotals(
            subtotal=Decimal(subtotal),
            tax=Decimal(tax),
            deposit_credit=Decimal(deposit_credit),
            paid=Decimal(paid),
        )
