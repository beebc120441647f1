"""
Pytest configuration and fixtures per i test della fatturazione.

FakeBillingRepository implementa in memoria la stessa interfaccia di
BillingRepository, con iniezione di errori per metodo: permette di
verificare l'intera pipeline (compensazioni, idempotenza, caparre)
senza database.
"""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError
from app.models import (
    Customer,
    DEPOSIT_APPLIED_LINE_TYPE,
    IdempotencyRecord,
    IdempotencyState,
    Invoice,
    InvoiceLine,
    Job,
    JobStatus,
    Payment,
    PaymentApplication,
    User,
)
from app.repositories.billing_repository import InvoiceTotals


# ============================================================
# Fixtures per AsyncSession Mock
# ============================================================


@pytest.fixture
def mock_db():
    """Crea un mock di AsyncSession."""
    db = AsyncMock(spec=AsyncSession)
    db.execute = AsyncMock()
    db.add = MagicMock()
    db.add_all = MagicMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    return db


# ============================================================
# Repository in memoria
# ============================================================


class FakeBillingRepository:
    """
    Repository in memoria con la stessa interfaccia di BillingRepository.

    Errori simulati:
        repo.fail("insert_lines")            → fallisce a ogni chiamata
        repo.fail("insert_lines", on_call=2) → fallisce solo alla seconda
    """

    def __init__(self) -> None:
        self.users: Dict[uuid.UUID, User] = {}
        self.memberships: Dict[uuid.UUID, uuid.UUID] = {}
        self.customers: Dict[uuid.UUID, Customer] = {}
        self.jobs: Dict[uuid.UUID, Job] = {}
        self.payments: Dict[uuid.UUID, Payment] = {}
        self.applications: List[PaymentApplication] = []
        self.invoices: Dict[uuid.UUID, Invoice] = {}
        self.lines: List[InvoiceLine] = []
        self.counters: Dict[uuid.UUID, int] = {}
        self.idempotency: Dict[Tuple, IdempotencyRecord] = {}
        self.calls: List[str] = []
        self._failures: Dict[str, Optional[int]] = {}
        self._call_counts: Dict[str, int] = {}

    # ------------------------------------------------------------
    # Iniezione errori
    # ------------------------------------------------------------
    def fail(self, method: str, on_call: Optional[int] = None) -> None:
        self._failures[method] = on_call

    def _record(self, method: str) -> None:
        self.calls.append(method)
        count = self._call_counts.get(method, 0) + 1
        self._call_counts[method] = count
        if method in self._failures:
            on_call = self._failures[method]
            if on_call is None or on_call == count:
                raise SQLAlchemyError(f"errore simulato in {method}")

    # ------------------------------------------------------------
    # Seed dati
    # ------------------------------------------------------------
    def add_user(self, company_id: Optional[uuid.UUID] = None) -> User:
        user = User(id=uuid.uuid4(), email=f"{uuid.uuid4().hex[:8]}@example.com",
                    full_name="Utente Test", is_active=True)
        self.users[user.id] = user
        if company_id is not None:
            self.memberships[user.id] = company_id
        return user

    def add_customer(self, company_id: uuid.UUID) -> Customer:
        customer = Customer(id=uuid.uuid4(), company_id=company_id, name="Cliente Test")
        self.customers[customer.id] = customer
        return customer

    def add_job(
        self,
        company_id: uuid.UUID,
        customer_id: uuid.UUID,
        status: str = JobStatus.DONE.value,
    ) -> Job:
        job = Job(id=uuid.uuid4(), company_id=company_id, customer_id=customer_id,
                  title="Intervento", status=status)
        self.jobs[job.id] = job
        return job

    def add_payment(
        self,
        company_id: uuid.UUID,
        customer_id: uuid.UUID,
        amount: str,
        is_deposit: bool = True,
        applied: str = "0",
        deposit_type: Optional[str] = "general",
        payment_date: Optional[date] = None,
    ) -> Payment:
        payment = Payment(
            id=uuid.uuid4(),
            company_id=company_id,
            customer_id=customer_id,
            amount=Decimal(amount),
            payment_date=payment_date or date.today(),
            payment_method="cash",
            is_deposit=is_deposit,
            deposit_type=deposit_type if is_deposit else None,
            memo=None,
        )
        self.payments[payment.id] = payment
        if Decimal(applied) > 0:
            self.applications.append(
                PaymentApplication(
                    id=uuid.uuid4(),
                    payment_id=payment.id,
                    invoice_id=uuid.uuid4(),
                    applied_amount=Decimal(applied),
                    applied_at=datetime.now(timezone.utc),
                )
            )
        return payment

    # ------------------------------------------------------------
    # Letture
    # ------------------------------------------------------------
    async def get_user(self, user_id):
        return self.users.get(user_id)

    async def get_first_company_id(self, user_id):
        return self.memberships.get(user_id)

    async def get_customer(self, customer_id):
        return self.customers.get(customer_id)

    async def get_job(self, job_id):
        return self.jobs.get(job_id)

    async def get_payment(self, payment_id):
        return self.payments.get(payment_id)

    async def get_applied_total(self, payment_id) -> Decimal:
        return sum(
            (a.applied_amount for a in self.applications if a.payment_id == payment_id),
            Decimal("0"),
        )

    async def list_customer_payments(self, company_id, customer_id, deposit_type=None):
        payments = [
            p for p in self.payments.values()
            if p.company_id == company_id and p.customer_id == customer_id
            and (deposit_type is None or p.deposit_type == deposit_type)
        ]
        payments.sort(key=lambda p: p.payment_date, reverse=True)
        return [(p, await self.get_applied_total(p.id)) for p in payments]

    # ------------------------------------------------------------
    # Numerazione
    # ------------------------------------------------------------
    async def increment_invoice_counter(self, company_id, start: int) -> int:
        self._record("increment_invoice_counter")
        if company_id in self.counters:
            self.counters[company_id] += 1
        else:
            self.counters[company_id] = start
        return self.counters[company_id]

    # ------------------------------------------------------------
    # Idempotenza
    # ------------------------------------------------------------
    async def get_idempotency_record(self, user_id, company_id, route, key):
        return self.idempotency.get((user_id, company_id, route, key))

    async def claim_idempotency_key(self, user_id, company_id, route, key, stale_after) -> bool:
        self._record("claim_idempotency_key")
        tup = (user_id, company_id, route, key)
        now = datetime.now(timezone.utc)
        record = self.idempotency.get(tup)
        if record is not None:
            expired = (
                record.state == IdempotencyState.PENDING.value
                and record.updated_at is not None
                and record.updated_at < now - stale_after
            )
            if expired:
                record.updated_at = now
            return expired
        self.idempotency[tup] = IdempotencyRecord(
            id=uuid.uuid4(), user_id=user_id, company_id=company_id, route=route,
            idempotency_key=key, state=IdempotencyState.PENDING.value,
            created_at=now, updated_at=now,
        )
        return True

    async def complete_idempotency_key(self, user_id, company_id, route, key, status_code, body):
        self._record("complete_idempotency_key")
        record = self.idempotency[(user_id, company_id, route, key)]
        record.state = IdempotencyState.COMPLETED.value
        record.response_status = status_code
        record.response_body = body

    async def release_idempotency_key(self, user_id, company_id, route, key):
        self._record("release_idempotency_key")
        tup = (user_id, company_id, route, key)
        record = self.idempotency.get(tup)
        if record is not None and record.state == IdempotencyState.PENDING.value:
            del self.idempotency[tup]

    # ------------------------------------------------------------
    # Scritture fattura
    # ------------------------------------------------------------
    async def insert_invoice(self, invoice: Invoice) -> Invoice:
        self._record("insert_invoice")
        self.invoices[invoice.id] = invoice
        return invoice

    async def insert_lines(self, lines) -> None:
        self._record("insert_lines")
        numbers = {(l.invoice_id, l.line_number) for l in self.lines}
        for line in lines:
            assert (line.invoice_id, line.line_number) not in numbers
            assert line.unit_price >= 0 or line.line_type == DEPOSIT_APPLIED_LINE_TYPE
        self.lines.extend(lines)

    async def delete_invoice(self, invoice_id) -> None:
        self._record("delete_invoice")
        self.invoices.pop(invoice_id, None)
        self.lines = [l for l in self.lines if l.invoice_id != invoice_id]
        self.applications = [a for a in self.applications if a.invoice_id != invoice_id]

    async def insert_payment(self, payment: Payment) -> Payment:
        self._record("insert_payment")
        self.payments[payment.id] = payment
        return payment

    async def insert_payment_applications(self, applications) -> None:
        self._record("insert_payment_applications")
        for application in applications:
            payment = self.payments[application.payment_id]
            applied = await self.get_applied_total(payment.id)
            if payment.amount - applied < application.applied_amount:
                raise ConflictError(f"L'incasso {payment.id} non ha più credito sufficiente")
        self.applications.extend(applications)

    async def update_invoice(self, invoice: Invoice) -> Invoice:
        self._record("update_invoice")
        self.invoices[invoice.id] = invoice
        return invoice

    # ------------------------------------------------------------
    # Letture fattura
    # ------------------------------------------------------------
    def lines_of(self, invoice_id) -> List[InvoiceLine]:
        return sorted(
            (l for l in self.lines if l.invoice_id == invoice_id),
            key=lambda l: l.line_number,
        )

    async def get_invoice(self, invoice_id):
        invoice = self.invoices.get(invoice_id)
        if invoice is not None:
            invoice.lines = self.lines_of(invoice_id)
        return invoice

    async def invoice_totals(self, invoice_id) -> InvoiceTotals:
        subtotal = tax = deposit_credit = paid = Decimal("0")
        for line in self.lines_of(invoice_id):
            amount = line.quantity * line.unit_price
            if line.line_type == DEPOSIT_APPLIED_LINE_TYPE:
                deposit_credit += abs(amount)
                continue
            subtotal += amount
            if line.taxable:
                tax += amount * line.tax_rate
        for application in self.applications:
            if application.invoice_id != invoice_id:
                continue
            if not self.payments[application.payment_id].is_deposit:
                paid += application.applied_amount
        return InvoiceTotals(subtotal=subtotal, tax=tax, deposit_credit=deposit_credit, paid=paid)


# ============================================================
# Fixtures di dominio
# ============================================================


@pytest.fixture
def repo():
    """Repository in memoria vuoto."""
    return FakeBillingRepository()


@pytest.fixture
def company_id():
    return uuid.uuid4()


@pytest.fixture
def other_company_id():
    return uuid.uuid4()


@pytest.fixture
def user(repo, company_id):
    """Utente attivo membro della company."""
    return repo.add_user(company_id)


@pytest.fixture
def customer(repo, company_id):
    """Cliente della company."""
    return repo.add_customer(company_id)


def line(description="Manodopera", quantity="1", unit_price="100.00", **extra):
    """Riga del body di creazione in formato camelCase."""
    data = {"description": description, "quantity": quantity, "unitPrice": unit_price}
    data.update(extra)
    return data


@pytest.fixture
def make_payload(customer):
    """Factory per il body di POST /api/invoices."""
    def _make(**overrides):
        payload = {"customerId": str(customer.id), "lines": [line()]}
        payload.update(overrides)
        return payload
    return _make
