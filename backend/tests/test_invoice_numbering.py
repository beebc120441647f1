"""
Unit tests per la numerazione fatture e per le scritture del repository.
"""

import uuid
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import ConflictError
from app.models import PaymentApplication
from app.repositories.billing_repository import BillingRepository
from app.services.invoice_numbering import format_invoice_number, next_invoice_number


# ============================================================
# Tests for invoice numbering
# ============================================================


class TestInvoiceNumbering:

    def test_format(self):
        assert format_invoice_number(10001) == "INV-10001"

    @pytest.mark.asyncio
    async def test_new_company_starts_at_10001(self, repo):
        assert await next_invoice_number(repo, uuid.uuid4()) == "INV-10001"

    @pytest.mark.asyncio
    async def test_counters_are_per_company(self, repo):
        first, second = uuid.uuid4(), uuid.uuid4()

        await next_invoice_number(repo, first)
        await next_invoice_number(repo, first)

        assert await next_invoice_number(repo, first) == "INV-10003"
        assert await next_invoice_number(repo, second) == "INV-10001"


# ============================================================
# Tests for BillingRepository (AsyncSession mock)
# ============================================================


class TestBillingRepositoryWrites:
    """Commit per chiamata e rollback su errore."""

    @pytest.mark.asyncio
    async def test_counter_upsert_commits(self, mock_db):
        result = MagicMock()
        result.scalar_one.return_value = 10042
        mock_db.execute.return_value = result

        number = await BillingRepository(mock_db).increment_invoice_counter(uuid.uuid4(), 10001)

        assert number == 10042
        mock_db.execute.assert_awaited_once()
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_counter_upsert_rolls_back(self, mock_db):
        mock_db.execute.side_effect = SQLAlchemyError("down")

        with pytest.raises(SQLAlchemyError):
            await BillingRepository(mock_db).increment_invoice_counter(uuid.uuid4(), 10001)

        mock_db.rollback.assert_awaited_once()
        mock_db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_claim_returns_false_on_conflict(self, mock_db):
        result = MagicMock()
        result.scalar_one_or_none.return_value = None
        mock_db.execute.return_value = result

        claimed = await BillingRepository(mock_db).claim_idempotency_key(
            uuid.uuid4(), uuid.uuid4(), "POST /api/invoices", "k"
        )

        assert claimed is False

    @pytest.mark.asyncio
    async def test_insert_lines_commit_failure_rolls_back(self, mock_db):
        mock_db.commit.side_effect = SQLAlchemyError("write failed")

        with pytest.raises(SQLAlchemyError):
            await BillingRepository(mock_db).insert_lines([MagicMock()])

        mock_db.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_insert_lines_empty_is_noop(self, mock_db):
        await BillingRepository(mock_db).insert_lines([])

        mock_db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_applications_refused_when_balance_insufficient(self, mock_db):
        payment_id = uuid.uuid4()
        locked = MagicMock()
        locked.scalar_one.return_value = Decimal("50.00")
        applied = MagicMock()
        applied.scalar_one.return_value = Decimal("40.00")
        mock_db.execute.side_effect = [locked, applied]
        application = PaymentApplication(
            payment_id=payment_id, invoice_id=uuid.uuid4(), applied_amount=Decimal("20.00")
        )

        with pytest.raises(ConflictError):
            await BillingRepository(mock_db).insert_payment_applications([application])

        mock_db.add_all.assert_not_called()
        mock_db.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_applications_written_when_balance_sufficient(self, mock_db):
        payment_id = uuid.uuid4()
        locked = MagicMock()
        locked.scalar_one.return_value = Decimal("50.00")
        applied = MagicMock()
        applied.scalar_one.return_value = Decimal("10.00")
        mock_db.execute.side_effect = [locked, applied]
        application = PaymentApplication(
            payment_id=payment_id, invoice_id=uuid.uuid4(), applied_amount=Decimal("40.00")
        )

        await BillingRepository(mock_db).insert_payment_applications([application])

        mock_db.add_all.assert_called_once()
        mock_db.commit.assert_awaited_once()
