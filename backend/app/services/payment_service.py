"""
Service per il credito residuo degli incassi
Progetto: Field Service Manager (Gestionale Interventi)

unapplied = amount - Σ applied_amount

Il residuo viene sempre ricalcolato dallo storage: fatture concorrenti
possono consumare la stessa caparra.
"""

import uuid
from decimal import Decimal
from typing import Optional

from app.repositories.billing_repository import BillingRepository
from app.schemas.invoice import UnappliedPaymentRead, UnappliedPaymentsResponse


async def get_unapplied_amount(repo: BillingRepository, payment_id: uuid.UUID) -> Decimal:
    """
    Credito residuo di un incasso.

    Returns:
        amount - Σ applied_amount; 0 se l'incasso non esiste
    """
    payment = await repo.get_payment(payment_id)
    if payment is None:
        return Decimal("0")
    applied = await repo.get_applied_total(payment_id)
    return payment.amount - applied


async def list_unapplied(
    repo: BillingRepository,
    company_id: uuid.UUID,
    customer_id: uuid.UUID,
    deposit_type: Optional[str] = None,
) -> UnappliedPaymentsResponse:
    """Incassi del cliente con credito residuo, dal più recente, e totale disponibile."""
    items = []
    for payment, applied in await repo.list_customer_payments(
        company_id, customer_id, deposit_type
    ):
        unapplied = payment.amount - applied
        if unapplied <= 0:
            continue
        items.append(
            UnappliedPaymentRead(
                payment_id=payment.id,
                payment_date=payment.payment_date,
                amount=payment.amount,
                deposit_type=payment.deposit_type,
                memo=payment.memo,
                unapplied_amount=unapplied,
            )
        )

    return UnappliedPaymentsResponse(
        items=items,
        unapplied_credit=sum((item.unapplied_amount for item in items), Decimal("0")),
    )
