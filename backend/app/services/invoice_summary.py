"""
Totali della fattura
Progetto: Field Service Manager (Gestionale Interventi)

I totali vengono riletti dalle righe persistite, non dagli accumulatori
in memoria. Unica eccezione: depositApplied nella risposta di creazione
è l'accumulatore del motore caparre.
"""

import uuid
from decimal import Decimal, ROUND_HALF_UP

from app.repositories.billing_repository import BillingRepository, InvoiceTotals
from app.schemas.invoice import InvoiceSummary

CENT = Decimal("0.01")


def _money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def summarize_totals(totals: InvoiceTotals, deposit_applied: Decimal) -> InvoiceSummary:
    """
    total = subtotal + tax
    balance = total - credito caparre - pagato
    """
    subtotal = _money(totals.subtotal)
    tax = _money(totals.tax)
    total = subtotal + tax
    balance = total - _money(totals.deposit_credit) - _money(totals.paid)
    return InvoiceSummary(
        subtotal=subtotal,
        tax=tax,
        total=total,
        deposit_applied=_money(deposit_applied),
        balance=balance,
    )


async def project_summary(
    repo: BillingRepository, invoice_id: uuid.UUID, deposit_applied: Decimal
) -> InvoiceSummary:
    """Totali della fattura appena scritta, con depositApplied dal motore caparre."""
    totals = await repo.invoice_totals(invoice_id)
    return summarize_totals(totals, deposit_applied)
