"""
Numerazione fatture
Progetto: Field Service Manager (Gestionale Interventi)

Formato: <prefisso><n> (es. INV-10001), progressivo per company.

Il contatore vive nel database (company_invoice_counters) e viene
incrementato con un solo upsert atomico. Un numero assegnato resta
consumato anche se la fattura poi fallisce: sono ammessi buchi nella
sequenza, mai duplicati.
"""

import logging
import uuid

from app.core.config import settings
from app.repositories.billing_repository import BillingRepository

# Logger per questo modulo
logger = logging.getLogger(__name__)


def format_invoice_number(number: int) -> str:
    """Rende il numero progressivo nel formato esterno (INV-10001)."""
    return f"{settings.invoice_number_prefix}{number}"


async def next_invoice_number(repo: BillingRepository, company_id: uuid.UUID) -> str:
    """
    Assegna il prossimo numero fattura della company.

    Una company senza contatore parte da settings.invoice_number_start.
    """
    number = await repo.increment_invoice_counter(company_id, settings.invoice_number_start)
    invoice_number = format_invoice_number(number)
    logger.info(f"Assegnato numero fattura {invoice_number} alla company {company_id}")
    return invoice_number
