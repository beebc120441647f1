"""
Modelli Database SQLAlchemy
Progetto: Field Service Manager (Gestionale Interventi)

Import centralizzato di tutti i modelli.

Modelli:
- User, Company, CompanyMember, CompanyInvoiceCounter: chiamante e tenant
- Customer, Job: anagrafiche lette in sola lettura dalla fatturazione
- Invoice, InvoiceLine: fatture e righe
- Payment, PaymentApplication: incassi/caparre e loro consumo sulle fatture
- IdempotencyRecord: risposte memorizzate per chiave di idempotenza
"""

# SQLAlchemy 2.0 Base declarativa
# Importato qui per essere disponibile per tutti i modelli
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class per tutti i modelli SQLAlchemy."""
    pass


from app.models.user import User
from app.models.company import Company, CompanyInvoiceCounter, CompanyMember
from app.models.customer import Customer
from app.models.job import Job, JobStatus
from app.models.invoice import (
    Invoice,
    InvoiceLine,
    InvoiceStatus,
    Payment,
    PaymentApplication,
    DEPOSIT_APPLIED_LINE_TYPE,
)
from app.models.idempotency import IdempotencyRecord, IdempotencyState

__all__ = [
    "Base",
    "User",
    "Company",
    "CompanyMember",
    "CompanyInvoiceCounter",
    "Customer",
    "Job",
    "JobStatus",
    "Invoice",
    "InvoiceLine",
    "InvoiceStatus",
    "Payment",
    "PaymentApplication",
    "DEPOSIT_APPLIED_LINE_TYPE",
    "IdempotencyRecord",
    "IdempotencyState",
]
