"""
Schemas Pydantic per il progetto Field Service Manager

Questo modulo contiene tutti gli schemi Pydantic utilizzati per la validazione
delle richieste e la serializzazione delle risposte API.
"""

# Import degli schemi per renderli disponibili tramite import diretto
# es: from app.schemas import CreateInvoiceRequest, InvoiceSummary, etc.

from app.schemas.token import TokenPayload
from app.schemas.invoice import (
    Money,
    InvoiceLineType,
    DepositType,
    InvoiceLineInput,
    CreateInvoiceRequest,
    IssueInvoiceRequest,
    InvoiceSummary,
    InvoiceCreatedResponse,
    InvoiceLineRead,
    InvoiceDetail,
    IssueInvoiceResponse,
    UnappliedPaymentRead,
    UnappliedPaymentsResponse,
)
from app.schemas.payment import (
    PaymentMethod,
    CreatePaymentRequest,
    PaymentCreatedResponse,
    CreatePaymentApplicationRequest,
    PaymentApplicationCreatedResponse,
)

__all__ = [
    # Token schemas
    "TokenPayload",
    # Invoice schemas
    "Money",
    "InvoiceLineType",
    "DepositType",
    "InvoiceLineInput",
    "CreateInvoiceRequest",
    "IssueInvoiceRequest",
    "InvoiceSummary",
    "InvoiceCreatedResponse",
    "InvoiceLineRead",
    "InvoiceDetail",
    "IssueInvoiceResponse",
    "UnappliedPaymentRead",
    "UnappliedPaymentsResponse",
    # Payment schemas
    "PaymentMethod",
    "CreatePaymentRequest",
    "PaymentCreatedResponse",
    "CreatePaymentApplicationRequest",
    "PaymentApplicationCreatedResponse",
]
