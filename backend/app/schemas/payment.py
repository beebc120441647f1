"""
Schemas Pydantic per incassi e applicazioni
Progetto: Field Service Manager (Gestionale Interventi)

Contiene:
- Enum: PaymentMethod
- Richieste: CreatePaymentRequest, CreatePaymentApplicationRequest
- Risposte: PaymentCreatedResponse, PaymentApplicationCreatedResponse
"""

import uuid
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.invoice import DepositType, Money


class PaymentMethod(str, Enum):
    """Metodi di pagamento accettati."""
    CASH = "cash"
    CHECK = "check"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    BANK_TRANSFER = "bank_transfer"
    OTHER = "other"


class CreatePaymentRequest(BaseModel):
    """
    Body di POST /api/payments.

    Con depositType l'incasso è registrato come caparra, consumabile
    dalle fatture successive tramite depositIds.
    """

    customer_id: uuid.UUID = Field(..., alias="customerId")
    job_id: Optional[uuid.UUID] = Field(None, alias="jobId")
    amount: Decimal = Field(
        ...,
        gt=0,
        max_digits=12,
        decimal_places=2,
        description="Importo incassato",
    )
    method: PaymentMethod = Field(..., description="Metodo di pagamento")
    deposit_type: Optional[DepositType] = Field(None, alias="depositType")
    memo: Optional[str] = Field(None, max_length=500)

    model_config = ConfigDict(populate_by_name=True)


class PaymentCreatedResponse(BaseModel):
    """Risposta 201 di POST /api/payments."""

    payment_id: uuid.UUID = Field(..., serialization_alias="paymentId")
    unapplied_credit: Money = Field(..., serialization_alias="unappliedCredit")


class CreatePaymentApplicationRequest(BaseModel):
    """Body di POST /api/payment-applications."""

    payment_id: uuid.UUID = Field(..., alias="paymentId")
    invoice_id: uuid.UUID = Field(..., alias="invoiceId")
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)

    model_config = ConfigDict(populate_by_name=True)


class PaymentApplicationCreatedResponse(BaseModel):
    """Risposta 201 di POST /api/payment-applications."""

    payment_application_id: uuid.UUID = Field(..., serialization_alias="paymentApplicationId")
    payment_id: uuid.UUID = Field(..., serialization_alias="paymentId")
    remaining_balance: Money = Field(..., serialization_alias="remainingBalance")


__all__ = [
    "PaymentMethod",
    "CreatePaymentRequest",
    "PaymentCreatedResponse",
    "CreatePaymentApplicationRequest",
    "PaymentApplicationCreatedResponse",
]
