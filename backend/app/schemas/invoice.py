"""
Schemas Pydantic per la Fatturazione
Progetto: Field Service Manager (Gestionale Interventi)

Contiene:
- Enums: InvoiceLineType, DepositType
- Schemas di richiesta: InvoiceLineInput, CreateInvoiceRequest, IssueInvoiceRequest
- Schemas di risposta: InvoiceSummary, InvoiceCreatedResponse, InvoiceDetail,
  IssueInvoiceResponse, UnappliedPaymentsResponse

Le richieste arrivano in camelCase; i campi Python restano in snake_case
(alias in ingresso, serialization_alias in uscita).
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    model_validator,
)

from app.core.exceptions import BusinessValidationError

# Importi monetari: Decimal in memoria, numero nel JSON
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


# -------------------------------------------------------------------
# Enum
# -------------------------------------------------------------------

class InvoiceLineType(str, Enum):
    """Tipi di riga inseribili dal chiamante (deposit_applied è riservato)."""
    SERVICE = "service"
    PARTS = "parts"
    SUPPLIES = "supplies"
    LABOR = "labor"
    ADJUSTMENT = "adjustment"
    OTHER = "other"


class DepositType(str, Enum):
    """Categorie di caparra."""
    GENERAL = "general"
    PARTS = "parts"
    SUPPLIES = "supplies"


# -------------------------------------------------------------------
# Schemas di richiesta
# -------------------------------------------------------------------

class InvoiceLineInput(BaseModel):
    """
    Riga fattura inviata dal chiamante.

    taxRate è una percentuale (8.25 = 8.25%): la conversione in
    frazione avviene una sola volta in billing.normalize_line.
    """

    description: str = Field(
        ...,
        min_length=1,
        max_length=500,
        description="Descrizione della riga",
    )
    # stessa scala delle colonne Numeric(12, 2): nessun arrotondamento silenzioso
    quantity: Decimal = Field(
        ...,
        gt=0,
        max_digits=12,
        decimal_places=2,
        description="Quantità",
    )
    unit_price: Decimal = Field(
        ...,
        ge=0,
        max_digits=12,
        decimal_places=2,
        alias="unitPrice",
        description="Prezzo unitario",
    )
    tax_rate: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        le=100,
        alias="taxRate",
        description="Aliquota in percentuale",
    )
    line_type: InvoiceLineType = Field(
        default=InvoiceLineType.SERVICE,
        alias="lineType",
        description="Tipo riga",
    )
    job_id: Optional[uuid.UUID] = Field(
        default=None,
        alias="jobId",
        description="Job di provenienza della riga",
    )

    model_config = ConfigDict(populate_by_name=True)


class CreateInvoiceRequest(BaseModel):
    """Body di POST /api/invoices."""

    customer_id: uuid.UUID = Field(
        ...,
        alias="customerId",
        description="UUID del cliente",
    )
    job_ids: List[uuid.UUID] = Field(
        default_factory=list,
        alias="jobIds",
        description="Job completati da fatturare",
    )
    lines: List[InvoiceLineInput] = Field(
        default_factory=list,
        description="Righe della fattura nell'ordine desiderato",
    )
    deposit_ids: List[uuid.UUID] = Field(
        default_factory=list,
        alias="depositIds",
        description="Caparre da applicare, in ordine di priorità",
    )
    terms: Optional[str] = Field(
        default=None,
        max_length=200,
        description="Condizioni di pagamento",
    )
    notes: Optional[str] = Field(
        default=None,
        max_length=1000,
        description="Note per il cliente",
    )
    issue_now: bool = Field(
        default=False,
        alias="issueNow",
        description="Emette subito la fattura invece di crearla in bozza",
    )
    due_date: Optional[date] = Field(
        default=None,
        alias="dueDate",
        description="Data scadenza (usata solo con issueNow)",
    )

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def validate_references(self) -> "CreateInvoiceRequest":
        """Valida l'unicità degli id e i riferimenti riga → job."""
        if len(set(self.job_ids)) != len(self.job_ids):
            raise BusinessValidationError("jobIds contiene id duplicati")
        if len(set(self.deposit_ids)) != len(self.deposit_ids):
            raise BusinessValidationError("depositIds contiene id duplicati")

        referenced = set()
        for line in self.lines:
            if line.job_id is None:
                continue
            if line.job_id not in self.job_ids:
                raise BusinessValidationError(
                    f"La riga referenzia il job {line.job_id} non presente in jobIds"
                )
            if line.job_id in referenced:
                raise BusinessValidationError(
                    f"Il job {line.job_id} è referenziato da più di una riga"
                )
            referenced.add(line.job_id)
        return self


class IssueInvoiceRequest(BaseModel):
    """Body di POST /api/invoices/{id}/issue."""

    due_date: date = Field(..., alias="dueDate", description="Data scadenza")
    terms: Optional[str] = Field(default=None, max_length=200)

    model_config = ConfigDict(populate_by_name=True)


# -------------------------------------------------------------------
# Schemas di risposta
# -------------------------------------------------------------------

class InvoiceSummary(BaseModel):
    """Totali della fattura, arrotondati al centesimo."""

    subtotal: Money
    tax: Money
    total: Money
    deposit_applied: Money = Field(..., serialization_alias="depositApplied")
    balance: Money


class InvoiceCreatedResponse(BaseModel):
    """Risposta 201 di POST /api/invoices."""

    invoice_id: uuid.UUID = Field(..., serialization_alias="invoiceId")
    invoice_number: str = Field(..., serialization_alias="invoiceNumber")
    summary: InvoiceSummary


class InvoiceLineRead(BaseModel):
    """Riga fattura persistita."""

    id: uuid.UUID
    line_number: int = Field(..., serialization_alias="lineNumber")
    line_type: str = Field(..., serialization_alias="lineType")
    description: str
    quantity: Decimal = Field(..., description="Quantità")
    unit_price: Money = Field(..., serialization_alias="unitPrice")
    taxable: bool
    tax_rate: Decimal = Field(
        ...,
        serialization_alias="taxRate",
        description="Aliquota come frazione (0.0825)",
    )
    amount: Money
    job_id: Optional[uuid.UUID] = Field(None, serialization_alias="jobId")
    applied_payment_id: Optional[uuid.UUID] = Field(
        None, serialization_alias="appliedPaymentId"
    )

    model_config = ConfigDict(from_attributes=True)


class InvoiceDetail(BaseModel):
    """Fattura con righe e totali."""

    id: uuid.UUID
    invoice_number: str = Field(..., serialization_alias="invoiceNumber")
    customer_id: uuid.UUID = Field(..., serialization_alias="customerId")
    invoice_date: date = Field(..., serialization_alias="invoiceDate")
    status: str
    terms: Optional[str] = None
    notes: Optional[str] = None
    issued_at: Optional[datetime] = Field(None, serialization_alias="issuedAt")
    due_date: Optional[date] = Field(None, serialization_alias="dueDate")
    lines: List[InvoiceLineRead] = Field(default_factory=list)
    summary: InvoiceSummary

    model_config = ConfigDict(from_attributes=True)


class IssueInvoiceResponse(BaseModel):
    """Risposta di POST /api/invoices/{id}/issue."""

    invoice_id: uuid.UUID = Field(..., serialization_alias="invoiceId")
    invoice_number: str = Field(..., serialization_alias="invoiceNumber")
    status: str
    issue_date: date = Field(..., serialization_alias="issueDate")
    due_date: date = Field(..., serialization_alias="dueDate")


class UnappliedPaymentRead(BaseModel):
    """Incasso del cliente con credito residuo."""

    payment_id: uuid.UUID = Field(..., serialization_alias="paymentId")
    payment_date: date = Field(..., serialization_alias="date")
    amount: Money
    deposit_type: Optional[str] = Field(None, serialization_alias="depositType")
    memo: Optional[str] = None
    unapplied_amount: Money = Field(..., serialization_alias="unappliedAmount")


class UnappliedPaymentsResponse(BaseModel):
    """Elenco incassi con credito residuo e totale disponibile."""

    items: List[UnappliedPaymentRead] = Field(default_factory=list)
    unapplied_credit: Money = Field(..., serialization_alias="unappliedCredit")


__all__ = [
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
]
