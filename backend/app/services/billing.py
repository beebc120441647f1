"""
Composizione righe e applicazione caparre
Progetto: Field Service Manager (Gestionale Interventi)

Logica pura, senza accesso allo storage:
- normalize_line: unico punto di conversione da input del chiamante a riga
- assemble_lines: righe del chiamante numerate 1..N e subtotale
- apply_deposits: consumo delle caparre sul subtotale, nell'ordine dato

Varianti di riga:
- ServiceLine: riga del chiamante collegata a un job
- ManualLine: riga del chiamante senza job
- DepositAppliedLine: riga negativa che consuma il credito di una caparra
"""

import uuid
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP
from typing import List, Mapping, Optional, Sequence, Union

from app.models import DEPOSIT_APPLIED_LINE_TYPE, InvoiceLine
from app.schemas.invoice import InvoiceLineInput

CENT = Decimal("0.01")
RATE_PRECISION = Decimal("0.000001")
DEPOSIT_LINE_DESCRIPTION = "Deposit Applied"


# -------------------------------------------------------------------
# Varianti di riga
# -------------------------------------------------------------------

@dataclass(frozen=True)
class ManualLine:
    """Riga inserita dal chiamante, non collegata a un job."""

    line_number: int
    line_type: str
    description: str
    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal  # frazione: 0.0825 = 8.25%
    taxable: bool = True

    @property
    def job_id(self) -> Optional[uuid.UUID]:
        return None

    @property
    def amount(self) -> Decimal:
        return self.quantity * self.unit_price

    def to_model(self, invoice_id: uuid.UUID) -> InvoiceLine:
        return InvoiceLine(
            id=uuid.uuid4(),
            invoice_id=invoice_id,
            line_number=self.line_number,
            line_type=self.line_type,
            description=self.description,
            quantity=self.quantity,
            unit_price=self.unit_price,
            taxable=self.taxable,
            tax_rate=self.tax_rate,
            job_id=self.job_id,
            applied_payment_id=None,
        )


@dataclass(frozen=True)
class ServiceLine(ManualLine):
    """Riga inserita dal chiamante per un job completato."""

    source_job_id: Optional[uuid.UUID] = None

    @property
    def job_id(self) -> Optional[uuid.UUID]:
        return self.source_job_id


@dataclass(frozen=True)
class DepositAppliedLine:
    """
    Consumo di una caparra sulla fattura.

    applied_amount è positivo; la riga viene salvata con
    unit_price = -applied_amount e quantity = 1, non imponibile.
    """

    line_number: int
    payment_id: uuid.UUID
    applied_amount: Decimal
    description: str = DEPOSIT_LINE_DESCRIPTION

    line_type = DEPOSIT_APPLIED_LINE_TYPE
    quantity = Decimal("1")
    taxable = False
    tax_rate = Decimal("0")

    @property
    def unit_price(self) -> Decimal:
        return -self.applied_amount

    @property
    def amount(self) -> Decimal:
        return self.unit_price

    def to_model(self, invoice_id: uuid.UUID) -> InvoiceLine:
        return InvoiceLine(
            id=uuid.uuid4(),
            invoice_id=invoice_id,
            line_number=self.line_number,
            line_type=self.line_type,
            description=self.description,
            quantity=self.quantity,
            unit_price=self.unit_price,
            taxable=self.taxable,
            tax_rate=self.tax_rate,
            job_id=None,
            applied_payment_id=self.payment_id,
        )


CallerLine = Union[ServiceLine, ManualLine]


@dataclass
class AssembledLines:
    lines: List[CallerLine] = field(default_factory=list)
    subtotal: Decimal = Decimal("0")


@dataclass
class DepositApplication:
    lines: List[DepositAppliedLine] = field(default_factory=list)
    total_applied: Decimal = Decimal("0")


# -------------------------------------------------------------------
# Composizione righe
# -------------------------------------------------------------------

def normalize_line(line_input: InvoiceLineInput, line_number: int) -> CallerLine:
    """
    Converte una riga del chiamante nella variante interna.

    L'aliquota arriva in percentuale e viene salvata come frazione:
    la divisione per 100 avviene solo qui. Quantità e prezzo sono
    portati alla scala dello storage (centesimi).
    """
    common = dict(
        line_number=line_number,
        line_type=line_input.line_type.value,
        description=line_input.description,
        quantity=line_input.quantity.quantize(CENT, rounding=ROUND_HALF_UP),
        unit_price=line_input.unit_price.quantize(CENT, rounding=ROUND_HALF_UP),
        tax_rate=(line_input.tax_rate / Decimal("100")).quantize(
            RATE_PRECISION, rounding=ROUND_HALF_UP
        ),
    )
    if line_input.job_id is not None:
        return ServiceLine(source_job_id=line_input.job_id, **common)
    return ManualLine(**common)


def assemble_lines(line_inputs: Sequence[InvoiceLineInput]) -> AssembledLines:
    """Righe del chiamante nell'ordine ricevuto, numerate da 1, con subtotale."""
    assembled = AssembledLines()
    for index, line_input in enumerate(line_inputs, start=1):
        line = normalize_line(line_input, index)
        assembled.lines.append(line)
        assembled.subtotal += line.amount
    return assembled


# -------------------------------------------------------------------
# Applicazione caparre
# -------------------------------------------------------------------

def apply_deposits(
    deposit_balances: Mapping[uuid.UUID, Decimal],
    subtotal: Decimal,
    first_line_number: int,
) -> DepositApplication:
    """
    Applica le caparre al subtotale nell'ordine indicato dal chiamante.

    Per ogni caparra: apply = min(residuo, max(0, subtotale - già applicato)).
    Una caparra che non trova più spazio non genera righe; la parte non
    consumata resta disponibile per fatture future.

    Args:
        deposit_balances: {deposit_id: credito residuo}, in ordine di priorità
        subtotal: Subtotale delle righe del chiamante
        first_line_number: Numero della prima riga caparra

    Returns:
        DepositApplication con le righe emesse e il totale applicato
        (Σ applicato <= subtotale)
    """
    application = DepositApplication()
    running_applied = Decimal("0")  # accumulatore negativo
    next_line_number = first_line_number

    for deposit_id, available in deposit_balances.items():
        remaining_invoice = subtotal + running_applied
        apply_amount = min(available, max(Decimal("0"), remaining_invoice))
        # per difetto: il totale applicato non supera mai il subtotale
        apply_amount = apply_amount.quantize(CENT, rounding=ROUND_DOWN)
        if apply_amount <= 0:
            continue

        application.lines.append(
            DepositAppliedLine(
                line_number=next_line_number,
                payment_id=deposit_id,
                applied_amount=apply_amount,
            )
        )
        next_line_number += 1
        running_applied -= apply_amount

    application.total_applied = -running_applied
    return application
