"""
Modelli SQLAlchemy per la Fatturazione
Progetto: Field Service Manager (Gestionale Interventi)

Contiene:
- Invoice: Fattura principale
- InvoiceLine: Righe della fattura (servizi, ricambi, caparre applicate)
- Payment: Incassi e caparre del cliente
- PaymentApplication: Consumo di un incasso su una fattura
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models import Base
from app.models.mixins import CreatedAtMixin, TimestampMixin, UUIDMixin

# Tipo riservato alle righe negative generate dall'applicazione delle caparre
DEPOSIT_APPLIED_LINE_TYPE = "deposit_applied"


class InvoiceStatus(str, Enum):
    """Stato persistito della fattura."""
    DRAFT = "draft"
    ISSUED = "issued"


class Invoice(Base, UUIDMixin, TimestampMixin):
    """
    Modello per le fatture.

    Una fattura nasce in bozza oppure già emessa. Il numero viene
    assegnato alla creazione e non cambia più.

    Attributes:
        id: UUID primary key, generato automaticamente
        company_id: UUID della company emittente
        customer_id: UUID del cliente
        invoice_number: Numero progressivo per company (formato: INV-<n>)
        invoice_date: Data creazione fattura
        status: draft | issued
        terms: Condizioni di pagamento
        notes: Note per il cliente
        issued_at: Data/ora di emissione (solo se issued)
        due_date: Data scadenza (presente se e solo se issued)
        created_by: UUID dell'utente che ha creato la fattura

    Relationships:
        lines: Righe della fattura, ordinate per line_number
        payment_applications: Incassi applicati alla fattura
    """

    __tablename__ = "invoices"

    # ------------------------------------------------------------
    # Colonne Relazioni
    # ------------------------------------------------------------
    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("companies.id", ondelete="RESTRICT"),
        nullable=False,
        doc="UUID della company emittente",
    )

    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("customers.id", ondelete="RESTRICT"),
        nullable=False,
        doc="UUID del cliente",
    )

    created_by: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        doc="UUID dell'utente che ha creato la fattura",
    )

    # ------------------------------------------------------------
    # Colonne Identificazione
    # ------------------------------------------------------------
    invoice_number: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        doc="Numero fattura progressivo per company (formato: INV-<n>)",
    )

    invoice_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        doc="Data creazione fattura",
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=InvoiceStatus.DRAFT.value,
        doc="Stato: draft | issued",
    )

    terms: Mapped[Optional[str]] = mapped_column(
        String(200),
        nullable=True,
        doc="Condizioni di pagamento",
    )

    notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Note per il cliente",
    )

    issued_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="Data/ora di emissione",
    )

    due_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
        doc="Data scadenza pagamento (solo fatture emesse)",
    )

    # ------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------
    lines: Mapped[List["InvoiceLine"]] = relationship(
        "InvoiceLine",
        back_populates="invoice",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="InvoiceLine.line_number",
        doc="Righe della fattura",
    )

    payment_applications: Mapped[List["PaymentApplication"]] = relationship(
        "PaymentApplication",
        back_populates="invoice",
        cascade="all, delete-orphan",
        passive_deletes=True,
        doc="Incassi applicati alla fattura",
    )

    # ------------------------------------------------------------
    # Properties Calcolate
    # ------------------------------------------------------------
    @property
    def is_draft(self) -> bool:
        """True se la fattura è ancora in bozza."""
        return self.status == InvoiceStatus.DRAFT.value

    # ------------------------------------------------------------
    # Indici e Vincoli
    # ------------------------------------------------------------
    __table_args__ = (
        UniqueConstraint("company_id", "invoice_number", name="uq_invoices_company_number"),
        Index("ix_invoices_customer_id", "customer_id"),
        CheckConstraint("status IN ('draft', 'issued')", name="ck_invoices_status"),
        # due_date presente se e solo se la fattura è emessa
        CheckConstraint(
            "(status = 'issued' AND due_date IS NOT NULL) "
            "OR (status = 'draft' AND due_date IS NULL)",
            name="ck_invoices_due_date_iff_issued",
        ),
    )

    def __repr__(self) -> str:
        return f"<Invoice(id={self.id}, number={self.invoice_number}, status={self.status})>"


class InvoiceLine(Base, UUIDMixin, CreatedAtMixin):
    """
    Modello per le righe della fattura.

    Una riga può essere:
    - service, labor, parts, supplies, adjustment, other: righe inserite dal chiamante
    - deposit_applied: riga negativa che consuma il credito di una caparra

    Attributes:
        id: UUID primary key, generato automaticamente
        invoice_id: UUID della fattura padre
        line_number: Numero progressivo riga (1-based, unico per fattura)
        line_type: Tipo riga
        description: Descrizione della riga
        quantity: Quantità
        unit_price: Prezzo unitario (negativo solo per deposit_applied)
        taxable: Flag imponibile
        tax_rate: Aliquota come frazione decimale (es. 0.0825)
        job_id: Job di provenienza (opzionale)
        applied_payment_id: Caparra consumata (solo deposit_applied)

    Relationships:
        invoice: Fattura padre
    """

    __tablename__ = "invoice_lines"

    # ------------------------------------------------------------
    # Colonne Relazione
    # ------------------------------------------------------------
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        doc="UUID della fattura padre",
    )

    job_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("jobs.id", ondelete="SET NULL"),
        nullable=True,
        doc="UUID del job di provenienza",
    )

    applied_payment_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("payments.id", ondelete="RESTRICT"),
        nullable=True,
        doc="UUID della caparra consumata da questa riga",
    )

    # ------------------------------------------------------------
    # Colonne Dati
    # ------------------------------------------------------------
    line_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        doc="Numero progressivo riga nella fattura",
    )

    line_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="service",
        doc="Tipo riga",
    )

    description: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        doc="Descrizione della riga",
    )

    quantity: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("1"),
        doc="Quantità",
    )

    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        doc="Prezzo unitario",
    )

    taxable: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        doc="Flag imponibile",
    )

    tax_rate: Mapped[Decimal] = mapped_column(
        Numeric(9, 6),
        nullable=False,
        default=Decimal("0"),
        doc="Aliquota come frazione decimale (0.0825 = 8.25%)",
    )

    # ------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------
    invoice: Mapped["Invoice"] = relationship(
        "Invoice",
        back_populates="lines",
        doc="Fattura padre",
    )

    # ------------------------------------------------------------
    # Properties Calcolate
    # ------------------------------------------------------------
    @property
    def is_deposit_applied(self) -> bool:
        """True se la riga consuma una caparra."""
        return self.line_type == DEPOSIT_APPLIED_LINE_TYPE

    @property
    def amount(self) -> Decimal:
        """Importo riga senza imposta (quantity * unit_price)."""
        return (self.quantity * self.unit_price).quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP
        )

    @property
    def tax_amount(self) -> Decimal:
        """Imposta della riga, zero se non imponibile."""
        if not self.taxable:
            return Decimal("0.00")
        return (self.quantity * self.unit_price * self.tax_rate).quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP
        )

    # ------------------------------------------------------------
    # Indici e Vincoli
    # ------------------------------------------------------------
    __table_args__ = (
        UniqueConstraint("invoice_id", "line_number", name="uq_invoice_lines_number"),
        CheckConstraint("line_number >= 1", name="ck_invoice_lines_number_positive"),
        CheckConstraint("quantity > 0", name="ck_invoice_lines_quantity_positive"),
        CheckConstraint("tax_rate >= 0 AND tax_rate <= 1", name="ck_invoice_lines_tax_rate"),
        # Prezzo negativo ammesso solo per le righe caparra
        CheckConstraint(
            "unit_price >= 0 OR line_type = 'deposit_applied'",
            name="ck_invoice_lines_negative_only_deposit",
        ),
        CheckConstraint(
            "applied_payment_id IS NULL OR line_type = 'deposit_applied'",
            name="ck_invoice_lines_payment_only_deposit",
        ),
    )

    def __repr__(self) -> str:
        return f"<InvoiceLine(id={self.id}, n={self.line_number}, type={self.line_type})>"


class Payment(Base, UUIDMixin, TimestampMixin):
    """
    Modello per gli incassi del cliente.

    Un incasso con is_deposit=True è una caparra: credito che le
    fatture successive possono consumare tramite PaymentApplication.

    Attributes:
        id: UUID primary key, generato automaticamente
        company_id: UUID della company
        customer_id: UUID del cliente che ha pagato
        job_id: UUID del job di riferimento (opzionale)
        amount: Importo totale dell'incasso
        payment_date: Data dell'incasso
        payment_method: cash, check, credit_card, debit_card, bank_transfer, other
        is_deposit: Flag caparra
        deposit_type: general, parts, supplies (solo caparre)
        memo: Note
        created_by: UUID dell'utente che ha registrato l'incasso

    Relationships:
        applications: Consumi dell'incasso sulle fatture
    """

    __tablename__ = "payments"

    # ------------------------------------------------------------
    # Colonne Relazione
    # ------------------------------------------------------------
    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("companies.id", ondelete="RESTRICT"),
        nullable=False,
        doc="UUID della company",
    )

    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("customers.id", ondelete="RESTRICT"),
        nullable=False,
        doc="UUID del cliente che ha effettuato il pagamento",
    )

    job_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("jobs.id", ondelete="SET NULL"),
        nullable=True,
        doc="Job a cui si riferisce l'incasso (opzionale)",
    )

    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        doc="UUID dell'utente che ha registrato l'incasso",
    )

    # ------------------------------------------------------------
    # Colonne Dati
    # ------------------------------------------------------------
    amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        doc="Importo totale del pagamento",
    )

    payment_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        doc="Data del pagamento",
    )

    payment_method: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        doc="Metodo di pagamento",
    )

    is_deposit: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        doc="True se l'incasso è una caparra",
    )

    deposit_type: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        doc="Tipo caparra: general, parts, supplies",
    )

    memo: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
        doc="Note sul pagamento",
    )

    # ------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------
    applications: Mapped[List["PaymentApplication"]] = relationship(
        "PaymentApplication",
        back_populates="payment",
        doc="Applicazioni su fatture",
    )

    # ------------------------------------------------------------
    # Indici e Vincoli
    # ------------------------------------------------------------
    __table_args__ = (
        Index("ix_payments_customer_id", "customer_id"),
        CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
        CheckConstraint(
            "payment_method IN ('cash', 'check', 'credit_card', 'debit_card', 'bank_transfer', 'other')",
            name="ck_payments_payment_method",
        ),
    )

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, amount={self.amount}, deposit={self.is_deposit})>"


class PaymentApplication(Base, UUIDMixin, CreatedAtMixin):
    """
    Consumo di una quota di incasso su una fattura specifica.

    Esempio:
        Caparra P1 di $200 applicata così:
        - $80 → Fattura A (PaymentApplication)
        - $120 → Fattura B (PaymentApplication)

    Attributes:
        id: UUID primary key, generato automaticamente
        payment_id: UUID dell'incasso sorgente
        invoice_id: UUID della fattura destinazione
        applied_amount: Importo applicato (sempre positivo)
        applied_at: Data/ora di applicazione
        applied_by: UUID dell'utente
    """

    __tablename__ = "payment_applications"

    # ------------------------------------------------------------
    # Colonne Relazione
    # ------------------------------------------------------------
    payment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("payments.id", ondelete="RESTRICT"),
        nullable=False,
        doc="UUID dell'incasso sorgente",
    )

    invoice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        doc="UUID della fattura destinazione",
    )

    applied_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        doc="UUID dell'utente che ha applicato l'incasso",
    )

    # ------------------------------------------------------------
    # Colonne Dati
    # ------------------------------------------------------------
    applied_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        doc="Importo applicato a questa fattura",
    )

    applied_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        doc="Data/ora di applicazione",
    )

    # ------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------
    payment: Mapped["Payment"] = relationship(
        "Payment",
        back_populates="applications",
        doc="Incasso sorgente",
    )

    invoice: Mapped["Invoice"] = relationship(
        "Invoice",
        back_populates="payment_applications",
        doc="Fattura destinazione",
    )

    # ------------------------------------------------------------
    # Indici e Vincoli
    # ------------------------------------------------------------
    __table_args__ = (
        Index("ix_payment_applications_payment_id", "payment_id"),
        Index("ix_payment_applications_invoice_id", "invoice_id"),
        CheckConstraint("applied_amount > 0", name="ck_payment_applications_amount_positive"),
    )

    def __repr__(self) -> str:
        return (
            f"<PaymentApplication(payment={self.payment_id}, invoice={self.invoice_id}, "
            f"amount={self.applied_amount})>"
        )
