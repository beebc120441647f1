"""
Modelli SQLAlchemy per le Company
Progetto: Field Service Manager (Gestionale Interventi)

Contiene:
- Company: azienda (tenant) proprietaria di clienti, job e fatture
- CompanyMember: appartenenza di un utente a una company
- CompanyInvoiceCounter: contatore progressivo dei numeri fattura
"""

from __future__ import annotations

import uuid

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.models import Base
from app.models.mixins import CreatedAtMixin, TimestampMixin, UUIDMixin


class Company(Base, UUIDMixin, TimestampMixin):
    """
    Azienda che usa il gestionale.

    Attributes:
        id: UUID primary key
        name: Ragione sociale
    """

    __tablename__ = "companies"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        doc="Ragione sociale",
    )

    def __repr__(self) -> str:
        return f"<Company(id={self.id}, name={self.name})>"


class CompanyMember(Base, UUIDMixin, CreatedAtMixin):
    """
    Appartenenza di un utente a una company.

    Un utente può appartenere a più company: la fatturazione usa
    la prima membership in ordine di creazione.
    """

    __tablename__ = "company_members"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        doc="UUID dell'utente",
    )

    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        doc="UUID della company",
    )

    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="owner",
        doc="Ruolo dell'utente nella company (owner, employee)",
    )

    __table_args__ = (
        UniqueConstraint("user_id", "company_id", name="uq_company_members_user_company"),
    )


class CompanyInvoiceCounter(Base):
    """
    Contatore dei numeri fattura per company.

    La riga viene incrementata con un singolo upsert atomico: due
    richieste concorrenti non possono leggere lo stesso valore.
    """

    __tablename__ = "company_invoice_counters"

    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("companies.id", ondelete="CASCADE"),
        primary_key=True,
        doc="UUID della company",
    )

    last_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        doc="Ultimo numero fattura assegnato",
    )

    __table_args__ = (
        CheckConstraint("last_number > 0", name="ck_invoice_counters_positive"),
    )

    def __repr__(self) -> str:
        return f"<CompanyInvoiceCounter(company={self.company_id}, last={self.last_number})>"
