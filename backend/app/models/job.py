"""
Modello SQLAlchemy per l'entità Job
Progetto: Field Service Manager (Gestionale Interventi)

Un job è un intervento presso il cliente. La fatturazione lo legge
in sola lettura: può essere fatturato solo quando è nello stato "done".
"""

from __future__ import annotations

import uuid
from enum import Enum

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.models import Base
from app.models.mixins import TimestampMixin, UUIDMixin


class JobStatus(str, Enum):
    """Stati del job."""
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    CANCELLED = "cancelled"


class Job(Base, UUIDMixin, TimestampMixin):
    """
    Intervento eseguito per un cliente.

    Attributes:
        id: UUID primary key
        company_id: UUID della company
        customer_id: UUID del cliente
        title: Descrizione breve dell'intervento
        status: Stato (scheduled, in_progress, done, cancelled)
    """

    __tablename__ = "jobs"

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
        doc="UUID del cliente",
    )

    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        doc="Descrizione breve dell'intervento",
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=JobStatus.SCHEDULED.value,
        doc="Stato del job",
    )

    __table_args__ = (
        Index("ix_jobs_customer_id", "customer_id"),
        CheckConstraint(
            "status IN ('scheduled', 'in_progress', 'done', 'cancelled')",
            name="ck_jobs_status",
        ),
    )

    @property
    def is_done(self) -> bool:
        """True se il job è completato e quindi fatturabile."""
        return self.status == JobStatus.DONE.value

    def __repr__(self) -> str:
        return f"<Job(id={self.id}, status={self.status})>"
