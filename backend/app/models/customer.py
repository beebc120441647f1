"""
Modello SQLAlchemy per l'entità Customer
Progetto: Field Service Manager (Gestionale Interventi)

L'anagrafica clienti è gestita altrove: la fatturazione la legge
solo per verificarne l'appartenenza alla company.
"""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.models import Base
from app.models.mixins import TimestampMixin, UUIDMixin


class Customer(Base, UUIDMixin, TimestampMixin):
    """
    Cliente di una company.

    Attributes:
        id: UUID primary key
        company_id: UUID della company proprietaria
        name: Nome o ragione sociale
        email: Email di fatturazione
        phone: Telefono
    """

    __tablename__ = "customers"

    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("companies.id", ondelete="RESTRICT"),
        nullable=False,
        doc="UUID della company proprietaria",
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        doc="Nome o ragione sociale",
    )

    email: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        doc="Email di fatturazione",
    )

    phone: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        doc="Telefono",
    )

    __table_args__ = (
        Index("ix_customers_company_id", "company_id"),
    )

    def __repr__(self) -> str:
        return f"<Customer(id={self.id}, name={self.name})>"
