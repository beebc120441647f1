"""
Mixin SQLAlchemy per modelli
Progetto: Field Service Manager (Gestionale Interventi)

Colonne comuni: chiave UUID e timestamp.

Le tabelle append-only della fatturazione (righe fattura, payment
application, membership) usano solo CreatedAtMixin: una volta scritte non
vengono più modificate, al massimo eliminate in blocco con la fattura.
"""

import datetime
import uuid

from sqlalchemy import DateTime, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func


class UUIDMixin:
    """Chiave primaria UUID generata lato applicazione."""

    # generato in Python: i service conoscono l'id prima dell'insert
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )


class CreatedAtMixin:
    """Data/ora di inserimento, assegnata dal database."""

    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )


class TimestampMixin(CreatedAtMixin):
    """
    created_at più updated_at.

    updated_at è valorizzato dal database all'insert e riscritto da
    SQLAlchemy a ogni UPDATE (onupdate) che non lo imposta esplicitamente.
    """

    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
