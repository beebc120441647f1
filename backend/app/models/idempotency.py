"""
Modello SQLAlchemy per le chiavi di idempotenza
Progetto: Field Service Manager (Gestionale Interventi)

Ogni riga rappresenta una richiesta di creazione identificata da
(utente, company, route, chiave). La riga viene inserita in stato
"pending" prima di eseguire la richiesta e completata con la risposta
2xx memorizzata.
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import JSON, CheckConstraint, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.models import Base
from app.models.mixins import TimestampMixin, UUIDMixin


# Lunghezza massima della chiave fornita dal client
IDEMPOTENCY_KEY_MAX_LENGTH = 255


class IdempotencyState(str, Enum):
    """Stato della chiave di idempotenza."""
    PENDING = "pending"
    COMPLETED = "completed"


class IdempotencyRecord(Base, UUIDMixin, TimestampMixin):
    """
    Risposta memorizzata per una chiave di idempotenza.

    Attributes:
        user_id: UUID dell'utente chiamante
        company_id: UUID della company del chiamante
        route: Identificativo dell'operazione (es. "POST /api/invoices")
        idempotency_key: Valore dell'header fornito dal client
        state: pending | completed
        response_status: Status HTTP memorizzato (solo completed)
        response_body: Corpo JSON memorizzato (solo completed)
    """

    __tablename__ = "request_idempotency"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        nullable=False,
        doc="UUID dell'utente chiamante",
    )

    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        nullable=False,
        doc="UUID della company del chiamante",
    )

    route: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        doc="Operazione protetta dalla chiave",
    )

    idempotency_key: Mapped[str] = mapped_column(
        String(IDEMPOTENCY_KEY_MAX_LENGTH),
        nullable=False,
        doc="Chiave fornita dal client",
    )

    state: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=IdempotencyState.PENDING.value,
        doc="Stato: pending | completed",
    )

    response_status: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        doc="Status HTTP della risposta memorizzata",
    )

    response_body: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSON,
        nullable=True,
        doc="Corpo JSON della risposta memorizzata",
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id", "company_id", "route", "idempotency_key",
            name="uq_request_idempotency_key",
        ),
        CheckConstraint("state IN ('pending', 'completed')", name="ck_request_idempotency_state"),
    )

    @property
    def is_completed(self) -> bool:
        return self.state == IdempotencyState.COMPLETED.value

    def __repr__(self) -> str:
        return f"<IdempotencyRecord(route={self.route}, key={self.idempotency_key}, state={self.state})>"
