"""
Modello SQLAlchemy per l'entità User
Progetto: Field Service Manager (Gestionale Interventi)

Utente autenticato che esegue le operazioni di fatturazione.
"""

from __future__ import annotations

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models import Base
from app.models.mixins import TimestampMixin, UUIDMixin


class User(Base, UUIDMixin, TimestampMixin):
    """
    Modello per gli utenti del sistema.

    Attributes:
        id: UUID primary key, generato automaticamente
        email: Email univoca dell'utente
        full_name: Nome completo dell'utente
        is_active: Indica se l'utente è attivo
        created_at: Data/ora creazione record
        updated_at: Data/ora ultimo aggiornamento
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        doc="Email univoca dell'utente",
    )

    full_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        doc="Nome completo dell'utente",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        doc="Indica se l'utente è attivo",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
