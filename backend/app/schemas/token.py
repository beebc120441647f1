"""
Payload dei token di accesso
Progetto: Field Service Manager (Gestionale Interventi)
"""

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class TokenPayload(BaseModel):
    """Claim letti dal token: solo token di accesso con subject UUID."""

    sub: uuid.UUID = Field(..., description="ID dell'utente chiamante")
    exp: datetime = Field(..., description="Scadenza")
    type: Literal["access"] = Field(..., description="Tipo di token")


__all__ = [
    "TokenPayload",
]
