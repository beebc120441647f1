"""
Token JWT del chiamante
Progetto: Field Service Manager (Gestionale Interventi)

Login e registrazione appartengono a un altro servizio: la fatturazione
si limita a verificare il token di accesso e a ricavarne l'utente.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from fastapi import HTTPException, status
from jose import JWTError, jwt
from pydantic import ValidationError

from app.core.config import settings
from app.schemas.token import TokenPayload


def credentials_error(detail: str) -> HTTPException:
    """401 con l'header WWW-Authenticate richiesto dallo schema Bearer."""
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def create_access_token(
    user_id: Union[uuid.UUID, str],
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Firma un token di accesso per l'utente.

    Args:
        user_id: ID dell'utente (subject)
        expires_delta: Validità; default access_token_expire_minutes

    Returns:
        Token JWT codificato
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)

    claims = {
        "sub": str(user_id),
        "exp": datetime.now(timezone.utc) + expires_delta,
        "type": "access",
    }
    return jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> TokenPayload:
    """
    Verifica firma e scadenza, poi i claim.

    Raises:
        HTTPException 401: firma non valida, token scaduto, tipo diverso
            da "access" o subject che non è un UUID
    """
    try:
        claims = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        raise credentials_error(f"Token invalido o scaduto: {e}")

    try:
        return TokenPayload.model_validate(claims)
    except ValidationError:
        raise credentials_error("Token di accesso non valido")


__all__ = [
    "create_access_token",
    "credentials_error",
    "decode_access_token",
]
