"""
Dependency Injection
Progetto: Field Service Manager (Gestionale Interventi)

Funzioni di dependency injection per autenticazione, company del
chiamante, repository e service di fatturazione.
"""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import PreconditionFailedError
from app.core.security import credentials_error, decode_access_token
from app.models.user import User
from app.repositories.billing_repository import BillingRepository
from app.services.invoice_service import InvoiceService

# OAuth2 scheme - estrae il token dall'header Authorization
oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/api/auth/login",
    auto_error=False,
)


async def get_repository(db: AsyncSession = Depends(get_db)) -> BillingRepository:
    """Repository della richiesta, costruito sulla sessione di get_db."""
    return BillingRepository(db)


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    repo: BillingRepository = Depends(get_repository),
) -> User:
    """
    Utente attivo identificato dal token di accesso.

    Raises:
        HTTPException 401: token assente o non valido, utente inesistente o disattivato
    """
    if not token:
        raise credentials_error("Token di autenticazione non fornito")

    claims = decode_access_token(token)
    user = await repo.get_user(claims.sub)
    if user is None or not user.is_active:
        raise credentials_error("Utente non trovato o disattivato")
    return user


async def get_company_id(
    current_user: Annotated[User, Depends(get_current_user)],
    repo: BillingRepository = Depends(get_repository),
) -> UUID:
    """
    Company del chiamante (prima membership).

    Raises:
        PreconditionFailedError 400: L'utente non appartiene a nessuna company
    """
    company_id = await repo.get_first_company_id(current_user.id)
    if company_id is None:
        raise PreconditionFailedError("No company found", error_code="NO_COMPANY")
    return company_id


def get_invoice_service() -> InvoiceService:
    return InvoiceService(settings.payment_application_failure_policy)


# Type aliases per uso comune
CurrentUser = Annotated[User, Depends(get_current_user)]
CompanyId = Annotated[UUID, Depends(get_company_id)]
Repository = Annotated[BillingRepository, Depends(get_repository)]
InvoiceServiceDep = Annotated[InvoiceService, Depends(get_invoice_service)]


# Export
__all__ = [
    "get_repository",
    "get_current_user",
    "get_company_id",
    "get_invoice_service",
    "oauth2_scheme",
    "CurrentUser",
    "CompanyId",
    "Repository",
    "InvoiceServiceDep",
]
