"""
Router FastAPI per gli Incassi
Progetto: Field Service Manager (Gestionale Interventi)

Endpoint:
- POST /api/payments: registrazione incasso o caparra (header Idempotency-Key opzionale)
- POST /api/payment-applications: applicazione di un incasso a una fattura
"""

import logging
from typing import Any

from fastapi import APIRouter, Body, Request, status
from fastapi.responses import JSONResponse

from app.core.deps import CompanyId, CurrentUser, Repository
from app.schemas.payment import PaymentApplicationCreatedResponse, PaymentCreatedResponse
from app.services.idempotency_service import get_idempotency_key
from app.services.payment_entry_service import PaymentEntryService

# Logger per questo modulo
logger = logging.getLogger(__name__)

router = APIRouter(tags=["Incassi"])


@router.post(
    "/payments",
    name="incassi_crea",
    summary="Registra incasso",
    description=(
        "Registra un incasso del cliente; con depositType diventa una caparra. "
        "Con header Idempotency-Key una richiesta ripetuta restituisce la "
        "risposta originale senza registrare nulla."
    ),
    response_model=PaymentCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_payment(
    request: Request,
    current_user: CurrentUser,
    company_id: CompanyId,
    repo: Repository,
    payload: Any = Body(...),
) -> JSONResponse:
    stored = await PaymentEntryService.create_payment(
        repo,
        user_id=current_user.id,
        company_id=company_id,
        payload=payload,
        idempotency_key=get_idempotency_key(request.headers),
    )
    logger.debug(
        "POST /payments utente=%s company=%s esito=%s",
        current_user.id, company_id, stored.status_code,
    )
    return JSONResponse(status_code=stored.status_code, content=stored.body)


@router.post(
    "/payment-applications",
    name="incassi_applica",
    summary="Applica incasso a fattura",
    description="Applica parte del credito residuo di un incasso al saldo di una fattura.",
    response_model=PaymentApplicationCreatedResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
)
async def apply_payment(
    current_user: CurrentUser,
    company_id: CompanyId,
    repo: Repository,
    payload: Any = Body(...),
) -> PaymentApplicationCreatedResponse:
    return await PaymentEntryService.apply_payment(
        repo,
        user_id=current_user.id,
        company_id=company_id,
        payload=payload,
    )
