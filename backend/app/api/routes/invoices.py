"""
Router FastAPI per la Fatturazione
Progetto: Field Service Manager (Gestionale Interventi)

Endpoint:
- POST /api/invoices: creazione fattura (header Idempotency-Key opzionale)
- GET /api/invoices/{invoice_id}: dettaglio fattura
- POST /api/invoices/{invoice_id}/issue: emissione di una bozza
"""

import logging
import uuid
from typing import Any

from fastapi import APIRouter, Body, Path, Request, status
from fastapi.responses import JSONResponse

from app.core.deps import CompanyId, CurrentUser, InvoiceServiceDep, Repository
from app.schemas.invoice import (
    InvoiceCreatedResponse,
    InvoiceDetail,
    IssueInvoiceRequest,
    IssueInvoiceResponse,
)
from app.services.idempotency_service import get_idempotency_key

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Router con prefix e tag
router = APIRouter(
    prefix="/invoices",
    tags=["Fatturazione"],
)


@router.post(
    "",
    name="fatture_crea",
    summary="Crea fattura",
    description=(
        "Crea una fattura da job completati, righe manuali e caparre. "
        "Con header Idempotency-Key una richiesta ripetuta restituisce "
        "la risposta originale senza creare nulla."
    ),
    response_model=InvoiceCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_invoice(
    request: Request,
    current_user: CurrentUser,
    company_id: CompanyId,
    repo: Repository,
    service: InvoiceServiceDep,
    payload: Any = Body(...),
) -> JSONResponse:
    """
    Il body viene validato dal service dopo il controllo di idempotenza:
    una richiesta ripetuta viene riprodotta anche se il body è cambiato.
    """
    stored = await service.create_invoice(
        repo,
        user_id=current_user.id,
        company_id=company_id,
        payload=payload,
        idempotency_key=get_idempotency_key(request.headers),
    )
    logger.debug(
        "POST /invoices utente=%s company=%s esito=%s",
        current_user.id, company_id, stored.status_code,
    )
    return JSONResponse(status_code=stored.status_code, content=stored.body)


@router.get(
    "/{invoice_id}",
    name="fatture_dettaglio",
    summary="Dettaglio fattura",
    description="Recupera una fattura con righe e totali.",
    response_model=InvoiceDetail,
    response_model_by_alias=True,
    status_code=status.HTTP_200_OK,
)
async def get_invoice(
    company_id: CompanyId,
    repo: Repository,
    service: InvoiceServiceDep,
    invoice_id: uuid.UUID = Path(..., description="UUID della fattura"),
) -> InvoiceDetail:
    return await service.get_invoice_detail(repo, company_id, invoice_id)


@router.post(
    "/{invoice_id}/issue",
    name="fatture_emetti",
    summary="Emetti fattura",
    description="Porta una fattura da draft a issued impostando la scadenza.",
    response_model=IssueInvoiceResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_200_OK,
)
async def issue_invoice(
    data: IssueInvoiceRequest,
    company_id: CompanyId,
    repo: Repository,
    service: InvoiceServiceDep,
    invoice_id: uuid.UUID = Path(..., description="UUID della fattura"),
) -> IssueInvoiceResponse:
    return await service.issue_invoice(repo, company_id, invoice_id, data)
