"""
Router FastAPI per i Clienti
Progetto: Field Service Manager (Gestionale Interventi)

Endpoint:
- GET /api/customers/{customer_id}/unapplied-payments: incassi con credito residuo
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Path, Query, status

from app.core.deps import CompanyId, Repository
from app.schemas.invoice import DepositType, UnappliedPaymentsResponse
from app.services.ownership_service import validate_customer
from app.services.payment_service import list_unapplied

router = APIRouter(
    prefix="/customers",
    tags=["Clienti"],
)


@router.get(
    "/{customer_id}/unapplied-payments",
    name="clienti_incassi_non_applicati",
    summary="Incassi con credito residuo",
    description="Incassi e caparre del cliente non ancora consumati, dal più recente.",
    response_model=UnappliedPaymentsResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_200_OK,
)
async def get_unapplied_payments(
    company_id: CompanyId,
    repo: Repository,
    customer_id: uuid.UUID = Path(..., description="UUID del cliente"),
    deposit_type: Optional[DepositType] = Query(
        None,
        alias="depositType",
        description="Filtro per tipo caparra",
    ),
) -> UnappliedPaymentsResponse:
    await validate_customer(repo, customer_id, company_id)
    return await list_unapplied(
        repo,
        company_id,
        customer_id,
        deposit_type.value if deposit_type else None,
    )
