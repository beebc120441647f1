"""
API Routes
Progetto: Field Service Manager (Gestionale Interventi)

Router aggregato sotto il prefisso /api.
"""

from fastapi import APIRouter

from app.api.routes import customers, invoices, payments

# Router aggregato
api_router = APIRouter(prefix="/api")

# Includi i router dei moduli
api_router.include_router(invoices.router)
api_router.include_router(customers.router)
api_router.include_router(payments.router)

# Esportazione
__all__ = ["api_router"]
