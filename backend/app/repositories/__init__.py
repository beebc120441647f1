"""
Repository di accesso ai dati
Progetto: Field Service Manager (Gestionale Interventi)
"""

from app.repositories.billing_repository import BillingRepository, InvoiceTotals

__all__ = ["BillingRepository", "InvoiceTotals"]
