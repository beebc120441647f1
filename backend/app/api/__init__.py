"""
API
Progetto: Field Service Manager (Gestionale Interventi)
"""
