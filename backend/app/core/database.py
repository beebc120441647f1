"""
Accesso al database - SQLAlchemy 2.0 Async su PostgreSQL (asyncpg)
Progetto: Field Service Manager (Gestionale Interventi)

Una sessione per richiesta HTTP. La sessione non apre transazioni
multi-statement per conto dei service: ogni scrittura del
BillingRepository esegue il proprio commit.
"""

import logging
from typing import AsyncIterator, List

from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import settings

logger = logging.getLogger(__name__)

# Tabelle senza le quali POST /api/invoices non può funzionare
BILLING_TABLES = (
    "company_members",
    "company_invoice_counters",
    "customers",
    "jobs",
    "invoices",
    "invoice_lines",
    "payments",
    "payment_applications",
    "request_idempotency",
)


engine: AsyncEngine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    # visibile in pg_stat_activity
    connect_args={"server_settings": {"application_name": settings.app_name}},
)

BillingSession = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncIterator[AsyncSession]:
    """Sessione della richiesta; in caso di errore annulla il lavoro non committato."""
    async with BillingSession() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


def _missing_tables(sync_conn) -> List[str]:
    existing = set(inspect(sync_conn).get_table_names())
    return [name for name in BILLING_TABLES if name not in existing]


async def init_db() -> None:
    """
    Controllo all'avvio: il database risponde e lo schema di fatturazione c'è.

    Le tabelle mancanti vengono solo segnalate: le migrazioni sono
    gestite fuori dall'applicazione.
    """
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
            missing = await conn.run_sync(_missing_tables)
    except Exception as e:
        logger.error("Database non raggiungibile: %s", e)
        raise

    if missing:
        logger.warning("Tabelle di fatturazione mancanti: %s", ", ".join(missing))
    else:
        logger.info("Database pronto, schema di fatturazione presente")


async def close_db() -> None:
    """Rilascia il pool di connessioni allo shutdown."""
    await engine.dispose()
    logger.info("Pool di connessioni database chiuso")
