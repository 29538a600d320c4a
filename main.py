"""
Event Ledger - Application

Wires settings, database lifecycle, error handlers and routers into the
FastAPI app served by uvicorn (`uvicorn main:app`).
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from event_ledger import __version__
from event_ledger.config import settings
from event_ledger.database import init_db, close_db, get_db
from event_ledger.routers import accounting_events, journal_event_settings
from event_ledger.utils.error_handling import setup_exception_handlers

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"{settings.app_name} {__version__} starting ({settings.app_env})")

    # Deployed environments run alembic instead
    if settings.is_development:
        await init_db()
        logger.info("Ledger tables created")

    yield

    await close_db()
    logger.info(f"{settings.app_name} stopped, database engine disposed")


app = FastAPI(
    title=settings.app_name,
    description="Event-driven double-entry journal engine for multi-company ledgers",
    version=__version__,
    docs_url="/api/docs" if settings.is_development else None,
    redoc_url="/api/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)


# ===========================================
# SERVICE ENDPOINTS
# ===========================================

@app.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    """Liveness plus a database round trip."""
    try:
        await db.execute(text("SELECT 1"))
        database = "connected"
    except SQLAlchemyError as e:
        logger.warning(f"Health check database ping failed: {e}")
        database = "unavailable"

    return {
        "status": "healthy" if database == "connected" else "degraded",
        "database": database,
        "version": __version__,
    }


@app.get("/api/v1")
async def api_root():
    return {
        "message": f"Welcome to {settings.app_name} API v1",
        "endpoints": {
            "events": "/api/v1/accounting/events",
            "journal_event_settings": "/api/v1/accounting/companies/{company_id}/journal-event-settings",
        }
    }


app.include_router(accounting_events.router)
app.include_router(journal_event_settings.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.is_development)
