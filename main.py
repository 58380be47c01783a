"""
TradeDoc Tracker - FastAPI Application Entry Point

This is the main entry point for the FastAPI application.
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tradedoc import __version__
from tradedoc.config import settings
from tradedoc.database import init_db, close_db
from tradedoc.services.reminder_scheduler import get_reminder_scheduler
from tradedoc.utils.error_handling import setup_exception_handlers

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info(f"Starting {settings.app_name}...")
    logger.info(f"Environment: {settings.app_env}")

    # Initialize database (dev only - production schema is managed separately)
    if settings.is_development or settings.is_sqlite:
        await init_db()
        logger.info("Database tables initialized")

    scheduler = get_reminder_scheduler()
    scheduler.job_queue.start()
    try:
        await scheduler.recover_pending()
    except Exception as e:
        logger.warning(f"Reminder recovery skipped: {e}")

    sweep_task = None
    if settings.reminder_sweep_enabled:
        sweep_task = asyncio.create_task(
            scheduler.run_forever(settings.reminder_sweep_interval_seconds)
        )
        logger.info(f"Reminder sweep every {settings.reminder_sweep_interval_seconds}s")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}...")
    if sweep_task is not None:
        sweep_task.cancel()
        try:
            await sweep_task
        except asyncio.CancelledError:
            pass
    await scheduler.job_queue.stop()
    await close_db()
    logger.info("Database connections closed")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="Trade-finance document tracking with deadline reminders",
    version=__version__,
    docs_url="/api/docs" if settings.is_development else None,
    redoc_url="/api/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Exception handlers
setup_exception_handlers(app)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": __version__,
    }


# ===========================================
# INCLUDE ROUTERS
# ===========================================

from tradedoc.routers import transactions, reminders, customers, email_config  # noqa: E402

app.include_router(transactions.router, prefix=f"{settings.api_prefix}/transactions", tags=["Transactions"])
app.include_router(reminders.router, prefix=f"{settings.api_prefix}/reminders", tags=["Reminders"])
app.include_router(customers.router, prefix=f"{settings.api_prefix}/customers", tags=["Customers"])
app.include_router(email_config.router, prefix=f"{settings.api_prefix}/email-config", tags=["Sender Account"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
