"""
Stock ledger HTTP service.

The app migrates the ledger database and warms the connection pool before
serving, and closes the pool on the way down.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stockledger import __version__
from stockledger.api.middleware import ErrorHandlerMiddleware, LoggingMiddleware
from stockledger.api.middleware.error_handler import setup_exception_handlers
from stockledger.api.routes import (
    customers_router,
    health_router,
    inventory_router,
    jobs_router,
    purchase_orders_router,
)
from stockledger.config import configure_logging, get_logger, get_settings

logger = get_logger(__name__)

ROUTERS = (
    health_router,
    inventory_router,
    jobs_router,
    purchase_orders_router,
    customers_router,
)


async def open_storage() -> None:
    """Apply pending migrations, then open the shared pool."""
    from stockledger.infrastructure.storage.sqlite import get_pool
    from stockledger.infrastructure.storage.sqlite.migrations import run_migrations

    results = await run_migrations()
    failed = [r for r in results if not r.success]
    if failed:
        raise RuntimeError(f"Migration {failed[0].version} failed: {failed[0].error}")

    pool = await get_pool()
    logger.info(
        "ledger_storage_ready",
        applied=[r.version for r in results],
        db_path=str(pool.db_path),
        pool_size=pool.pool_size,
    )


async def close_storage() -> None:
    """Drop service singletons and close the pool."""
    from stockledger.application.services import reset_services
    from stockledger.infrastructure.storage.sqlite import close_pool, reset_ledger_store

    reset_services()
    reset_ledger_store()
    await close_pool()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    configure_logging()
    logger.info(
        "application_starting",
        environment=settings.environment,
        host=settings.api.host,
        port=settings.api.port,
    )

    try:
        await open_storage()
    except Exception as e:
        logger.error("ledger_storage_failed", error=str(e))
        raise

    yield

    logger.info("application_stopping")
    await close_storage()
    logger.info("application_stopped")


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=f"{settings.app_name} API",
        description="Batch-level FIFO inventory, repair jobs and payment allocation",
        version=__version__,
        docs_url="/docs" if settings.api.debug else None,
        redoc_url="/redoc" if settings.api.debug else None,
        lifespan=lifespan,
    )

    # Added last runs first: errors are rendered inside the request log
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(LoggingMiddleware)
    if settings.api.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.api.cors_origins,
            allow_methods=["GET", "POST", "PATCH"],
            allow_headers=["*"],
            expose_headers=["X-Request-ID", "X-Response-Time"],
        )

    setup_exception_handlers(app)
    for router in ROUTERS:
        app.include_router(router)

    # Container probes hit this without touching the database
    @app.get("/health", include_in_schema=False)
    async def root_health() -> dict[str, str]:
        return {"status": "healthy", "version": __version__}

    return app


app = create_app()
