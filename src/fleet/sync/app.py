"""FastAPI application for the fleet sync engine.

This is the main entry point for the sync API server.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..api.database import check_database_health, close_pool, create_pool
from ..api.exceptions import FleetError
from .api import export_router, fleet_error_handler, import_router
from .api.dependencies import get_services
from .config import SyncConfig
from .services import SyncServices, build_services

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(
    config: Optional[SyncConfig] = None,
    services: Optional[SyncServices] = None,
) -> FastAPI:
    """Build the application.

    Args:
        config: Settings; read from the environment when omitted
        services: Pre-built engine (tests). When given, the lifespan does
            not build or tear down its own.
    """
    config = config or (services.config if services else SyncConfig())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup: pool, services, scheduler. Shutdown in reverse order."""
        logger.info(f"Starting Fleet Sync API with {config!r}")
        owned = app.state.sync is None
        pool = None

        if owned:
            if config.database_url:
                pool = await create_pool(config.database_url)
            else:
                logger.warning("DATABASE_URL not set, using in-memory history and inventory")
            app.state.sync = build_services(config, pool=pool)

        if config.scheduler_enabled:
            await app.state.sync.scheduler.start()

        yield

        logger.info("Shutting down Fleet Sync API...")
        if owned:
            await app.state.sync.shutdown()
            await close_pool(pool)
            app.state.sync = None
        else:
            await app.state.sync.scheduler.stop()

    app = FastAPI(
        title="Fleet Sync API",
        description="""
        Pluggable export/import engine for the device fleet.

        ## Features

        - **Export / Import**: run any installed plugin, with preview and dry-run
        - **History**: paginated audit log and per-plugin statistics
        - **Schedules**: recurring exports, runnable on demand
        - **Downloads**: serve export files from the configured base directory
        """,
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.sync = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Accept", "X-API-Key", "X-User-ID"],
    )

    app.add_exception_handler(FleetError, fleet_error_handler)
    app.include_router(export_router, prefix=config.api_prefix)
    app.include_router(import_router, prefix=config.api_prefix)

    @app.get("/health")
    async def health(services: SyncServices = Depends(get_services)):
        """Health check; reports database status when a pool is configured."""
        body = {
            "status": "healthy",
            "plugins": services.registry.count(),
            "scheduler_running": services.scheduler.running,
        }
        if services.pool is not None:
            body["database"] = await check_database_health(services.pool)
            if not body["database"]["healthy"]:
                body["status"] = "degraded"
        return body

    return app


app = create_app()


# Entry point for running with uvicorn
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "fleet.sync.app:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
    )
