"""FastAPI server for material inventory sync.

Main entry point for the API server. The lifespan builds the service graph,
opens the platform client and starts the periodic reconciliation pass.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI

from api.routes import auth, config, health, webhooks
from api.services import SyncServices, build_services
from core import __version__
from core.config import Settings, load_settings
from core.observability.logging import configure_logging, get_logger

logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    services: Optional[SyncServices] = None,
    start_scheduler: Optional[bool] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to build services from (default: environment)
        services: Prebuilt service graph; skips building from settings
        start_scheduler: Override SYNC_ENABLED
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler."""
        app_services = services
        if app_services is None:
            app_settings = settings or load_settings()
            configure_logging(app_settings.logging_level, app_settings.log_json)
            app_services = build_services(app_settings)

        run_scheduler = app_services.settings.sync_enabled if start_scheduler is None else start_scheduler

        # Startup
        logger.info(f"Material sync API starting up for {app_services.settings.shop}")
        app.state.services = app_services
        await app_services.startup(start_scheduler=run_scheduler)

        yield

        # Shutdown
        logger.info("Material sync API shutting down")
        await app_services.shutdown()

    app = FastAPI(
        title="Material Sync API",
        description="Keeps material-backed variants in step with their canonical inventory",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(config.router, tags=["Config"])
    app.include_router(webhooks.router, tags=["Webhooks"])
    app.include_router(auth.router, tags=["Authentication"])

    return app


# Default app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.server:app", host="0.0.0.0", port=load_settings().port)
