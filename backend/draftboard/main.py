"""
FastAPI application entry point for Draftboard payouts.

This module:
- Builds the service graph in the lifespan (engine, processor, alerts)
- Configures CORS for the brand and creator frontends
- Sets up Logfire observability
- Maps domain errors to HTTP responses
- Provides health check endpoints
"""

from contextlib import asynccontextmanager
from typing import Dict, Optional

import logfire
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from draftboard import __version__
from draftboard.api.errors import register_exception_handlers
from draftboard.api.routes import api_router
from draftboard.config import Settings, get_settings
from draftboard.container import Services
from draftboard.database import check_db_connection
from draftboard.observability import initialize_logfire
from draftboard.runtime import open_services


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Services injected through create_app (tests) are used as-is; otherwise
    they are built here and torn down on shutdown.
    """
    settings: Settings = app.state.settings

    logfire.info(
        "Starting Draftboard API Server",
        environment=settings.environment,
        debug=settings.debug,
    )

    if app.state.services is not None:
        yield
        return

    async with open_services(settings, create_tables=settings.is_development) as services:
        app.state.services = services
        logfire.info(
            "Draftboard API Server startup complete",
            sandbox=services.processor.sandbox,
        )

        yield

        logfire.info("Shutting down Draftboard API Server")
        app.state.services = None


def create_app(
    settings: Optional[Settings] = None,
    services: Optional[Services] = None,
) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="Draftboard Payouts API",
        description="Brief escrow funding and creator payout orchestration",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.settings = settings
    app.state.services = services

    initialize_logfire(settings, app=app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api")

    # ========================================================================
    # Health Check Endpoints
    # ========================================================================

    @app.get("/health", tags=["Health"])
    async def health_check() -> Dict[str, str]:
        """
        Health check endpoint for load balancers and monitoring.

        Returns:
            dict: Health status of the application and database
        """
        db_connected = False
        if app.state.services is not None:
            db_connected = await check_db_connection(app.state.services.session_factory)

        return {
            "status": "healthy" if db_connected else "degraded",
            "service": "draftboard-api",
            "version": __version__,
            "database": "connected" if db_connected else "disconnected",
            "environment": settings.environment,
        }

    @app.get("/", tags=["Root"])
    async def root() -> Dict[str, str]:
        """Root endpoint - API information."""
        return {
            "name": "Draftboard Payouts API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    return app


app = create_app()
