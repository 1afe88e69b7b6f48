"""Logfire cloud observability initialization and instrumentation."""

import logging

import logfire

from draftboard import __version__
from draftboard.config import Settings

logger = logging.getLogger(__name__)


def initialize_logfire(settings: Settings, app=None) -> bool:
    """
    Initialize Logfire with instrumentation for the payout service.

    Must be called ONCE per process, before the FastAPI app starts serving.

    Instruments:
    - FastAPI request handling (when an app is given)
    - HTTPX clients (payment processor API)
    - Python logging (bridges to Logfire)

    Args:
        settings: Application settings containing Logfire token
        app: Optional FastAPI application

    Returns:
        True when Logfire was configured
    """
    if not settings.logfire_token:
        # Keeps logfire.info() calls local-only
        logfire.configure(send_to_logfire=False, console=False)
        logger.warning("Logfire token not set - observability disabled")
        return False

    try:
        logfire.configure(
            token=settings.logfire_token,
            service_name="draftboard",
            service_version=__version__,
            environment=settings.environment,
        )

        if app is not None:
            logfire.instrument_fastapi(app)

        logfire.instrument_httpx()

        root_logger = logging.getLogger()
        root_logger.addHandler(logfire.LogfireLoggingHandler())

        logger.info("Logfire cloud tracking initialized")
        return True

    except Exception as e:
        logger.warning(f"Failed to initialize Logfire: {e}")
        return False


def instrument_database(settings: Settings, engine) -> None:
    """Trace queries on an async SQLAlchemy engine."""
    if not settings.logfire_token:
        return
    try:
        logfire.instrument_sqlalchemy(engine=engine.sync_engine)
    except Exception as e:
        logger.warning(f"Failed to instrument database: {e}")
