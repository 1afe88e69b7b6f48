"""Process-level resources: engine, processor client, alerter and the service graph."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from draftboard.config import Settings
from draftboard.container import Services, build_services
from draftboard.database import create_engine, create_session_factory, init_models
from draftboard.observability import instrument_database
from draftboard.services.processor import ProcessorClient
from draftboard.services.telegram import TelegramAlerter, TelegramAuthError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def open_services(settings: Settings, create_tables: bool = False) -> AsyncIterator[Services]:
    """
    Build every long-lived resource for one process and tear it down on exit.

    Used by the API lifespan, Celery tasks and CLI commands.
    """
    engine = create_engine(settings)
    instrument_database(settings, engine)
    if create_tables:
        await init_models(engine)

    alerter = TelegramAlerter(settings.telegram)
    try:
        await alerter.__aenter__()
    except TelegramAuthError as e:
        logger.warning(f"Operator alerts disabled: {e}")
        alerter = None

    try:
        async with ProcessorClient(settings.processor) as processor:
            yield build_services(
                settings,
                create_session_factory(engine),
                processor,
                alerter,
            )
    finally:
        if alerter is not None:
            await alerter.__aexit__(None, None, None)
        await engine.dispose()
