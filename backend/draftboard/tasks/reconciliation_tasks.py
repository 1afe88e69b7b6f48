"""Periodic reconciliation Celery tasks."""

import asyncio
import logging

from draftboard.celery_config import celery_app
from draftboard.config import get_settings
from draftboard.runtime import open_services
from draftboard.services.processor import ProcessorUnavailable

logger = logging.getLogger(__name__)


@celery_app.task(name="tasks.refresh_processing_payouts", queue="reconciliation")
def refresh_processing_payouts():
    """
    Scheduled: Every 10 minutes

    Re-checks payouts stuck in processing against the processor.
    """

    async def _refresh():
        async with open_services(get_settings()) as services:
            checked = await services.payouts.refresh_stale_payouts()
            return {"payouts_checked": checked}

    return asyncio.run(_refresh())


@celery_app.task(name="tasks.expire_stale_funding_sessions", queue="reconciliation")
def expire_stale_funding_sessions():
    """
    Scheduled: Every 15 minutes

    Settles or expires pending funding sessions older than the TTL.
    """

    async def _expire():
        async with open_services(get_settings()) as services:
            closed = await services.funding.expire_stale_sessions()
            return {"sessions_closed": closed}

    return asyncio.run(_expire())


@celery_app.task(
    name="tasks.refresh_payout",
    queue="reconciliation",
    bind=True,
    max_retries=5,
    default_retry_delay=120,
)
def refresh_payout(self, assignment_id: str):
    """Re-check one assignment's payout, retrying while the processor is unreachable."""

    async def _refresh():
        async with open_services(get_settings()) as services:
            result = await services.payouts.refresh_payout(assignment_id)
            return {"assignment_id": assignment_id, "status": result.status}

    try:
        return asyncio.run(_refresh())
    except ProcessorUnavailable as exc:
        logger.warning(f"Processor unavailable refreshing {assignment_id}, retrying: {exc}")
        raise self.retry(exc=exc)
