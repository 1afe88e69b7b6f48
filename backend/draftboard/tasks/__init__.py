"""Celery tasks module."""

from draftboard.tasks.reconciliation_tasks import (
    expire_stale_funding_sessions,
    refresh_payout,
    refresh_processing_payouts,
)

__all__ = [
    "refresh_processing_payouts",
    "expire_stale_funding_sessions",
    "refresh_payout",
]
