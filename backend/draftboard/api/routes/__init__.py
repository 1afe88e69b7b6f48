"""API routes."""

from fastapi import APIRouter

from draftboard.api.routes import (
    assignments,
    brands,
    briefs,
    creators,
    fees,
    payouts,
    webhooks,
)

api_router = APIRouter()
api_router.include_router(briefs.router)
api_router.include_router(assignments.router)
api_router.include_router(payouts.router)
api_router.include_router(brands.router)
api_router.include_router(creators.router)
api_router.include_router(webhooks.router)
api_router.include_router(fees.router)

__all__ = ["api_router"]
