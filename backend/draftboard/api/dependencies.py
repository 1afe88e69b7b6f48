"""FastAPI dependencies."""

from fastapi import Request

from draftboard.container import Services


def get_services(request: Request) -> Services:
    """Return the service graph built during application startup."""
    return request.app.state.services
