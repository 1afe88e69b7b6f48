"""Common Pydantic schemas and base classes."""

from typing import Optional

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class ErrorResponse(BaseModel):
    """Body of every business-rule error response."""

    error: str
    detail: str


class ActionResponse(BaseModel):
    """Generic action response."""

    success: bool
    message: str
    data: Optional[dict] = None
