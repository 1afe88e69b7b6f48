"""Exception handlers mapping domain and processor errors to HTTP responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from draftboard.exceptions import DraftboardError
from draftboard.services.processor import ProcessorError, ProcessorUnavailable

logger = logging.getLogger(__name__)


async def draftboard_error_handler(request: Request, exc: DraftboardError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.message},
    )


async def processor_error_handler(request: Request, exc: ProcessorError) -> JSONResponse:
    if isinstance(exc, ProcessorUnavailable):
        code = "processor_unavailable"
    else:
        code = exc.code or "processor_error"

    logger.warning(f"Processor error on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.http_status,
        content={"error": code, "detail": exc.message},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DraftboardError, draftboard_error_handler)
    app.add_exception_handler(ProcessorError, processor_error_handler)
