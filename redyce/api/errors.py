"""HTTP error mapping for the API."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from redyce.services import NotFoundError

logger = logging.getLogger(__name__)


class InvalidRequestError(ValueError):
    """Raised when a request is well-formed but cannot be honoured."""

    pass


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain errors to 404 and 400 responses."""

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        logger.info(f"{request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(InvalidRequestError)
    async def invalid_request_handler(request: Request, exc: InvalidRequestError) -> JSONResponse:
        logger.info(f"{request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=400, content={"detail": str(exc)})
