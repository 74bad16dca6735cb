"""Global exception handlers.

- SweetLinkError -> status from the error class, ``{"error": {...}}`` body
- RequestValidationError -> 400 ``invalid_input`` with field details
- SQLAlchemy timeouts / operational errors -> 503 retryable
- Exception (catch-all) -> 500 without internal details
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from sweetlink.core.errors import (
    AuthenticationError,
    InvalidInputError,
    StoreTimeoutError,
    SweetLinkError,
    TransientStoreError,
)

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = 1


def _error_response(exc: SweetLinkError, extra: dict | None = None) -> JSONResponse:
    body = exc.to_response()
    if extra:
        body["error"].update(extra)
    headers = {}
    if isinstance(exc, TransientStoreError):
        headers["Retry-After"] = str(RETRY_AFTER_SECONDS)
    if isinstance(exc, AuthenticationError):
        headers["WWW-Authenticate"] = "Bearer"
    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""

    @app.exception_handler(SweetLinkError)
    async def sweetlink_error_handler(request: Request, exc: SweetLinkError):
        level = logging.ERROR if exc.status_code >= 500 else logging.INFO
        logger.log(level, "%s on %s: %s", exc.code, request.url.path, exc.message)
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        fields = [
            {"field": ".".join(str(p) for p in err["loc"][1:]), "message": err["msg"]}
            for err in exc.errors()
        ]
        return _error_response(InvalidInputError(), {"fields": jsonable_encoder(fields)})

    @app.exception_handler(OperationalError)
    async def operational_error_handler(request: Request, exc: OperationalError):
        logger.warning("Store operational error on %s: %s", request.url.path, exc.orig)
        return _error_response(TransientStoreError())

    @app.exception_handler(PoolTimeoutError)
    async def pool_timeout_handler(request: Request, exc: PoolTimeoutError):
        logger.warning("Store pool timeout on %s", request.url.path)
        return _error_response(StoreTimeoutError())

    @app.exception_handler(TimeoutError)
    async def timeout_handler(request: Request, exc: TimeoutError):
        logger.warning("Store command timed out on %s", request.url.path)
        return _error_response(StoreTimeoutError())

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "code": "internal_error",
                    "message": "Internal error",
                    "category": "internal",
                    "retryable": False,
                }
            },
        )
