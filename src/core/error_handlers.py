"""Translation of raised errors into JSON responses.

Every failure leaves the API as ``{"success": false, "error": ..., "code": ...}``.
"""

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from config import ENVIRONMENT
from core.exceptions import AppError, RateLimitError

logger = logging.getLogger(__name__)


def _error_body(message: str, code: str, **extra) -> dict:
    return {"success": False, "error": message, "code": code, **extra}


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.code)
    else:
        logger.info("%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.code)

    if isinstance(exc, RateLimitError):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.message, exc.code, retry_after=exc.retry_after),
            headers={"Retry-After": str(exc.retry_after)},
        )
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, exc.code))


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = [
        {"field": ".".join(str(part) for part in err.get("loc", ())), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=_error_body("Invalid request data", "VALIDATION_ERROR", details=details),
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(
        status_code=409,
        content=_error_body("A record with this data already exists", "DUPLICATE_ENTRY"),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    extra = {}
    if ENVIRONMENT == "development":
        extra["traceback"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return JSONResponse(
        status_code=500,
        content=_error_body("Internal server error", "INTERNAL_ERROR", **extra),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Install the error translators on an application."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
