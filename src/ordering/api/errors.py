"""Maps domain failures to JSON error responses.

Every error body has the same shape: ``{"error", "message", "details"}``.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.integrations.fastapi import register_exception_handlers

from ordering.errors import (
    Conflict,
    CouponInvalid,
    EmptyCart,
    InsufficientStock,
    InvalidTransition,
    NotFound,
    SignatureMismatch,
    StorefrontError,
    Unauthenticated,
    Unauthorized,
)

logger = structlog.get_logger(__name__)

ERROR_STATUS_CODES = {
    EmptyCart: 400,
    CouponInvalid: 400,
    SignatureMismatch: 400,
    Unauthenticated: 401,
    Unauthorized: 403,
    NotFound: 404,
    InsufficientStock: 409,
    InvalidTransition: 409,
    Conflict: 409,
}


def status_for(exc: StorefrontError) -> int:
    """Status of the closest mapped class, so subclasses such as AlreadyPaid inherit it."""
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[cls]
    return 500


async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("Unmapped storefront error", error=exc.code, message=exc.message, path=request.url.path)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": "validation_error", "message": "Invalid request", "details": exc.messages},
    )


async def not_found_handler(request: Request, exc: ObjectNotFoundError) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={"error": NotFound.code, "message": "Resource not found", "details": {}},
    )


def register_error_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    app.add_exception_handler(StorefrontError, storefront_error_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(ObjectNotFoundError, not_found_handler)
