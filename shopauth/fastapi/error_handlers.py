"""FastAPI error handlers for shopauth exceptions.

This module converts shopauth exceptions into JSON responses of the form
``{"error": {"code": ..., "message": ...}}`` with the matching HTTP status.
The auth core never builds responses itself; this is the only place where
failures become HTTP.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from shopauth.core.exceptions import (
    InternalError,
    RateLimitError,
    ShopAuthError,
    UnauthorizedError,
    ValidationError,
)

logger = logging.getLogger(__name__)


async def shopauth_exception_handler(
    request: Request,
    exc: ShopAuthError
) -> JSONResponse:
    """Handle shopauth exceptions.

    Args:
        request: The FastAPI request
        exc: The shopauth exception

    Returns:
        JSONResponse with error details
    """
    if isinstance(exc, InternalError):
        # Lower-layer details stay in the logs
        logger.error(f"Internal error on {request.url.path}: {exc.message}")
        content = {"code": exc.code, "message": "An unexpected error occurred. Please try again later."}
    else:
        content = exc.to_dict()

    if isinstance(exc, ValidationError) and exc.field:
        content["field"] = exc.field

    headers = {}
    if isinstance(exc, RateLimitError) and exc.retry_after:
        headers["Retry-After"] = str(exc.retry_after)
    if isinstance(exc, UnauthorizedError):
        headers["WWW-Authenticate"] = "Bearer"

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": content},
        headers=headers if headers else None,
    )


async def validation_exception_handler(
    request: Request,
    exc: PydanticValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors.

    Args:
        request: The FastAPI request
        exc: The Pydantic ValidationError

    Returns:
        JSONResponse with validation error details
    """
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })

    return JSONResponse(
        status_code=400,
        content={
            "error": {
                "code": ValidationError.code,
                "message": "Request validation failed",
                "details": errors,
            }
        },
    )


async def generic_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """Handle unexpected exceptions.

    Args:
        request: The FastAPI request
        exc: The exception

    Returns:
        JSONResponse with generic error message
    """
    logger.exception(f"Unhandled error on {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": InternalError.code,
                "message": "An unexpected error occurred. Please try again later.",
            }
        },
    )


def register_error_handlers(app: FastAPI, include_generic: bool = False) -> None:
    """Register all shopauth error handlers with a FastAPI app.

    Starlette resolves handlers along the exception's MRO, so registering
    the base class covers every subclass.

    Args:
        app: The FastAPI application
        include_generic: Whether to include a generic handler for all exceptions
    """
    app.add_exception_handler(ShopAuthError, shopauth_exception_handler)
    app.add_exception_handler(PydanticValidationError, validation_exception_handler)

    if include_generic:
        app.add_exception_handler(Exception, generic_exception_handler)
