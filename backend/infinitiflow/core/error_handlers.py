"""
Exception handlers
==================
Turn every error into the response envelope::

    {"status": "fail" | "error", "message": "...", "code": "...", "details": {...}}

Registered on the app by ``register_exception_handlers``.
"""

from typing import Any, Dict, List

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from infinitiflow.core.config import settings
from infinitiflow.core.exceptions import InfinitiFlowError
from infinitiflow.core.logging_config import logger
from infinitiflow.core.rate_limiter import rate_limit_exceeded_handler


def _field_errors(exc: RequestValidationError) -> List[Dict[str, str]]:
    errors = []
    for error in exc.errors():
        # Drop the "body"/"query"/"path" prefix
        loc = [str(part) for part in error.get("loc", ())[1:]]
        errors.append({
            "field": ".".join(loc) or str(error.get("loc", ("",))[0]),
            "message": error.get("msg", "Invalid value"),
        })
    return errors


async def infinitiflow_error_handler(request: Request, exc: InfinitiFlowError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.log_error_with_context(exc, context=f"{request.method} {request.url.path}")

    headers = None
    retry_after = exc.details.get("retry_after") if exc.details else None
    if retry_after is not None:
        headers = {"Retry-After": str(retry_after)}

    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = _field_errors(exc)
    logger.info(
        f"Validation failed for {request.method} {request.url.path}: {len(errors)} error(s)",
        extra={"event_type": "validation_error", "http_path": request.url.path}
    )
    return JSONResponse(
        status_code=400,
        content={
            "status": "fail",
            "message": "Validation failed",
            "code": "VALIDATION_ERROR",
            "details": {"errors": errors},
        }
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        message = f"Not found - {request.url.path}"
        code = "NOT_FOUND"
    else:
        message = str(exc.detail)
        code = "HTTP_ERROR"

    content: Dict[str, Any] = {
        "status": "fail" if 400 <= exc.status_code < 500 else "error",
        "message": message,
        "code": code,
    }
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Global exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "status": "error",
            "message": str(exc) if settings.DEBUG else "Something went wrong",
            "code": "INTERNAL_ERROR",
        }
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(InfinitiFlowError, infinitiflow_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
