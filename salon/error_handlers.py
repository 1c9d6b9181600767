"""
Centralized exception handlers
Every error leaves the API in the {success: false, data: null, message, errors?} envelope.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from jose import JWTError
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .shared.responses import error_body

logger = logging.getLogger(__name__)

PRIMITIVE_TYPES = (str, int, float, bool, type(None))


def _field_errors(exc: RequestValidationError) -> list[dict]:
    errors = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ())]
        # Drop the "body"/"query"/"path" prefix
        field = ".".join(loc[1:]) if len(loc) > 1 else ".".join(loc)
        value = error.get("input")
        errors.append(
            {
                "field": field,
                "message": error.get("msg", "Invalid value"),
                "value": value if isinstance(value, PRIMITIVE_TYPES) else str(value),
            }
        )
    return errors


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = _field_errors(exc)
    logger.warning(f"Validation error for {request.url.path}: {errors}")
    return JSONResponse(status_code=400, content=error_body("Validation failed", errors))


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    if isinstance(detail, str):
        body = error_body(detail)
    else:
        body = error_body("Request failed", detail if isinstance(detail, list) else [detail])

    if exc.status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path} -> {exc.status_code}: {detail}")
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"Integrity error for {request.url.path}: {exc.orig}")
    return JSONResponse(status_code=400, content=error_body("Duplicate value violates a unique constraint"))


async def jwt_error_handler(request: Request, exc: JWTError):
    logger.warning(f"JWT error for {request.url.path}: {exc}")
    return JSONResponse(status_code=401, content=error_body("Invalid token"))


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"❌ Unhandled error for {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content=error_body("Internal server error"))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(JWTError, jwt_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
