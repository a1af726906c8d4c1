"""
sessiontab/core/errors.py

Purpose: HTTP error rendering

- Every error leaves the API as {"error", "code", "details"}
- Domain errors keep their own status code
- Anything unexpected becomes a 500 without leaking internals in production
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from sessiontab.core.config import settings
from sessiontab.core.exceptions import SessionTabError
from sessiontab.core.logging import get_logger
from sessiontab.schemas.response import ErrorResponse

logger = get_logger(__name__)


def add_exception_handlers(app: FastAPI):
    """
    Registers exception handlers with the FastAPI app.
    """
    @app.exception_handler(SessionTabError)
    async def sessiontab_exception_handler(request: Request, exc: SessionTabError):
        level = logger.error if exc.status_code >= 500 else logger.info
        level(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}")
        return ErrorResponse.from_exception(exc).render(exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Routing errors (404, 405, ...)."""
        return ErrorResponse(error=str(exc.detail), code="HTTP_ERROR").render(exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Malformed request bodies, e.g. an event without a sender ID."""
        return ErrorResponse(
            error="Input validation failed",
            code="VALIDATION_ERROR",
            details=jsonable_errors(exc),
        ).render(422)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled exception on {request.method} {request.url.path}: {exc}",
            extra={"client": request.client.host if request.client else "unknown"},
            exc_info=True,
        )
        message = "An internal error occurred. Please try again later." if settings.is_production else str(exc)
        return ErrorResponse(error=message, code="INTERNAL_ERROR").render(500)


def jsonable_errors(exc: RequestValidationError) -> list:
    """Pydantic error list with the non-serialisable ``ctx``/``input`` values stringified."""
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        if "input" in error:
            error["input"] = str(error["input"])
        errors.append(error)
    return errors
