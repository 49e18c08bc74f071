"""
Error handling for the HTTP surface.

Unhandled exceptions are logged with their full stack trace and answered
with a JSON body ``{status_code, message, error_type}``. Stack traces never
leave the server.
"""

import hashlib
import logging
import time
import traceback
from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..errors import SunScoreError

logger = logging.getLogger(__name__)


class ErrorDetail:
    """Standard error payload."""

    def __init__(
        self,
        status_code: int,
        message: str,
        error_type: str,
        details: Optional[Any] = None
    ):
        self.status_code = status_code
        self.message = message
        self.error_type = error_type
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        error_dict = {
            "status_code": self.status_code,
            "message": self.message,
            "error_type": self.error_type
        }
        if self.details:
            error_dict["details"] = self.details
        return error_dict


def _error_id(request: Request) -> str:
    return hashlib.md5(f"{time.time()}-{request.url.path}".encode()).hexdigest()[:8]


def format_stack_trace(stack_trace: str) -> str:
    """Indent a stack trace for the log."""
    return "\n".join(f"  │ {line}" for line in stack_trace.split('\n') if line.strip())


def _log_exception(prefix: str, request: Request, exc: BaseException) -> None:
    stack_trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    error_msg = f"❌ {prefix}#{_error_id(request)}: {request.method} {request.url.path} - {exc.__class__.__name__}: {exc}"
    logger.error(f"{error_msg}\n╭─ Stack Trace ─────────────────────────╮\n{format_stack_trace(stack_trace)}\n╰───────────────────────────────────────╯")


async def error_handler_middleware(request: Request, call_next):
    """Turn exceptions escaping the route handlers into JSON error responses."""
    try:
        return await call_next(request)
    except Exception as exc:
        _log_exception("ERRO", request, exc)

        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        if isinstance(exc, StarletteHTTPException):
            status_code = exc.status_code
            error_type = "http_exception"
        elif isinstance(exc, RequestValidationError):
            status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
            error_type = "validation_error"
        elif isinstance(exc, SunScoreError):
            error_type = exc.code
        else:
            error_type = exc.__class__.__name__

        return JSONResponse(
            status_code=status_code,
            content=ErrorDetail(status_code, str(exc), error_type).to_dict()
        )


def setup_error_handlers(app):
    """Register exception handlers on the FastAPI app."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request, exc):
        if exc.status_code >= 500:
            _log_exception("HTTP", request, exc)
        else:
            logger.warning(f"⚠️ HTTP#{_error_id(request)}: {exc.status_code} - {exc.detail}")

        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorDetail(exc.status_code, str(exc.detail), "http_exception").to_dict()
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request, exc):
        validation_errors = exc.errors()
        logger.warning(f"⚠️ VALID#{_error_id(request)}: {request.method} {request.url.path} - {validation_errors}")

        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=ErrorDetail(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                message="Invalid request parameters",
                error_type="validation_error",
                details=[{"loc": list(e.get("loc", [])), "msg": e.get("msg")} for e in validation_errors]
            ).to_dict()
        )

    @app.exception_handler(SunScoreError)
    async def sunscore_exception_handler(request, exc):
        _log_exception("SUN", request, exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": exc.code, "message": exc.message}
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request, exc):
        _log_exception("EXC", request, exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorDetail(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                message=str(exc),
                error_type=exc.__class__.__name__,
            ).to_dict()
        )
