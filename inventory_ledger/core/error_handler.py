"""
Error responses

- LedgerError -> mapped status code with {"error", "message", "details"}.
  These messages are written for operators and pass through, apart from
  anything that looks like driver or SQL text.
- Anything else -> generic 500 with an error id; full traceback in the log.
"""
import logging
import uuid
from typing import Union

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from inventory_ledger.core.config import settings
from inventory_ledger.core.exceptions import (
    ConcurrencyConflict,
    IdempotencyKeyMismatch,
    ImmutableMovementError,
    InsufficientStock,
    LedgerError,
    LedgerValidationError,
    ProductNotFound,
)

logger = logging.getLogger(__name__)

# Most specific first
LEDGER_STATUS_CODES = (
    (ProductNotFound, 404),
    (LedgerValidationError, 400),
    (InsufficientStock, 409),
    (ConcurrencyConflict, 409),
    (IdempotencyKeyMismatch, 409),
    (ImmutableMovementError, 500),
)

# Substrings that mark driver / ORM internals
SENSITIVE_PATTERNS = (
    "sqlalchemy",
    "asyncpg",
    "aiosqlite",
    "postgresql",
    "sqlite",
    "password",
    "traceback",
    "file \"",
)

SEVERITY_LOG_LEVELS = {
    "P0": logger.critical,
    "P1": logger.error,
    "P2": logger.warning,
    "P3": logger.info,
}

GENERIC_MESSAGE = "An internal error occurred. Please try again later."
MAX_MESSAGE_LENGTH = 200


def status_code_for(error: LedgerError) -> int:
    for cls, code in LEDGER_STATUS_CODES:
        if isinstance(error, cls):
            return code
    return 400


def is_sensitive_error(message: str) -> bool:
    lowered = message.lower()
    return any(pattern in lowered for pattern in SENSITIVE_PATTERNS)


def sanitize_error_message(error: Union[str, Exception]) -> str:
    """Client-safe version of an error message (unchanged when DEBUG is on)."""
    message = str(error)
    if settings.DEBUG:
        return message
    if is_sensitive_error(message):
        return GENERIC_MESSAGE
    if len(message) > MAX_MESSAGE_LENGTH:
        return message[:MAX_MESSAGE_LENGTH] + "..."
    return message


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    status_code = status_code_for(exc)
    log = SEVERITY_LOG_LEVELS.get(exc.severity, logger.warning)
    log(f"{request.method} {request.url.path} -> {status_code} [{exc.code}] {exc.message}")

    headers = {"Retry-After": "1"} if exc.retryable else None
    return JSONResponse(
        status_code=status_code,
        content={
            "error": exc.code,
            "message": sanitize_error_message(exc.message),
            "details": exc.details,
        },
        headers=headers,
    )


class ErrorSanitizationMiddleware(BaseHTTPMiddleware):
    """Turn unhandled exceptions into a generic 500 that carries an error id."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except HTTPException:
            raise
        except Exception as e:
            error_id = uuid.uuid4().hex[:12]
            logger.exception(
                f"Unhandled {type(e).__name__} [{error_id}] on {request.method} {request.url.path}"
            )
            content = {
                "error": "internal_error",
                "message": GENERIC_MESSAGE,
                "error_id": error_id,
            }
            if settings.DEBUG:
                content["message"] = str(e)
                content["type"] = type(e).__name__
            return JSONResponse(status_code=500, content=content)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LedgerError, ledger_error_handler)
    app.add_middleware(ErrorSanitizationMiddleware)
