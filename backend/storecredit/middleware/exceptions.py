"""Custom exceptions and handlers for consistent error responses.

Every error leaves the API in the same envelope the store-manager
frontend already understands:

    {
        "success": false,
        "message": "Human-readable error message",
        "code": "ERROR_CODE",
        "errors": [...]        // field-level detail, validation failures only
    }
"""

import logging
import traceback
from typing import Union

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class StoreCreditException(Exception):
    """Base exception for application errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(self.message)


class ValidationFailedError(StoreCreditException):
    """Request input is well-formed but violates a business rule."""

    def __init__(
        self,
        message: str,
        errors: list[dict] | None = None,
        error_code: str = "VALIDATION_ERROR",
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code=error_code,
        )
        self.errors = errors or []


class InvalidOperationError(StoreCreditException):
    """The operation would break a ledger invariant."""

    def __init__(self, message: str, error_code: str = "INVALID_OPERATION"):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code=error_code,
        )


class NegativeBalanceError(InvalidOperationError):
    def __init__(self, message: str = "Credit balance cannot be negative"):
        super().__init__(message=message, error_code="NEGATIVE_BALANCE")


class ResourceNotFoundError(StoreCreditException):
    """Exception for resources not found."""

    def __init__(self, resource: str, identifier: str | None = None):
        message = f"{resource} not found"
        if identifier:
            message = f"{message}: {identifier}"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="RESOURCE_NOT_FOUND",
        )


class CustomerNotFoundError(ResourceNotFoundError):
    def __init__(self, customer_id: str | None = None):
        super().__init__("Customer", customer_id)


class StoreContextError(StoreCreditException):
    """Exception for missing or inactive store context."""

    def __init__(self, message: str = "Store context required"):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="STORE_CONTEXT_REQUIRED",
        )


def create_error_response(
    status_code: int,
    message: str,
    error_code: str = "ERROR",
    errors: Union[dict, list, None] = None,
    headers: dict | None = None,
) -> JSONResponse:
    """Build the error envelope; `errors` is only included when non-empty."""
    content = {"success": False, "message": message, "code": error_code}
    if errors:
        content["errors"] = errors
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def _request_context(request: Request, **extra) -> dict:
    return {"path": request.url.path, "method": request.method, **extra}


# Named check constraints from the models, mapped to client-facing errors
_CONSTRAINT_ERRORS = {
    "ck_customers_credit_balance_non_negative": (
        "Credit balance cannot be negative", "NEGATIVE_BALANCE",
    ),
    "ck_customers_credit_limit_non_negative": (
        "Credit limit cannot be negative", "NEGATIVE_LIMIT",
    ),
    "ck_credit_tx_new_non_negative": (
        "Credit balance cannot be negative", "NEGATIVE_BALANCE",
    ),
}


def _describe_integrity_error(error_msg: str) -> tuple[str, str]:
    lowered = error_msg.lower()
    for constraint, described in _CONSTRAINT_ERRORS.items():
        if constraint in lowered:
            return described
    if "unique" in lowered:
        return "A record with this value already exists", "DUPLICATE_RECORD"
    if "foreign key" in lowered:
        return "Referenced record does not exist", "FOREIGN_KEY_VIOLATION"
    if "check" in lowered:
        return "Value violates a ledger constraint", "CHECK_VIOLATION"
    return "Database constraint violation", "INTEGRITY_ERROR"


# ── Handlers ─────────────────────────────────────────────────

async def storecredit_exception_handler(request: Request, exc: StoreCreditException) -> JSONResponse:
    logger.warning(
        "%s on %s: %s", exc.error_code, request.url.path, exc.message,
        extra=_request_context(request, error_code=exc.error_code),
    )
    return create_error_response(
        exc.status_code, exc.message, exc.error_code, errors=getattr(exc, "errors", None),
    )


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException],
) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("HTTP %s: %s", exc.status_code, exc.detail, extra=_request_context(request))
    return create_error_response(
        exc.status_code, str(exc.detail), f"HTTP_{exc.status_code}",
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: Union[RequestValidationError, ValidationError],
) -> JSONResponse:
    """400 with one `{field, message, type}` entry per failed field."""
    errors = [
        {
            # Field path without the body/query/path location prefix
            "field": ".".join(
                str(part) for part in error["loc"] if part not in ("body", "query", "path")
            ),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning(
        "Validation failed on %s: %s", request.url.path,
        ", ".join(e["field"] for e in errors), extra=_request_context(request),
    )
    return create_error_response(
        status.HTTP_400_BAD_REQUEST, "Validation failed", "VALIDATION_ERROR", errors=errors,
    )


async def integrity_exception_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    error_msg = str(exc.orig) if getattr(exc, "orig", None) is not None else str(exc)
    logger.error(
        "Integrity error on %s: %s", request.url.path, error_msg,
        extra=_request_context(request),
    )
    message, error_code = _describe_integrity_error(error_msg)
    return create_error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, message, error_code)


async def operational_exception_handler(request: Request, exc: OperationalError) -> JSONResponse:
    logger.error(
        "Database unavailable on %s: %s", request.url.path, exc,
        extra=_request_context(request),
    )
    return create_error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "Database temporarily unavailable. Please try again.",
        "DATABASE_UNAVAILABLE",
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception on %s: %s", request.url.path, exc,
        extra=_request_context(request, traceback=traceback.format_exc()),
        exc_info=True,
    )
    # Internal details stay in the log
    return create_error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred. Please try again later.",
        "INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app):
    """Register every handler above on the app."""
    for exc_class, handler in (
        (StoreCreditException, storecredit_exception_handler),
        (HTTPException, http_exception_handler),
        (StarletteHTTPException, http_exception_handler),
        (RequestValidationError, validation_exception_handler),
        (ValidationError, validation_exception_handler),
        (IntegrityError, integrity_exception_handler),
        (OperationalError, operational_exception_handler),
        (Exception, general_exception_handler),
    ):
        app.add_exception_handler(exc_class, handler)
