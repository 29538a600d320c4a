"""
Event Ledger - Error Handling

Application exceptions and the FastAPI handlers that render them.

Every error response has the same body:

    {"detail": {"code": ..., "message": ..., "timestamp": ..., "details": {...}}}

Event processing failures are not exceptions: the processor reports them in
an EventProcessResult. The exceptions here cover refused requests (unknown
event, duplicate source document, lifecycle rule) and infrastructure errors.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union
from uuid import UUID
import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DataError, IntegrityError, OperationalError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("event_ledger.errors")


class ErrorCode(str, Enum):
    """Machine-readable error codes returned in error bodies"""

    # Request validation (422)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"

    # Lookups and conflicts (404/409)
    NOT_FOUND = "NOT_FOUND"
    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    SETTING_NOT_FOUND = "SETTING_NOT_FOUND"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"
    DUPLICATE_EVENT = "DUPLICATE_EVENT"

    # Event lifecycle rules (422)
    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    ALREADY_PROCESSED = "ALREADY_PROCESSED"
    EVENT_CANCELLED = "EVENT_CANCELLED"

    # Infrastructure (500)
    DATABASE_ERROR = "DATABASE_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    DATA_INTEGRITY_ERROR = "DATA_INTEGRITY_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# ============================================================================
# Exceptions
# ============================================================================

class AppException(Exception):
    """
    Base for exceptions that map to an HTTP error response.

    Subclasses set the default code and status; callers may override the
    code for a more specific one.
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        body = {
            "code": self.code.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.details:
            body["details"] = self.details
        return body


class ValidationException(AppException):
    code = ErrorCode.VALIDATION_ERROR
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class InvalidDateRangeException(ValidationException):
    """start_date after end_date in a list filter"""

    def __init__(self, start_date: str, end_date: str):
        super().__init__(
            f"Invalid date range: {start_date} is after {end_date}",
            code=ErrorCode.INVALID_DATE_RANGE,
            details={"start_date": start_date, "end_date": end_date},
        )


class NotFoundException(AppException):
    code = ErrorCode.NOT_FOUND
    status_code = status.HTTP_404_NOT_FOUND


class EventNotFoundException(NotFoundException):
    def __init__(self, event_id: Union[str, UUID]):
        super().__init__(
            f"Accounting event '{event_id}' not found",
            code=ErrorCode.EVENT_NOT_FOUND,
            details={"event_id": str(event_id)},
        )


class SettingNotFoundException(NotFoundException):
    def __init__(self, company_id: Union[str, UUID], event_type: str):
        super().__init__(
            f"No journal event setting for {event_type} in company '{company_id}'",
            code=ErrorCode.SETTING_NOT_FOUND,
            details={"company_id": str(company_id), "event_type": event_type},
        )


class ConflictException(AppException):
    code = ErrorCode.RESOURCE_CONFLICT
    status_code = status.HTTP_409_CONFLICT


class DuplicateEventException(ConflictException):
    """A non-cancelled event already exists for the source document"""

    def __init__(self, event_type: str, source_document_type: str, source_document_id: str):
        super().__init__(
            f"An active {event_type} event already exists for "
            f"{source_document_type} '{source_document_id}'",
            code=ErrorCode.DUPLICATE_EVENT,
            details={
                "event_type": event_type,
                "source_document_type": source_document_type,
                "source_document_id": source_document_id,
            },
        )


class BusinessRuleException(AppException):
    """A lifecycle operation refused by an event rule"""

    code = ErrorCode.BUSINESS_RULE_VIOLATION
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(
        self,
        message: str,
        rule: Optional[str] = None,
        code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = dict(details or {})
        if rule:
            details["violated_rule"] = rule
        super().__init__(message, code=code, details=details)


# ============================================================================
# Handlers
# ============================================================================

def create_error_response(
    code: ErrorCode,
    message: str,
    status_code: int,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    body: Dict[str, Any] = {
        "code": code.value,
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content=jsonable_encoder({"detail": body}))


_HTTP_STATUS_CODES = {
    status.HTTP_400_BAD_REQUEST: ErrorCode.INVALID_INPUT,
    status.HTTP_404_NOT_FOUND: ErrorCode.NOT_FOUND,
    status.HTTP_409_CONFLICT: ErrorCode.RESOURCE_CONFLICT,
    status.HTTP_422_UNPROCESSABLE_ENTITY: ErrorCode.VALIDATION_ERROR,
}


def _classify_database_error(exc: SQLAlchemyError) -> Tuple[ErrorCode, int, str]:
    if isinstance(exc, IntegrityError):
        reason = str(exc.orig).lower() if exc.orig else ""
        if "unique" in reason or "duplicate" in reason:
            return ErrorCode.DUPLICATE_ENTRY, status.HTTP_409_CONFLICT, "A record with this value already exists"
        return ErrorCode.DATA_INTEGRITY_ERROR, status.HTTP_500_INTERNAL_SERVER_ERROR, "Data integrity constraint violated"
    if isinstance(exc, OperationalError):
        return ErrorCode.CONNECTION_ERROR, status.HTTP_500_INTERNAL_SERVER_ERROR, "Database operation failed"
    if isinstance(exc, DataError):
        return ErrorCode.DATABASE_ERROR, status.HTTP_422_UNPROCESSABLE_ENTITY, "Invalid data format for database"
    return ErrorCode.DATABASE_ERROR, status.HTTP_500_INTERNAL_SERVER_ERROR, "A database error occurred"


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    logger.warning(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code.value}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder({"detail": exc.to_dict()}),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {message}")
    return create_error_response(
        code=_HTTP_STATUS_CODES.get(exc.status_code, ErrorCode.INTERNAL_ERROR),
        message=message,
        status_code=exc.status_code,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request body/query validation, including event payloads checked against their event type."""
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning(f"{request.method} {request.url.path} -> 422: {len(errors)} validation error(s)")
    return create_error_response(
        code=ErrorCode.VALIDATION_ERROR,
        message="Request validation failed",
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        details={"errors": errors},
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    code, status_code, message = _classify_database_error(exc)
    logger.error(f"{request.method} {request.url.path} -> {type(exc).__name__}: {exc}", exc_info=True)
    return create_error_response(code=code, message=message, status_code=status_code)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.critical(f"{request.method} {request.url.path} -> unhandled {type(exc).__name__}: {exc}", exc_info=True)
    return create_error_response(
        code=ErrorCode.INTERNAL_ERROR,
        message="An unexpected error occurred. Please try again later.",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application"""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


__all__ = [
    "AppException",
    "ErrorCode",
    "ValidationException",
    "InvalidDateRangeException",
    "NotFoundException",
    "EventNotFoundException",
    "SettingNotFoundException",
    "ConflictException",
    "DuplicateEventException",
    "BusinessRuleException",
    "setup_exception_handlers",
    "create_error_response",
]
