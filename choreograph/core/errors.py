from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from choreograph.logs import api_logger, debug_logger

# SQLSTATE reported by PostgreSQL for a unique index violation
UNIQUE_VIOLATION = "23505"

# Name of the unique (project_id, order) constraint on the columns table
COLUMN_ORDER_CONSTRAINT = "project_order_unique"

# Unique index SQLAlchemy creates for users.email
USER_EMAIL_INDEX = "ix_users_email"

# SQLite does not report constraint names, only the offending columns
_CONSTRAINT_MARKERS = {
    COLUMN_ORDER_CONSTRAINT: ("columns.project_id, columns.order",),
    USER_EMAIL_INDEX: ("users.email",),
}


class AppError(Exception):
    """Base class for errors that are rendered as ``{message, error, ...}``"""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "INTERNAL_ERROR"

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = {key: value for key, value in extra.items() if value is not None}

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "error": self.error, **self.extra}


class InvalidColumnIdsError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "INVALID_IDS"

    def __init__(self, invalid_ids: List[int]):
        super().__init__("Invalid column IDs provided", invalidIds=list(invalid_ids))


class ConflictError(AppError):
    """A write collided with a uniqueness rule; the client may resubmit"""

    status_code = status.HTTP_409_CONFLICT
    error = "CONFLICT"


class DuplicateNameError(ConflictError):
    error = "DUPLICATE_NAME"

    def __init__(self, name: str):
        super().__init__(
            f'A column with the name "{name}" already exists in this project. '
            "Please choose a different name.",
            conflictingName=name,
        )


class OrderConflictError(ConflictError):
    error = "ORDER_CONFLICT"

    def __init__(self, conflicting_order: int, suggested_order: int):
        super().__init__(
            f"Column with order {conflicting_order} already exists in this project. "
            "Please choose a different order or let the system assign one automatically.",
            conflictingOrder=conflicting_order,
            suggestedOrder=suggested_order,
        )


class DuplicateOrderError(ConflictError):
    error = "DUPLICATE_ORDER"

    def __init__(self, conflicting_order: Optional[int] = None, suggested_order: Optional[int] = None):
        if conflicting_order is None:
            message = "Two columns of this project would share the same order."
        else:
            message = f"A column with order {conflicting_order} already exists in this project."
        super().__init__(
            f"{message} Please choose a different order.",
            conflictingOrder=conflicting_order,
            suggestedOrder=suggested_order,
        )


class DuplicateKeyError(ConflictError):
    error = "DUPLICATE_KEY"

    def __init__(self):
        super().__init__("Record with these properties already exists. Please check for duplicates.")


class DuplicateEmailError(ConflictError):
    error = "DUPLICATE_EMAIL"

    def __init__(self):
        super().__init__("Email already in use")


def is_unique_violation(exc: IntegrityError) -> bool:
    """Check whether a rejected write was caused by a unique index"""
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code is not None:
        return code == UNIQUE_VIOLATION
    return "UNIQUE constraint failed" in str(orig)


def violated_constraint(exc: IntegrityError) -> Optional[str]:
    """Name of the unique constraint a rejected write tripped, when it can be told"""
    orig = exc.orig
    for source in (orig, getattr(orig, "__cause__", None)):
        name = getattr(source, "constraint_name", None)
        if name:
            return name

    message = str(orig)
    for name, markers in _CONSTRAINT_MARKERS.items():
        if name in message or any(marker in message for marker in markers):
            return name
    return None


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    debug_logger.debug(f"{exc.error} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": "Invalid input", "issues": jsonable_encoder(exc.errors())},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    api_logger.error(f"Unhandled error on {request.method} {request.url}: {exc!r}")
    debug_logger.log_exception(f"Unhandled error on {request.method} {request.url}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "message": "Internal server error",
            "error": "INTERNAL_ERROR",
            "suggestion": "Please try again later",
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
