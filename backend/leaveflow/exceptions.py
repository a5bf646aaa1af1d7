from __future__ import annotations

import logging
import uuid
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    detail: str | None = None
    status_code: int
    context: dict[str, Any] | None = None


class AppError(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.context = context
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# Leave domain errors
# ---------------------------------------------------------------------------


class InvalidRangeError(AppError):
    """The requested date range contains no business days."""

    def __init__(self, message: str = "Leave request must include at least one business day") -> None:
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST)


class InsufficientBalanceError(AppError):
    """The employee does not have enough leave days left."""

    def __init__(self, employee_id: uuid.UUID, requested: int, available: int) -> None:
        self.employee_id = employee_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient leave balance: requested {requested} business days, {available} available",
            status_code=status.HTTP_400_BAD_REQUEST,
            context={"employee_id": str(employee_id), "requested": requested, "available": available},
        )


class NotFoundError(AppError):
    """Unknown leave request or employee."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND)


class AlreadyTerminalError(AppError):
    """Action attempted on a request that is already approved or rejected."""

    def __init__(self, request_id: uuid.UUID, current_status: str | None = None) -> None:
        self.request_id = request_id
        super().__init__(
            "Leave request has already been resolved",
            status_code=status.HTTP_409_CONFLICT,
            context={"request_id": str(request_id), "status": current_status},
        )


class NotAuthorizedError(AppError):
    """Actor is not allowed to perform the operation."""

    def __init__(self, message: str = "You are not the current approver for this request.") -> None:
        super().__init__(message, status_code=status.HTTP_403_FORBIDDEN)


class ChainConfigurationError(AppError):
    """The reporting structure above an employee is circular or too deep."""

    def __init__(self, message: str, employee_id: uuid.UUID) -> None:
        self.employee_id = employee_id
        super().__init__(
            message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            context={"employee_id": str(employee_id)},
        )


class PersistenceFailure(AppError):
    """A ledger or request write failed and the unit of work was rolled back."""

    def __init__(self, message: str = "Could not persist leave changes") -> None:
        super().__init__(message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            detail=exc.message,
            status_code=exc.status_code,
            context=exc.context,
        ).model_dump(),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="ValidationError",
            detail=str(exc.errors()),
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        ).model_dump(),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
