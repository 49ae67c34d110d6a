"""Error kinds raised by the workflow engine and their HTTP mapping.

``ValidationFailure`` is local and blocks a submit before any network call.
``GatewayFailure`` wraps a remote create/update/delete/fetch failure; the
user may retry by resubmitting. ``NotAuthenticated`` is not recoverable
locally and forces a return to the login boundary.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("expense_desk.errors")


class ExpenseDeskError(Exception):
    """Base class for all engine errors."""


class ValidationFailure(ExpenseDeskError):
    def __init__(self, violations: Sequence[str]):
        self.violations: List[str] = list(violations)
        super().__init__(self.violations[0] if self.violations else "invalid form")


class GatewayFailure(ExpenseDeskError):
    def __init__(
        self,
        message: str,
        errors: Optional[Sequence[str]] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message
        self.errors: List[str] = list(errors or [])
        self.status_code = status_code
        super().__init__(message)

    @property
    def display_message(self) -> str:
        if self.errors:
            return ", ".join(self.errors)
        return self.message


class NotAuthenticated(ExpenseDeskError):
    def __init__(self, message: str = "authentication required"):
        super().__init__(message)


class CategoryNotFound(ExpenseDeskError):
    def __init__(self, category_id: str):
        self.category_id = category_id
        super().__init__(f"unknown expense category '{category_id}'")


class RecordNotFound(ExpenseDeskError):
    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"expense '{record_id}' is not in the current listing")


class IllegalTransition(ExpenseDeskError):
    def __init__(self, state: str, command: str, reason: str | None = None):
        self.state = state
        self.command = command
        detail = f"'{command}' is not allowed in state {state}"
        if reason:
            detail = f"{detail}: {reason}"
        super().__init__(detail)


# HTTP handlers -----------------------------------------------------

_HTTP_ERROR_CODES = {
    status.HTTP_400_BAD_REQUEST: "bad_request",
    status.HTTP_401_UNAUTHORIZED: "not_authenticated",
    status.HTTP_404_NOT_FOUND: "not_found",
}


def http_error_handler(request: Request, exc: StarletteHTTPException):  # type: ignore
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={
                "error": "not_found",
                "detail": f"No route for {request.method} {request.url.path}",
            },
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": _HTTP_ERROR_CODES.get(exc.status_code, "http_error"), "detail": exc.detail},
    )


def validation_error_handler(request: Request, exc: RequestValidationError):  # type: ignore
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "validation_error",
            "detail": jsonable_encoder(exc.errors()),
        },
    )


def form_validation_handler(request: Request, exc: ValidationFailure):  # type: ignore
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": "validation_error", "detail": exc.violations},
    )


def gateway_failure_handler(request: Request, exc: GatewayFailure):  # type: ignore
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"error": "gateway_error", "detail": exc.display_message},
    )


def not_authenticated_handler(request: Request, exc: NotAuthenticated):  # type: ignore
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"error": "not_authenticated", "detail": str(exc)},
    )


def lookup_error_handler(request: Request, exc: ExpenseDeskError):  # type: ignore
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"error": "not_found", "detail": str(exc)},
    )


def illegal_transition_handler(request: Request, exc: IllegalTransition):  # type: ignore
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"error": "illegal_transition", "detail": str(exc)},
    )


def server_error_handler(request: Request, exc: Exception):  # type: ignore
    logger.exception("unhandled exception")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_error",
            "detail": "An unexpected error occurred.",
        },
    )
