"""Application errors carrying a stable error code.

Every error response leaves the API as
``{success: false, error_code, error, details, request_id}``; see
``app.core.errors`` for the handlers that render it.
"""

from typing import Any

from fastapi import HTTPException, status

ErrorDetails = dict[str, Any] | list[Any] | None


class AppError(HTTPException):
    """HTTP error with a machine-readable `code` alongside the message."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: ErrorDetails = None,
    ):
        super().__init__(
            status_code=status_code,
            detail={"code": code, "message": message, "details": details},
        )
        self.code = code
        self.message = message
        self.details = details


def raise_app_error(
    status_code: int,
    code: str,
    message: str,
    details: ErrorDetails = None,
) -> None:
    raise AppError(status_code=status_code, code=code, message=message, details=details)


def raise_bad_request(code: str, message: str, details: ErrorDetails = None) -> None:
    raise_app_error(status.HTTP_400_BAD_REQUEST, code=code, message=message, details=details)


def raise_unauthorized(message: str) -> None:
    raise_app_error(status.HTTP_401_UNAUTHORIZED, code="UNAUTHORIZED", message=message)


def raise_forbidden(message: str = "Forbidden", details: ErrorDetails = None) -> None:
    raise_app_error(status.HTTP_403_FORBIDDEN, code="FORBIDDEN", message=message, details=details)


def raise_not_found(message: str = "Not found") -> None:
    raise_app_error(status.HTTP_404_NOT_FOUND, code="NOT_FOUND", message=message)


def raise_conflict(message: str, details: ErrorDetails = None) -> None:
    raise_app_error(status.HTTP_409_CONFLICT, code="CONFLICT", message=message, details=details)
