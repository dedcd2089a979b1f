"""Exception handlers that translate access-core errors to HTTP responses."""

from __future__ import annotations

from fastapi import FastAPI, status
from fastapi.responses import JSONResponse

from ..errors import (
    AccessCoreError,
    AlreadyInitializedError,
    DuplicateIdentityError,
    EmailInUseError,
    InvalidIdentityError,
    OwnerProtectedError,
    PermissionDeniedError,
    StoreUnavailableError,
    WeakCredentialError,
)

_UNPROCESSABLE = 422

STATUS_BY_ERROR: dict[type[AccessCoreError], int] = {
    AlreadyInitializedError: status.HTTP_409_CONFLICT,
    EmailInUseError: status.HTTP_409_CONFLICT,
    DuplicateIdentityError: status.HTTP_409_CONFLICT,
    OwnerProtectedError: status.HTTP_409_CONFLICT,
    WeakCredentialError: _UNPROCESSABLE,
    InvalidIdentityError: _UNPROCESSABLE,
    PermissionDeniedError: status.HTTP_403_FORBIDDEN,
    StoreUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_for(exc: AccessCoreError) -> int:
    for error_type in type(exc).__mro__:
        code = STATUS_BY_ERROR.get(error_type)  # type: ignore[arg-type]
        if code is not None:
            return code
    return status.HTTP_400_BAD_REQUEST


def _handle_permission_error(_request, exc: PermissionDeniedError) -> JSONResponse:
    """Translate permission denials into HTTP 403 responses."""

    detail: dict[str, object] = {
        "error": "forbidden",
        "message": exc.message,
        "reason": exc.reason,
    }
    detail.update(exc.required)
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={"detail": detail},
    )


def _handle_access_error(_request, exc: AccessCoreError) -> JSONResponse:
    headers = {"Retry-After": "1"} if exc.retryable else None
    return JSONResponse(
        status_code=status_for(exc),
        content={
            "detail": {
                "error": exc.code,
                "message": exc.message,
                "retryable": exc.retryable,
            }
        },
        headers=headers,
    )


def register_access_exception_handlers(app: FastAPI) -> None:
    """Attach access-core error handlers to the FastAPI app."""

    app.add_exception_handler(PermissionDeniedError, _handle_permission_error)
    app.add_exception_handler(AccessCoreError, _handle_access_error)


__all__ = ["STATUS_BY_ERROR", "register_access_exception_handlers", "status_for"]
