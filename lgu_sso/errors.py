from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.message = message
        self.errors = errors


class ValidationFailed(ApiError):
    status_code = 422
    code = "VALIDATION_ERROR"

    @classmethod
    def for_field(cls, field: str, message: str) -> ValidationFailed:
        return cls(message, errors={field: [message]})


class NotFound(ApiError):
    status_code = 404
    code = "NOT_FOUND"


class Conflict(ApiError):
    status_code = 409
    code = "CONFLICT"


class Unauthenticated(ApiError):
    status_code = 401
    code = "UNAUTHENTICATED"


class Forbidden(ApiError):
    status_code = 403
    code = "FORBIDDEN"


class RateLimited(ApiError):
    status_code = 429
    code = "TOO_MANY_ATTEMPTS"


class InternalError(ApiError):
    status_code = 500
    code = "INTERNAL_ERROR"


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return str(request_id)
    return "unknown"


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    errors: dict[str, list[str]] | None = None,
) -> JSONResponse:
    payload: dict[str, object] = {
        "message": message,
        "code": code,
        "request_id": get_request_id(request),
    }
    if errors:
        payload["errors"] = errors
    return JSONResponse(status_code=status_code, content=payload)
