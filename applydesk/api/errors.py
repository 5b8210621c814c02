"""API errors and the JSON envelope they render to."""

from typing import Any

from fastapi.responses import JSONResponse


class ApiError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str | None = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details


class BadRequestError(ApiError):
    status_code = 400
    code = "VALIDATION_ERROR"


class UnauthorizedError(ApiError):
    status_code = 401
    code = "UNAUTHORIZED"


class QuotaExceededError(ApiError):
    status_code = 402
    code = "QUOTA_EXCEEDED"


class NotFoundError(ApiError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(ApiError):
    status_code = 409
    code = "CONFLICT"


class UpstreamError(ApiError):
    status_code = 503
    code = "UPSTREAM_ERROR"


def error_response(status_code: int, message: str, code: str, details: Any = None) -> JSONResponse:
    content: dict[str, Any] = {"success": False, "error": message, "code": code}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)
