from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class APIError(Exception):
    def __init__(
        self,
        *,
        status_code: int,
        code: str,
        message: str,
        details: object | None = None,
    ) -> None:
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Input violates a field constraint.

    ``details`` is a list of ``{"field": ..., "message": ...}`` entries, one per
    failed field.
    """

    def __init__(self, message: str = "Validation failed", *, errors: list[dict[str, str]] | None = None) -> None:
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code="validation_error",
            message=message,
            details=errors or [],
        )

    @classmethod
    def for_field(cls, field: str, message: str) -> ValidationError:
        return cls(message, errors=[{"field": field, "message": message}])


class NotFoundError(APIError):
    def __init__(self, message: str = "Resource not found", *, code: str = "not_found") -> None:
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, code=code, message=message)


class ForbiddenError(APIError):
    def __init__(self, message: str = "Forbidden", *, code: str = "forbidden") -> None:
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, code=code, message=message)


class ConflictError(APIError):
    def __init__(self, message: str = "Conflict", *, code: str = "conflict") -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, code=code, message=message)


class SelfConversationError(ConflictError):
    def __init__(self) -> None:
        super().__init__("Cannot start a conversation with yourself", code="self_conversation")


class InternalError(APIError):
    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, code="internal_error", message=message)


def success_response(data: object, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"data": data})


def error_response(
    *,
    status_code: int,
    code: str,
    message: str,
    details: object | None = None,
) -> JSONResponse:
    error_payload: dict[str, object] = {"code": code, "message": message}
    if details is not None:
        error_payload["details"] = details
    payload: dict[str, object] = {"error": error_payload}
    return JSONResponse(status_code=status_code, content=payload)


def _request_validation_details(exc: RequestValidationError) -> list[dict[str, str]]:
    details: list[dict[str, str]] = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        details.append({"field": ".".join(location) or "request", "message": str(error.get("msg", "invalid"))})
    return details


def add_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(APIError)
    async def handle_api_error(_: Request, exc: APIError) -> JSONResponse:
        return error_response(
            status_code=exc.status_code,
            code=exc.code,
            message=exc.message,
            details=exc.details,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
        return error_response(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code="validation_error",
            message="Request validation failed",
            details=_request_validation_details(exc),
        )

    @app.exception_handler(HTTPException)
    async def handle_http_error(_: Request, exc: HTTPException) -> JSONResponse:
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return error_response(
            status_code=exc.status_code,
            code="http_error",
            message=message,
            details=None if isinstance(exc.detail, str) else exc.detail,
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error method=%s path=%s", request.method, request.url.path, exc_info=exc)
        return error_response(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            code="internal_error",
            message="Internal server error",
        )
