# slotbook/core/errors.py
"""
Error taxonomy shared by the service layer and the HTTP surface.

Services raise DomainError subclasses; the handlers registered in
register_exception_handlers() render them as
{"error": {"code", "message", "request_id"}} with the matching status.
"""
import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class DomainError(Exception):
    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str = "Internal error"):
        super().__init__(message)
        self.message = message


class ValidationFailedError(DomainError):
    code = "VALIDATION_ERROR"
    status_code = 400


class UnauthorizedError(DomainError):
    code = "UNAUTHORIZED"
    status_code = 401


class ForbiddenError(DomainError):
    code = "FORBIDDEN"
    status_code = 403


class NotFoundError(DomainError):
    code = "NOT_FOUND"
    status_code = 404


class SlotTakenError(DomainError):
    code = "SLOT_TAKEN"
    status_code = 409

    def __init__(self, message: str = "Selected slot is no longer available"):
        super().__init__(message)


class StorageError(DomainError):
    code = "INTERNAL_ERROR"
    status_code = 500


def _request_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", None) or str(uuid.uuid4())


def error_response(request: Request, code: str, message: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message, "request_id": _request_id(request)}},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the domain error handlers to the app"""

    @app.exception_handler(DomainError)
    async def handle_domain_error(request: Request, exc: DomainError):
        if exc.status_code >= 500:
            logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
        return error_response(request, exc.code, exc.message, exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        details = "; ".join(
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}"
            for err in exc.errors()
        )
        return error_response(request, "VALIDATION_ERROR", details or "Invalid request", 400)
