# File: backend/errors.py

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class RegistryError(Exception):
    """Base class for every error the registry core raises."""

    status_code = 400
    code = "registry_error"

    def __init__(self, message: str, detail=None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class NotFound(RegistryError):
    status_code = 404
    code = "not_found"


class InvalidTransition(RegistryError):
    status_code = 409
    code = "invalid_transition"


class InvalidDateOrder(RegistryError):
    status_code = 422
    code = "invalid_date_order"


class AlreadyIssued(RegistryError):
    status_code = 409
    code = "already_issued"


class AlreadyClosed(RegistryError):
    status_code = 409
    code = "already_closed"


class AlreadyDecided(RegistryError):
    status_code = 409
    code = "already_decided"


class ValidationError(RegistryError):
    status_code = 422
    code = "validation_error"


class Conflict(RegistryError):
    status_code = 409
    code = "conflict"


class NoApprovalHandler(RegistryError):
    status_code = 500
    code = "no_approval_handler"


class AuthError(RegistryError):
    status_code = 401
    code = "auth_error"


class StoreError(RegistryError):
    status_code = 502
    code = "store_error"


def _error_payload(exc: RegistryError):
    return {"code": exc.code, "message": exc.message, "detail": exc.detail}


async def registry_error_handler(request: Request, exc: RegistryError):
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", exc.code, request.url.path, exc.message)
    else:
        logger.warning("%s on %s: %s", exc.code, request.url.path, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthError) else None
    return JSONResponse(status_code=exc.status_code, content=_error_payload(exc), headers=headers)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RegistryError, registry_error_handler)
