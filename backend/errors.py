"""Domain errors and their HTTP mapping.

Handlers are registered on the app in ``backend.main``. Every error body
carries FastAPI's ``detail`` key plus a machine-readable ``error`` code.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from atelier.lifecycle import LimitExceeded

logger = logging.getLogger(__name__)


class DesignError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "InternalError"
    default_detail = "Internal server error"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class Unauthorized(DesignError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "Unauthorized"
    default_detail = "Unauthorized"


class ValidationFailed(DesignError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "ValidationFailed"
    default_detail = "Validation failed"


class NotFound(DesignError):
    """Resource absent or owned by someone else. The two cases are deliberately indistinguishable."""
    status_code = status.HTTP_404_NOT_FOUND
    code = "NotFound"
    default_detail = "Session not found or access denied"


class UpstreamFailure(DesignError):
    """A generation backend or object storage call failed."""
    code = "UpstreamFailure"
    default_detail = "Upstream service failed"


def _error_response(status_code: int, code: str, detail, **extra) -> JSONResponse:
    body = {"detail": detail, "error": code}
    body.update(extra)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


async def design_error_handler(request: Request, exc: DesignError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.detail)
        return _error_response(exc.status_code, exc.code, DesignError.default_detail)
    return _error_response(exc.status_code, exc.code, exc.detail)


async def limit_exceeded_handler(request: Request, exc: LimitExceeded) -> JSONResponse:
    return _error_response(status.HTTP_400_BAD_REQUEST, "LimitExceeded", str(exc), limit=exc.limit)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    return _error_response(status.HTTP_400_BAD_REQUEST, "ValidationFailed", "Validation failed", details=details)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "InternalError", "Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DesignError, design_error_handler)
    app.add_exception_handler(LimitExceeded, limit_exceeded_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
