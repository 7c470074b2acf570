"""Map engine errors onto HTTP responses.

  UnknownEnrollmentError / UnknownQuizError  -> 404
  IdempotencyConflict                        -> 409
  other ValidationError                      -> 422
  ConcurrencyConflict / LockTimeout          -> 503 + Retry-After
  DependencyUnavailable                      -> 503 + Retry-After
"""

from __future__ import annotations

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

from progress_engine.core.errors import (
    ConcurrencyConflict,
    DependencyUnavailable,
    EngineError,
    IdempotencyConflict,
    UnknownEnrollmentError,
    UnknownQuizError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_RETRY_AFTER_SECONDS = "1"


async def engine_error_handler(request: Request, exc: Exception) -> JSONResponse:
    headers: dict[str, str] = {}
    if isinstance(exc, (UnknownEnrollmentError, UnknownQuizError)):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, IdempotencyConflict):
        code = status.HTTP_409_CONFLICT
    elif isinstance(exc, ValidationError):
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(exc, (ConcurrencyConflict, DependencyUnavailable)):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
        headers["Retry-After"] = _RETRY_AFTER_SECONDS
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR

    if code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=code, content={"detail": str(exc)}, headers=headers)


def install_error_handlers(app) -> None:
    app.add_exception_handler(EngineError, engine_error_handler)
