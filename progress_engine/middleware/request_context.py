"""Request context middleware.

Assigns every request an id (the client's X-Request-ID, or a fresh
UUID), keeps it in a ContextVar so any log line emitted while handling
the request carries it, and logs one summary line on completion.

Progress writes for the same learner can interleave across requests and
across instances, so the summary line also lifts enrollment_id and
learner_id out of the matched path.  With LOG_JSON=true they become
top-level keys and one learner's history can be pulled out of the
aggregated logs with a single filter.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

_PATH_CONTEXT = ("enrollment_id", "learner_id")


class _RequestContextFilter(logging.Filter):
    """Attach the current request id to every LogRecord."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("-")  # type: ignore[attr-defined]
        return True


# Installed on the root logger once, so every logger inherits it.
root_logger = logging.getLogger()
if not any(isinstance(f, _RequestContextFilter) for f in root_logger.filters):
    root_logger.addFilter(_RequestContextFilter())


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assign a request id, time the request, and log a summary line."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request_id_var.set(req_id)

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        extra: dict[str, object] = {
            "request_id": req_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        }
        for key in _PATH_CONTEXT:
            value = request.path_params.get(key)
            if value is not None:
                extra[key] = value
        idem = request.headers.get("idempotency-key")
        if idem:
            extra["idempotency_key"] = idem

        logger.info(
            "%s %s -> %d (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            extra=extra,
        )

        response.headers["X-Request-ID"] = req_id
        return response
