"""
vault_keyring.observability.middleware

Request-scoped logging for the host-facing API.

Every host call gets a correlation id (taken from `x-correlation-id` or freshly
generated), echoed on the response. The id, route and calling origin are bound
into structlog contextvars so keyring and vault-client logs emitted while
serving the call carry them, and one `host_call` line records the outcome.
"""

from __future__ import annotations

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from vault_keyring.observability.logging import get_logger

CORRELATION_HEADER = "x-correlation-id"

# Hit by orchestrators every few seconds; logged at debug only.
_QUIET_PATHS = frozenset({"/healthz", "/readyz"})

log = get_logger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    `correlation_id` identifies the host call; `request_id` stays reserved for signing requests.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id,
            path=request.url.path,
            http_method=request.method,
            origin=request.headers.get("origin"),
        )
        started = time.perf_counter()
        try:
            response: Response = await call_next(request)
        except Exception:
            log.exception("host_call_failed", duration_ms=_elapsed_ms(started))
            raise
        else:
            emit = log.debug if request.url.path in _QUIET_PATHS else log.info
            emit("host_call", status_code=response.status_code, duration_ms=_elapsed_ms(started))
        finally:
            structlog.contextvars.clear_contextvars()

        response.headers[CORRELATION_HEADER] = correlation_id
        return response


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
