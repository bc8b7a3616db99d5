"""
vault_keyring.api.errors

Maps the keyring exception hierarchy to HTTP responses.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_412_PRECONDITION_FAILED,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_501_NOT_IMPLEMENTED,
    HTTP_502_BAD_GATEWAY,
)

from vault_keyring import errors
from vault_keyring.observability.logging import get_logger

log = get_logger(__name__)

# First match wins; subclasses precede their bases.
_STATUS_MAP: tuple[tuple[type[errors.KeyringError], int], ...] = (
    (errors.AccountNotFound, HTTP_404_NOT_FOUND),
    (errors.RequestNotFound, HTTP_404_NOT_FOUND),
    (errors.DuplicateAddress, HTTP_409_CONFLICT),
    (errors.RequestAlreadyFinal, HTTP_409_CONFLICT),
    (errors.MissingConfiguration, HTTP_412_PRECONDITION_FAILED),
    (errors.ValidationError, HTTP_400_BAD_REQUEST),
    (errors.UnsupportedMethod, HTTP_400_BAD_REQUEST),
    (errors.UnsupportedTransactionType, HTTP_400_BAD_REQUEST),
    (errors.UnknownChain, HTTP_400_BAD_REQUEST),
    (errors.UnsupportedOperation, HTTP_501_NOT_IMPLEMENTED),
    (errors.ProxyNotConfigured, HTTP_412_PRECONDITION_FAILED),
    (errors.TransportError, HTTP_502_BAD_GATEWAY),
    (errors.ProtocolError, HTTP_502_BAD_GATEWAY),
    (errors.CryptoError, HTTP_500_INTERNAL_SERVER_ERROR),
)


def status_for(exc: errors.KeyringError) -> int:
    for cls, status in _STATUS_MAP:
        if isinstance(exc, cls):
            return status
    return HTTP_500_INTERNAL_SERVER_ERROR


async def _keyring_error_handler(_: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, errors.KeyringError)
    status = status_for(exc)
    log.warning("keyring_error", error_type=type(exc).__name__, error=str(exc), status=status)
    return JSONResponse(
        status_code=status,
        content={"error": type(exc).__name__, "detail": str(exc)},
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(errors.KeyringError, _keyring_error_handler)
