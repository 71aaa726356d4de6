"""
delivery_auth.api.errors

Exception-to-HTTP mapping for client-boundary errors.

Responsibilities:
- Turn phone-number and identity-provider errors into 4xx responses carrying a
  user-facing message.
- Turn document store failures into 502.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_429_TOO_MANY_REQUESTS,
    HTTP_502_BAD_GATEWAY,
)

from delivery_auth.auth.phone import PhoneNumberError
from delivery_auth.clients.errors import DocumentStoreError, IdentityProviderError
from delivery_auth.observability.logging import get_logger

log = get_logger(__name__)

_UNAUTHORIZED_CODES = {"invalid-verification-code", "code-expired", "session-expired", "invalid-id-token"}


def _body(message: str, code: str | None) -> dict[str, str | None]:
    return {"detail": message, "code": code}


async def _phone_number_error(request: Request, exc: PhoneNumberError) -> JSONResponse:
    return JSONResponse(status_code=HTTP_400_BAD_REQUEST, content=_body(str(exc), "invalid-phone-number"))


async def _identity_provider_error(request: Request, exc: IdentityProviderError) -> JSONResponse:
    if exc.code in _UNAUTHORIZED_CODES:
        status = HTTP_401_UNAUTHORIZED
    elif exc.code in ("too-many-requests", "quota-exceeded"):
        status = HTTP_429_TOO_MANY_REQUESTS
    elif exc.code == "network-error":
        status = HTTP_502_BAD_GATEWAY
    else:
        status = HTTP_400_BAD_REQUEST
    log.info("identity_provider_error", code=exc.code, status=status)
    return JSONResponse(status_code=status, content=_body(exc.message, exc.code))


async def _document_store_error(request: Request, exc: DocumentStoreError) -> JSONResponse:
    log.warning("document_store_error", code=exc.code, upstream_status=exc.status)
    return JSONResponse(status_code=HTTP_502_BAD_GATEWAY, content=_body(exc.message, exc.code))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PhoneNumberError, _phone_number_error)
    app.add_exception_handler(IdentityProviderError, _identity_provider_error)
    app.add_exception_handler(DocumentStoreError, _document_store_error)
