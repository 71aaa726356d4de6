"""
delivery_auth.clients.identity

HTTP client for the remote identity provider (phone/OTP sign-in).

Responsibilities:
- Start a phone sign-in and hand back a caller-owned `PendingVerification`.
- Confirm the one-time code, validate the returned ID token, and hold the identity.
- Report the current identity (only while its token is unexpired) and sign out.
- Map provider error codes to user-facing messages.
"""

from __future__ import annotations

import re
import time
from collections.abc import Callable
from typing import Any, Protocol

import httpx

from delivery_auth.auth.jwt import IdTokenConfig, IdTokenValidationError, identity_from_token
from delivery_auth.auth.models import Identity, PendingVerification
from delivery_auth.auth.phone import normalize_indian_phone_number
from delivery_auth.clients.errors import IdentityProviderError
from delivery_auth.observability.logging import get_logger
from delivery_auth.settings import Settings

log = get_logger(__name__)

_OTP_LENGTH = 6
_NON_DIGITS = re.compile(r"\D")

_ERROR_MESSAGES: dict[str, str] = {
    "invalid-phone-number": "Invalid phone number format",
    "missing-phone-number": "Phone number is required",
    "quota-exceeded": "SMS quota exceeded. Please try again later.",
    "user-disabled": "This phone number has been disabled",
    "operation-not-allowed": "Phone authentication is not enabled. Please contact support.",
    "captcha-check-failed": "reCAPTCHA verification failed. Please try again.",
    "app-not-authorized": "App not authorized for phone authentication",
    "too-many-requests": "Too many requests. Please try again later.",
    "invalid-verification-code": "Invalid OTP. Please check and try again.",
    "code-expired": "OTP has expired. Please request a new one.",
    "session-expired": "Verification session expired. Please try again.",
}


class IdentityProvider(Protocol):
    def current_identity(self) -> Identity | None: ...

    async def sign_out(self) -> None: ...


class PhoneIdentityClient:
    """
    Identity provider boundary. The client keeps the confirmed identity in memory the
    way hosted SDKs keep `currentUser`; `restore` rehydrates it after a restart.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        http: httpx.AsyncClient,
        now_s: Callable[[], float] = time.time,
    ) -> None:
        self._http = http
        self._token_cfg = IdTokenConfig.from_settings(settings)
        self._now_s = now_s
        self._current: Identity | None = None

    async def start_phone_sign_in(self, phone_number: str) -> PendingVerification:
        normalized = normalize_indian_phone_number(phone_number)
        body = await self._post("/v1/verifications", json={"phoneNumber": normalized})
        verification_id = str(body.get("verificationId") or "")
        if not verification_id:
            raise IdentityProviderError("Failed to send OTP. Please try again.", code="no-verification-id")
        log.info("otp_sent", phone=normalized)
        return PendingVerification(verification_id=verification_id, phone_number=normalized)

    async def confirm_code(self, pending: PendingVerification, code: str) -> Identity:
        digits = _NON_DIGITS.sub("", code or "")
        if len(digits) != _OTP_LENGTH:
            raise IdentityProviderError("Please enter a valid 6-digit OTP", code="invalid-code-format")
        if not pending.verification_id:
            raise IdentityProviderError(
                "Invalid verification session. Please request a new OTP.",
                code="missing-verification",
            )

        body = await self._post(
            f"/v1/verifications/{pending.verification_id}:confirm",
            json={"code": digits},
        )
        try:
            identity = identity_from_token(cfg=self._token_cfg, token=str(body.get("idToken") or ""))
        except IdTokenValidationError as e:
            raise IdentityProviderError(
                "Failed to verify OTP. Please try again.", code="invalid-id-token"
            ) from e

        self._current = identity
        log.info("identity_confirmed", phone=pending.phone_number)
        return identity

    def current_identity(self) -> Identity | None:
        identity = self._current
        if identity is None or identity.is_expired(self._now_s()):
            return None
        return identity

    def restore(self, identity: Identity | None) -> None:
        self._current = identity

    def restore_from_token(self, token: str | None) -> Identity | None:
        """
        Rehydrate the identity from a persisted ID token. A token that no longer
        validates leaves the client signed out.
        """

        if not token:
            self._current = None
            return None
        try:
            identity = identity_from_token(cfg=self._token_cfg, token=token)
        except IdTokenValidationError as e:
            log.info("persisted_identity_rejected", reason=str(e))
            self._current = None
            return None
        self._current = identity
        log.info("identity_restored")
        return identity

    async def sign_out(self) -> None:
        identity, self._current = self._current, None
        if identity is None or not identity.id_token:
            return
        await self._post(
            "/v1/sessions:revoke",
            headers={"Authorization": f"Bearer {identity.id_token}"},
        )

    async def _post(
        self,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        try:
            r = await self._http.post(path, json=json, headers=headers)
        except httpx.HTTPError as e:
            raise IdentityProviderError(
                "Network error. Please check your connection.", code="network-error"
            ) from e

        if r.is_success:
            return r.json() if r.content else {}
        code = _error_code(r)
        message = _ERROR_MESSAGES.get(code or "", "Authentication request failed. Please try again.")
        raise IdentityProviderError(message, code=code, status=r.status_code)


def _error_code(r: httpx.Response) -> str | None:
    try:
        body = r.json()
    except ValueError:
        return None
    err = body.get("error") if isinstance(body, dict) else None
    if isinstance(err, dict):
        code = err.get("code")
        # Providers prefix codes with a namespace ("auth/too-many-requests").
        return str(code).rsplit("/", 1)[-1] if code else None
    return None


# --- Module Notes -----------------------------------------------------------
# base_url, timeouts and transport are configured on the injected httpx.AsyncClient
# (see `api.app`), so tests can route the client to an in-process ASGI stub.
